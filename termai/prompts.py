"""System prompt composition."""

import getpass
import os
import platform
from pathlib import Path

from termai.tools.shell import default_shell

BASE_SYSTEM_PROMPT = """You are a helpful terminal assistant. Convert natural language requests into terminal commands.
Use the provided context to inform your command generation.
Use the `execute_command` tool to execute terminal commands.
If the user asks a question that is not related to terminal commands, answer the question directly."""


def get_system_info() -> str:
    """Short description of the machine the assistant is running on."""
    try:
        username = getpass.getuser()
    except (OSError, KeyError):
        username = "unknown"

    return "\n".join(
        [
            f"OS: {platform.system()} {platform.release()} ({platform.machine()})",
            f"Hostname: {platform.node()}",
            f"Username: {username}",
            f"Home directory: {Path.home()}",
            f"Shell: {default_shell()}",
            f"Working directory: {os.getcwd()}",
        ]
    )


def build_system_prompt(usage_prompt: str = "", base_prompt: str | None = None, context: str = "") -> str:
    """Assemble the system prompt from the base text, tool usage hints, system info and extra context."""
    sections = [base_prompt or BASE_SYSTEM_PROMPT]
    if usage_prompt:
        sections.append(f"TOOLS:\n{usage_prompt}")
    sections.append(f"SYSTEM INFORMATION:\n{get_system_info()}")
    if context:
        sections.append(context)
    return "\n\n".join(sections)
