"""Shell command execution and safety classification."""

import asyncio
import os
import re
from dataclasses import dataclass

from termai.utils.logging import get_logger

logger = get_logger(__name__)

TIMEOUT_EXIT_CODE = 124

# Patterns that indicate a command may change files, packages or permissions.
MUTATING_PATTERNS = [
    re.compile(pattern)
    for pattern in (
        r"\brm\b",
        r"\bmv\b",
        r"\bcp\b",
        r"\btouch\b",
        r"\bmkdir\b",
        r"\brmdir\b",
        r"\bsudo\b",
        r"\bapt(-get)?\b.*\b(install|remove|purge)\b",
        r"\byum\b.*\b(install|remove)\b",
        r"\bdnf\b.*\b(install|remove)\b",
        r"\bbrew\b.*\b(install|uninstall)\b",
        r"\bpip3?\b.*\b(install|uninstall)\b",
        r"\bnpm\b.*\b(install|uninstall)\b",
        r"\bchmod\b",
        r"\bchown\b",
        r"\bchgrp\b",
        r"\bdd\b",
        r"\bmkfs(\.\w+)?\b",
        r"\bkill(all)?\b",
        r"\bpkill\b",
        r"\bsed\b.*\s-i\b",
        r">",
        r"\|\s*tee\b",
    )
]


def is_mutating(command: str) -> bool:
    """Whether a command might modify the system."""
    return any(pattern.search(command) for pattern in MUTATING_PATTERNS)


@dataclass
class CommandResult:
    """Represents the result of a command execution."""

    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0


def default_shell() -> str:
    return os.environ.get("SHELL") or "/bin/sh"


class ShellExecutor:
    """Executes shell commands with a timeout."""

    def __init__(self, timeout: float = 120.0, shell: str | None = None):
        """Initialize command executor.

        Args:
            timeout: Seconds before a command is killed
            shell: Shell used to interpret commands (defaults to $SHELL)
        """
        self.timeout = timeout
        self.shell = shell or default_shell()

    async def execute(self, command: str, requires_sudo: bool = False) -> CommandResult:
        """Run a command and capture its output."""
        command = command.strip()
        if requires_sudo:
            command = f"sudo {command}"

        logger.info(f"Executing command: {command} - timeout: {self.timeout}s")
        process = await asyncio.create_subprocess_shell(
            command,
            stdin=None if requires_sudo else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            executable=self.shell,
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except TimeoutError:
            process.kill()
            await process.wait()
            logger.warning(f"Command timed out after {self.timeout} seconds: {command}")
            return CommandResult(
                command=command,
                exit_code=TIMEOUT_EXIT_CODE,
                stderr=f"Command timed out after {self.timeout} seconds",
            )

        result = CommandResult(
            command=command,
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        logger.info(f"Command completed with exit code {result.exit_code}")
        return result
