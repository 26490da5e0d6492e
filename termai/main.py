"""Command-line entry point: one-shot queries and the interactive chat."""

import argparse
import asyncio
import signal
import sys

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from termai import __version__
from termai.clients import create_provider
from termai.config import AgentConfig, ProviderConfig, ProviderType, data_dir, database_path
from termai.errors import CompletionCancelled, PersistenceError, ProviderError, TermAIError
from termai.models.session import CancellationToken, Session
from termai.models.thread import Thread
from termai.services.agent import AgentOrchestrator
from termai.services.context import PromptContext, read_piped_input
from termai.services.conversation import ConversationService, TurnResult
from termai.services.cost import usage_lines
from termai.services.thread_store import SQLiteThreadRepository
from termai.tools import build_default_registry
from termai.utils.logging import LOG_FILENAME, LogConfig, get_logger, setup_logging

logger = get_logger(__name__)

HELP_TEXT = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /new [name] - Start a new thread
• /threads - List recent threads
• /switch <id> - Switch to another thread
• /rename <name> - Rename the current thread
• /delete <id> - Delete a thread
• /cost - Show token usage and cost for this session
• /quit or /exit - Exit the chat

[bold]Tips:[/bold]
• Ask in plain language, e.g. "find the largest files in this directory"
• Commands that modify your system ask for confirmation unless started with --yes
• Pipe text in for extra context, e.g. cat error.log | termai "why does this fail"
• Press Ctrl-C while the assistant is answering to cancel the request
"""


class ChatCLI:
    """Terminal front end over a conversation service."""

    def __init__(self, conversation: ConversationService, session: Session, thread: Thread):
        self.conversation = conversation
        self.session = session
        self.thread = thread
        self.console = session.console

    def _print_token(self, token: str) -> None:
        self.console.print(token, end="", markup=False, highlight=False, soft_wrap=True)

    async def ask(self, text: str) -> TurnResult | None:
        """Run one user turn, streaming the answer to the console."""
        cancel = CancellationToken()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, cancel.cancel)
            handler_installed = True
        except (NotImplementedError, RuntimeError):
            handler_installed = False

        status = self.console.status("[dim]Thinking...[/dim]", spinner="dots")
        try:
            result = await self.conversation.send(self.thread, text, self._print_token, status=status, cancel=cancel)
        except CompletionCancelled as e:
            self.console.print(f"\n[yellow]{e}[/yellow]")
            return None
        except ProviderError as e:
            self.console.print(f"\n[red]{e}[/red]")
            return None
        finally:
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)

        self.console.print()
        self.thread = result.thread
        if result.persistence_error is not None:
            self.console.print(f"[yellow]Conversation not saved: {result.persistence_error}[/yellow]")
        if self.session.show_cost_info:
            self.console.print(f"[dim]{' | '.join(usage_lines(result.usage))}[/dim]")
        return result

    async def chat(self) -> None:
        """Interactive loop until the user quits."""
        self.console.print(
            Panel.fit(
                f"[bold blue]terminal-ai {__version__}[/bold blue]\n"
                f"Thread: {self.thread.name}\n"
                "Commands: /help, /threads, /new, /quit",
                border_style="blue",
            )
        )

        while True:
            user_input = (await asyncio.to_thread(Prompt.ask, "\n[bold cyan]You[/bold cyan]")).strip()
            if not user_input:
                continue
            if user_input.startswith("/"):
                if not self.handle_command(user_input):
                    break
                continue
            await self.ask(user_input)

        self.show_cost()

    async def run(self, query: list[str]) -> int:
        """Answer a one-shot query, or start the chat when there is none."""
        try:
            if query and query != ["chat"]:
                return 0 if await self.ask(" ".join(query)) is not None else 1
            await self.chat()
            return 0
        finally:
            await self.conversation.orchestrator.provider.aclose()

    def handle_command(self, line: str) -> bool:
        """Execute a slash command; returns False when the chat should end."""
        command, _, argument = line.partition(" ")
        argument = argument.strip()
        store = self.conversation.store

        try:
            match command.lower():
                case "/quit" | "/exit":
                    return False
                case "/help":
                    self.console.print(Panel(HELP_TEXT.strip(), title="[cyan]Help[/cyan]", border_style="cyan"))
                case "/new":
                    self.thread = self.conversation.start_thread(argument or None)
                    self.console.print(f"[green]Started thread {self.thread.name}[/green]")
                case "/threads":
                    self.show_threads()
                case "/switch":
                    thread = self.conversation.load_thread(argument) if argument else None
                    if thread is None:
                        self.console.print(f"[red]No thread with ID {argument!r}[/red]")
                    else:
                        self.thread = thread
                        self.console.print(f"[green]Switched to {thread.name} ({len(thread.messages)} messages)[/green]")
                case "/rename":
                    if not argument:
                        self.console.print("[red]Usage: /rename <name>[/red]")
                    else:
                        self.thread = store.rename(self.thread.id, argument)
                        self.console.print(f"[green]Renamed thread to {self.thread.name}[/green]")
                case "/delete":
                    self.delete_thread(argument)
                case "/cost":
                    self.show_cost()
                case _:
                    self.console.print(f"[red]Unknown command: {command}. Type /help for options.[/red]")
        except PersistenceError as e:
            self.console.print(f"[red]{e}[/red]")
        return True

    def delete_thread(self, thread_id: str) -> None:
        if not thread_id:
            self.console.print("[red]Usage: /delete <id>[/red]")
            return
        if not self.conversation.store.delete(thread_id):
            self.console.print(f"[red]No thread with ID {thread_id!r}[/red]")
            return
        self.console.print(f"[yellow]Deleted thread {thread_id}[/yellow]")
        if thread_id == self.thread.id:
            self.thread = self.conversation.start_thread()
            self.console.print(f"[green]Started thread {self.thread.name}[/green]")

    def show_threads(self) -> None:
        table = Table(title="Recent threads")
        table.add_column("ID", style="cyan")
        table.add_column("Name")
        table.add_column("Updated", style="dim")
        for thread in self.conversation.store.list():
            marker = " *" if thread.id == self.thread.id else ""
            table.add_row(thread.id, f"{thread.name}{marker}", thread.updated_at.strftime("%Y-%m-%d %H:%M"))
        self.console.print(table)

    def show_cost(self) -> None:
        if self.session.show_cost_info and self.session.cost_tracker.requests:
            self.console.print(
                Panel("\n".join(self.session.cost_tracker.summary_lines()), title="Session usage", border_style="dim")
            )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="termai", description="Turn natural-language requests into shell actions.")
    parser.add_argument("query", nargs="*", help="Question to ask; use 'chat' or nothing for an interactive session")
    parser.add_argument("--provider", choices=[provider.value for provider in ProviderType], help="LLM backend")
    parser.add_argument("--model", help="Model identifier")
    parser.add_argument("--endpoint", help="Custom API endpoint")
    parser.add_argument("--thread", help="Continue an existing thread by ID")
    parser.add_argument("-y", "--yes", action="store_true", help="Run commands without asking for confirmation")
    parser.add_argument("--max-cycles", type=int, default=AgentConfig.max_cycles, help="Maximum tool rounds per turn")
    parser.add_argument("--no-cost", action="store_true", help="Hide token usage and cost information")
    parser.add_argument("--no-git-context", action="store_true", help="Leave git status and diff out of the prompt")
    parser.add_argument("--debug", action="store_true", help=f"Write debug logs to {LOG_FILENAME} in the data directory")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the termai command."""
    args = parse_args(argv)
    setup_logging(LogConfig(level="DEBUG", log_file=data_dir() / LOG_FILENAME) if args.debug else None)
    console = Console()

    piped_input = read_piped_input(sys.stdin)
    if piped_input and args.query in ([], ["chat"]):
        console.print("[red]Piped input needs a question, e.g. cat error.log | termai \"what went wrong\"[/red]")
        return 1

    try:
        provider_config = ProviderConfig.from_env(provider=args.provider, model=args.model, endpoint=args.endpoint)
        provider = create_provider(provider_config)
        store = SQLiteThreadRepository(database_path())
        thread = store.get(args.thread) if args.thread else store.create()
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        return 1
    except TermAIError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    if thread is None:
        console.print(f"[red]No thread with ID {args.thread!r}[/red]")
        store.close()
        asyncio.run(provider.aclose())
        return 1

    session = Session(auto_approve=args.yes, show_cost_info=not args.no_cost, console=console)
    registry = build_default_registry(session)
    context = PromptContext(piped_input=piped_input, include_git=not args.no_git_context)
    orchestrator = AgentOrchestrator(provider, registry, session, AgentConfig(max_cycles=args.max_cycles), context)
    cli = ChatCLI(ConversationService(orchestrator, store), session, thread)
    logger.info(f"Using {provider.name} model {provider.model}, thread {thread.id}")

    try:
        return asyncio.run(cli.run(args.query))
    except (KeyboardInterrupt, EOFError):
        console.print("\n[yellow]Goodbye![/yellow]")
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
