"""Tests for the command-line front end."""

import io
from unittest.mock import AsyncMock, Mock

import pytest

from termai.errors import ProviderError
from termai.main import ChatCLI, main, parse_args
from termai.services.agent import AgentOrchestrator
from termai.services.conversation import ConversationService
from termai.services.thread_store import SQLiteThreadRepository
from termai.tools.registry import ToolRegistry


@pytest.fixture
def store(tmp_path):
    repository = SQLiteThreadRepository(tmp_path / "terminal-ai.db")
    yield repository
    repository.close()


@pytest.fixture
def make_cli(make_provider, session, store):
    def factory(rounds=()):
        provider = make_provider(list(rounds))
        conversation = ConversationService(AgentOrchestrator(provider, ToolRegistry(session), session), store)
        return ChatCLI(conversation, session, conversation.start_thread("initial"))

    return factory


def output(cli: ChatCLI) -> str:
    return cli.console.file.getvalue()


class TestParseArgs:
    """Tests for argument parsing."""

    def test_defaults(self):
        args = parse_args([])
        assert args.query == []
        assert args.yes is False
        assert args.max_cycles == 25

    def test_one_shot_query_with_flags(self):
        args = parse_args(["--provider", "ollama", "--model", "qwen2.5", "-y", "show", "disk", "usage"])
        assert args.provider == "ollama"
        assert args.model == "qwen2.5"
        assert args.yes is True
        assert args.query == ["show", "disk", "usage"]

    def test_rejects_unknown_provider(self):
        with pytest.raises(SystemExit):
            parse_args(["--provider", "gemini"])

    def test_context_and_debug_flags(self):
        args = parse_args(["--no-git-context", "--debug", "why"])
        assert args.no_git_context is True
        assert args.debug is True

    def test_piped_input_without_question_is_rejected(self, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("Traceback: boom\n"))
        monkeypatch.setattr("termai.main.setup_logging", Mock())
        create_provider = Mock()
        monkeypatch.setattr("termai.main.create_provider", create_provider)

        assert main([]) == 1
        create_provider.assert_not_called()


class TestChatCLI:
    """Tests for turns and slash commands."""

    @pytest.mark.asyncio
    async def test_ask_streams_answer(self, make_cli):
        cli = make_cli([(["Use ", "`df -h`"], [])])

        result = await cli.ask("show disk usage")

        assert result.content == "Use `df -h`"
        assert "Use `df -h`" in output(cli)
        assert "Input tokens" in output(cli)
        assert len(cli.thread.messages) == 2

    @pytest.mark.asyncio
    async def test_run_answers_query_and_closes_provider(self, make_cli):
        cli = make_cli([(["Use df -h"], [])])
        provider = cli.conversation.orchestrator.provider
        provider.aclose = AsyncMock()

        assert await cli.run(["show", "disk", "usage"]) == 0

        assert cli.thread.messages[0].content == "show disk usage"
        provider.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_closes_provider_after_failed_turn(self, make_cli):
        cli = make_cli()
        provider = cli.conversation.orchestrator.provider
        provider._stream = Mock(side_effect=ProviderError("scripted", "503 overloaded"))
        provider.aclose = AsyncMock()

        assert await cli.run(["hi"]) == 1
        provider.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ask_reports_provider_error(self, make_cli):
        cli = make_cli()
        cli.conversation.orchestrator.provider._stream = Mock(side_effect=ProviderError("scripted", "401 bad key"))

        assert await cli.ask("hi") is None
        assert "401 bad key" in output(cli)
        assert cli.thread.messages == []

    def test_new_and_switch_threads(self, make_cli):
        cli = make_cli()
        original = cli.thread

        assert cli.handle_command("/new scratch")
        assert cli.thread.name == "scratch"

        cli.handle_command(f"/switch {original.id}")
        assert cli.thread.id == original.id

    def test_switch_to_missing_thread(self, make_cli):
        cli = make_cli()
        cli.handle_command("/switch nope")
        assert "No thread with ID 'nope'" in output(cli)

    def test_rename_current_thread(self, make_cli):
        cli = make_cli()
        cli.handle_command("/rename release notes")
        assert cli.conversation.store.get(cli.thread.id).name == "release notes"

    def test_delete_current_thread_starts_new_one(self, make_cli):
        cli = make_cli()
        deleted_id = cli.thread.id

        cli.handle_command(f"/delete {deleted_id}")

        assert cli.thread.id != deleted_id
        assert cli.conversation.store.get(deleted_id) is None

    def test_delete_missing_thread(self, make_cli):
        cli = make_cli()
        cli.handle_command("/delete nope")
        assert "No thread with ID 'nope'" in output(cli)

    def test_threads_table_lists_threads(self, make_cli):
        cli = make_cli()
        cli.handle_command("/threads")
        assert "initial" in output(cli)

    def test_quit_and_unknown_command(self, make_cli):
        cli = make_cli()
        assert cli.handle_command("/quit") is False
        assert cli.handle_command("/bogus") is True
        assert "Unknown command: /bogus" in output(cli)
