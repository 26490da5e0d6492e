"""Tests for the conversation service."""

from unittest.mock import Mock

import pytest

from termai.errors import CompletionCancelled, PersistenceError, ProviderError
from termai.models.messages import AssistantMessage, ToolCallRequest, UserMessage
from termai.models.session import CancellationToken
from termai.services.agent import AgentOrchestrator
from termai.services.conversation import ConversationService
from termai.services.thread_store import SQLiteThreadRepository
from termai.tools.registry import ToolRegistry


@pytest.fixture
def store(tmp_path):
    repository = SQLiteThreadRepository(tmp_path / "terminal-ai.db")
    yield repository
    repository.close()


def make_service(provider, session, store) -> ConversationService:
    return ConversationService(AgentOrchestrator(provider, ToolRegistry(session), session), store)


class TestConversationService:
    """Tests for running turns against stored threads."""

    @pytest.mark.asyncio
    async def test_turn_is_persisted(self, make_provider, session, store):
        service = make_service(make_provider([(["Hello!"], [])]), session, store)
        thread = service.start_thread()

        result = await service.send(thread, "hi", on_token=lambda token: None)

        expected = [UserMessage(content="hi"), AssistantMessage(content="Hello!")]
        assert result.thread.messages == expected
        assert result.content == "Hello!"
        assert result.persistence_error is None
        assert service.load_thread(thread.id).messages == expected

    @pytest.mark.asyncio
    async def test_follow_up_turn_sees_previous_history(self, make_provider, session, store):
        provider = make_provider([(["first answer"], []), (["second answer"], [])])
        service = make_service(provider, session, store)
        thread = service.start_thread("follow-up")

        first = await service.send(thread, "one", on_token=lambda token: None)
        second = await service.send(first.thread, "two", on_token=lambda token: None)

        sent, _ = provider.requests[1]
        assert [m.role for m in sent] == ["system", "user", "assistant", "user"]
        assert len(second.thread.messages) == 4
        assert len(service.load_thread(thread.id).messages) == 4

    @pytest.mark.asyncio
    async def test_provider_error_persists_nothing(self, make_provider, session, store):
        provider = make_provider([])
        provider._stream = Mock(side_effect=ProviderError("scripted", "503 overloaded"))
        service = make_service(provider, session, store)
        thread = service.start_thread()

        with pytest.raises(ProviderError):
            await service.send(thread, "hi", on_token=lambda token: None)

        assert service.load_thread(thread.id).messages == []

    @pytest.mark.asyncio
    async def test_cancelled_turn_persists_nothing(self, make_provider, session, store):
        service = make_service(make_provider([(["partial", "answer"], [])]), session, store)
        thread = service.start_thread()
        cancel = CancellationToken()

        with pytest.raises(CompletionCancelled):
            await service.send(thread, "hi", on_token=lambda token: cancel.cancel(), cancel=cancel)

        assert service.load_thread(thread.id).messages == []

    @pytest.mark.asyncio
    async def test_persistence_error_is_reported_not_raised(self, make_provider, session, store):
        service = make_service(make_provider([(["ok"], [])]), session, store)
        thread = service.start_thread()
        store.update = Mock(side_effect=PersistenceError("Failed to update thread: disk I/O error"))

        result = await service.send(thread, "hi", on_token=lambda token: None)

        assert isinstance(result.persistence_error, PersistenceError)
        assert result.thread.messages == [UserMessage(content="hi"), AssistantMessage(content="ok")]

    @pytest.mark.asyncio
    async def test_deleted_thread_reports_not_found(self, make_provider, session, store):
        service = make_service(make_provider([(["ok"], [])]), session, store)
        thread = service.start_thread()
        store.delete(thread.id)

        result = await service.send(thread, "hi", on_token=lambda token: None)

        assert "not found" in str(result.persistence_error)

    @pytest.mark.asyncio
    async def test_tool_round_is_stored_in_order(self, make_provider, session, store):
        provider = make_provider(
            [([], [ToolCallRequest(name="missing_tool", arguments={}, call_id="x")]), (["done"], [])]
        )
        service = make_service(provider, session, store)
        thread = service.start_thread()

        await service.send(thread, "go", on_token=lambda token: None)

        stored = service.load_thread(thread.id).messages
        assert [m.role for m in stored] == ["user", "tool_call", "tool", "assistant"]
        assert stored[2].results[0].error == "Unknown tool: missing_tool"
