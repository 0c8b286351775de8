"""Unit tests for ConversationsConsumer."""

from __future__ import annotations

import asyncio

import pytest

from reactive_cache.cache import CacheKeys, EventKind, ServerEvent
from reactive_cache.consumers import ConversationsConsumer, Feedback
from reactive_cache.kernel.errors import MutationError, NotFoundError, UnauthenticatedError


@pytest.fixture
def history(backend):
    older = backend.add_conversation("u1", "Pricing ideas", conversation_id="c-old")
    newer = backend.add_conversation("u1", "Launch plan", conversation_id="c-new")
    backend.add_conversation("u2", "Someone else's", conversation_id="c-other")
    backend.add_message(older.id, "user", "How should I price my course?", message_id="m1")
    backend.add_message(older.id, "assistant", "Start with a launch discount.", message_id="m2")
    backend.add_message(newer.id, "user", "Draft a launch email", message_id="m3")
    return backend


async def _started(runtime, backend):
    assistant = ConversationsConsumer(runtime, backend, "u1")
    await assistant.start()
    return assistant


class TestConversationList:
    def test_requires_user(self, runtime, backend) -> None:
        with pytest.raises(UnauthenticatedError):
            ConversationsConsumer(runtime, backend, "")

    def test_lists_own_conversations_newest_first(self, runtime, history) -> None:
        assistant = asyncio.run(_started(runtime, history))
        assert [c.id for c in assistant.conversations] == ["c-new", "c-old"]

    def test_create_shows_placeholder_then_selects(self, runtime, history) -> None:
        async def run():
            assistant = await _started(runtime, history)
            gate = history.hold("insert_conversation")
            task = asyncio.create_task(assistant.create_conversation("Course outline"))
            await asyncio.sleep(0)
            placeholder = assistant.conversations[0]
            gate.open()
            created = await task
            return assistant, placeholder, created

        assistant, placeholder, created = asyncio.run(run())
        assert placeholder.id.startswith("pending-")
        assert placeholder.title == "Course outline"
        assert assistant.conversations[0].id == created.id
        assert assistant.current_id == created.id
        assert assistant.messages == ()

    def test_delete_clears_selection_and_messages(self, runtime, history) -> None:
        async def run():
            assistant = await _started(runtime, history)
            await assistant.select("c-old")
            await assistant.delete_conversation("c-old")
            return assistant

        assistant = asyncio.run(run())
        assert [c.id for c in assistant.conversations] == ["c-new"]
        assert assistant.current_id is None
        assert not runtime.has(CacheKeys.ai_messages("c-old"))
        assert "c-old" not in history.conversations

    def test_failed_delete_restores_conversation(self, runtime, history) -> None:
        async def run():
            assistant = await _started(runtime, history)
            history.fail_next("delete_conversation")
            with pytest.raises(MutationError):
                await assistant.delete_conversation("c-new")
            return assistant

        assistant = asyncio.run(run())
        assert [c.id for c in assistant.conversations] == ["c-new", "c-old"]

    def test_failed_delete_keeps_selection(self, runtime, history) -> None:
        async def run():
            assistant = await _started(runtime, history)
            await assistant.select("c-old")
            history.fail_next("delete_conversation")
            with pytest.raises(MutationError):
                await assistant.delete_conversation("c-old")
            return assistant

        assistant = asyncio.run(run())
        assert assistant.current_id == "c-old"
        assert [m.id for m in assistant.messages] == ["m1", "m2"]
        assert runtime.fetcher.loader_for(CacheKeys.ai_messages("c-old")) is not None

    def test_delete_unknown(self, runtime, history) -> None:
        assistant = asyncio.run(_started(runtime, history))
        with pytest.raises(NotFoundError):
            asyncio.run(assistant.delete_conversation("c-other"))


class TestMessages:
    def test_select_loads_messages_once(self, runtime, history) -> None:
        async def run():
            assistant = await _started(runtime, history)
            await assistant.select("c-old")
            await assistant.select("c-old")
            return assistant

        assistant = asyncio.run(run())
        assert [m.id for m in assistant.messages] == ["m1", "m2"]
        assert history.calls["list_messages"] == 1

    def test_realtime_follows_selection(self, runtime, history) -> None:
        async def run():
            assistant = await _started(runtime, history)
            await assistant.select("c-old")
            await assistant.select("c-new")
            stale = await runtime.realtime.dispatch(
                ServerEvent("ai_messages", EventKind.INSERT, {"conversation_id": "c-old"})
            )
            history.add_message("c-new", "assistant", "Here's a draft.", message_id="m4")
            fresh = await runtime.realtime.dispatch(
                ServerEvent("ai_messages", EventKind.INSERT, {"conversation_id": "c-new"})
            )
            return assistant, stale, fresh

        assistant, stale, fresh = asyncio.run(run())
        assert stale == {}
        assert list(fresh) == [CacheKeys.ai_messages("c-new")]
        assert [m.id for m in assistant.messages] == ["m3", "m4"]

    def test_feedback_is_optimistic(self, runtime, history) -> None:
        async def run():
            assistant = await _started(runtime, history)
            await assistant.select("c-old")
            gate = history.hold("update_message_feedback")
            task = asyncio.create_task(assistant.save_feedback("m2", Feedback.UP))
            await asyncio.sleep(0)
            during = assistant.messages[1].feedback
            gate.open()
            await task
            return assistant, during

        assistant, during = asyncio.run(run())
        assert during is Feedback.UP
        assert assistant.messages[1].feedback is Feedback.UP
        assert history.messages["m2"].feedback is Feedback.UP

    def test_failed_feedback_reverts(self, runtime, history) -> None:
        async def run():
            assistant = await _started(runtime, history)
            await assistant.select("c-old")
            history.fail_next("update_message_feedback")
            with pytest.raises(MutationError):
                await assistant.save_feedback("m2", Feedback.DOWN)
            return assistant

        assert asyncio.run(run()).messages[1].feedback is None

    def test_feedback_needs_a_selected_message(self, runtime, history) -> None:
        async def run():
            assistant = await _started(runtime, history)
            with pytest.raises(NotFoundError):
                await assistant.save_feedback("m2", Feedback.UP)
            await assistant.select("c-new")
            with pytest.raises(NotFoundError):
                await assistant.save_feedback("m2", Feedback.UP)

        asyncio.run(run())

    def test_teardown_releases_selection(self, runtime, history) -> None:
        async def run():
            assistant = await _started(runtime, history)
            await assistant.select("c-old")
            assistant.teardown()
            return assistant

        asyncio.run(run())
        assert runtime.fetcher.loader_for(CacheKeys.ai_messages("c-old")) is None
        assert runtime.fetcher.loader_for(CacheKeys.ai_conversations("u1")) is None
