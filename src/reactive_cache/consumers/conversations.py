"""ConversationsConsumer – the AI assistant's conversation history."""
from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Any, Callable, Mapping

from reactive_cache.cache.keys import CacheKeys
from reactive_cache.consumers.base import Consumer, Listener
from reactive_cache.consumers.models import Conversation, Feedback, Message
from reactive_cache.consumers.ports import ConversationBackend
from reactive_cache.kernel.errors import NotFoundError, UnauthenticatedError
from reactive_cache.runtime import CacheRuntime

__all__ = ["ConversationsConsumer"]


class ConversationsConsumer(Consumer):
    """Conversation list under ``ai:conversations:<user>``.

    The selected conversation's messages live under their own key,
    ``ai:messages:<conversation>``; selecting another conversation moves the
    loader registration and realtime watch along with it.
    """

    def __init__(
        self,
        runtime: CacheRuntime,
        backend: ConversationBackend,
        user_id: str | None,
        on_change: Listener | None = None,
    ) -> None:
        if not user_id:
            raise UnauthenticatedError(type(self).__name__, "use the assistant")
        super().__init__(runtime, on_change)
        self._backend = backend
        self.user_id = user_id
        self.current_id: str | None = None
        self._selection: list[Callable[[], None]] = []

    @property
    def key(self) -> str:
        return CacheKeys.ai_conversations(self.user_id)

    async def fetch(self) -> tuple[Conversation, ...]:
        return tuple(await self._backend.list_conversations(self.user_id))

    def realtime_watches(self) -> list[tuple[str, Mapping[str, Any]]]:
        return [("ai_conversations", {"user_id": self.user_id})]

    @property
    def conversations(self) -> tuple[Conversation, ...]:
        return self.value or ()

    @property
    def messages(self) -> tuple[Message, ...]:
        if self.current_id is None:
            return ()
        return self._runtime.get(CacheKeys.ai_messages(self.current_id)) or ()

    async def create_conversation(self, title: str) -> Conversation:
        placeholder = Conversation(id=f"pending-{uuid.uuid4().hex}", user_id=self.user_id, title=title)

        async def insert() -> Conversation:
            created = await self._backend.insert_conversation(self.user_id, title)
            self._runtime.update(
                self.key,
                lambda items: tuple(created if c.id == placeholder.id else c for c in items or ()),
            )
            return created

        created = await self._mutate(lambda items: (placeholder, *(items or ())), insert)
        await self.select(created.id)
        return created

    async def delete_conversation(self, conversation_id: str) -> None:
        if not any(c.id == conversation_id for c in self._snapshot() or ()):
            raise NotFoundError("Conversation", conversation_id, key=self.key)
        await self._mutate(
            lambda items: tuple(c for c in items or () if c.id != conversation_id),
            lambda: self._backend.delete_conversation(conversation_id),
            reconcile=False,
        )
        if self.current_id == conversation_id:
            self.clear_selection()
        self._runtime.store.invalidate(CacheKeys.ai_messages(conversation_id))

    async def select(self, conversation_id: str, force_refresh: bool = False) -> tuple[Message, ...]:
        """Make *conversation_id* current and load its messages."""
        key = CacheKeys.ai_messages(conversation_id)
        if conversation_id != self.current_id:
            self._release_selection()
            self.current_id = conversation_id
            loader = self._messages_loader(conversation_id)
            self._selection.append(self._runtime.fetcher.register(key, loader))
            self._selection.append(
                self._runtime.realtime.watch("ai_messages", key, match={"conversation_id": conversation_id})
            )
        return await self._runtime.get_or_fetch(
            key, self._messages_loader(conversation_id), force_refresh=force_refresh
        )

    def clear_selection(self) -> None:
        self._release_selection()
        self.current_id = None

    async def save_feedback(self, message_id: str, feedback: Feedback | None) -> None:
        """Record thumbs up/down on a message of the current conversation."""
        if self.current_id is None:
            raise NotFoundError("Message", message_id)
        key = CacheKeys.ai_messages(self.current_id)
        messages: tuple[Message, ...] = self._runtime.get(key) or ()
        if not any(m.id == message_id for m in messages):
            raise NotFoundError("Message", message_id, key=key)
        await self._runtime.mutate(
            key,
            lambda items: tuple(replace(m, feedback=feedback) if m.id == message_id else m for m in items or ()),
            lambda: self._backend.update_message_feedback(message_id, feedback),
            reconcile=False,
        )

    def teardown(self) -> None:
        self._release_selection()
        super().teardown()

    def _messages_loader(self, conversation_id: str) -> Callable[[], Any]:
        async def load() -> tuple[Message, ...]:
            return tuple(await self._backend.list_messages(conversation_id))

        return load

    def _release_selection(self) -> None:
        while self._selection:
            self._selection.pop()()
