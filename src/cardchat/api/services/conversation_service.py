from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import asyncpg

from cardchat.api.middleware.exception_handlers import ChatAccessDeniedError, ChatNotFoundError, DatabaseError
from cardchat.models.api_models import ChatRecord, MessageRecord, MessageRole
from cardchat.utils.logger import logger


def _parse_chat_id(chat_id: str) -> UUID:
    try:
        return UUID(chat_id)
    except ValueError as exc:
        raise ChatNotFoundError(chat_id) from exc


def default_chat_title(now: datetime | None = None) -> str:
    return f"Chat {(now or datetime.now(UTC)):%Y-%m-%d %H:%M}"


class ConversationService:
    """Chat and message persistence backed by PostgreSQL."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def create_chat(self, user_id: str, title: str | None = None) -> ChatRecord:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO chats (user_id, title)
                VALUES ($1, $2)
                RETURNING id, user_id, title, created_at
                """,
                user_id,
                title or default_chat_title(),
            )
        if row is None:
            raise DatabaseError("Chat insert returned no row")
        chat = self._row_to_chat(row)
        logger.info("Chat created", chat_id=chat.id, user_id=user_id)
        return chat

    async def list_chats(self, user_id: str) -> list[ChatRecord]:
        """List the user's chats, newest first, with message counts."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT c.id, c.user_id, c.title, c.created_at, COUNT(m.id) AS message_count
                FROM chats c
                LEFT JOIN messages m ON m.chat_id = c.id
                WHERE c.user_id = $1
                GROUP BY c.id
                ORDER BY c.created_at DESC
                """,
                user_id,
            )
        return [self._row_to_chat(r) for r in rows]

    async def get_chat(self, chat_id: str) -> ChatRecord | None:
        """Fetch a chat regardless of owner. Callers enforce ownership."""
        chat_uuid = _parse_chat_id(chat_id)
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT c.id, c.user_id, c.title, c.created_at,
                       (SELECT COUNT(*) FROM messages m WHERE m.chat_id = c.id) AS message_count
                FROM chats c
                WHERE c.id = $1
                """,
                chat_uuid,
            )
        if not row:
            return None
        return self._row_to_chat(row)

    async def require_chat(self, user_id: str, chat_id: str) -> ChatRecord:
        """Return the chat if it exists and belongs to ``user_id``.

        Raises:
            ChatNotFoundError: No chat with that id
            ChatAccessDeniedError: Chat belongs to another user
        """
        chat = await self.get_chat(chat_id)
        if chat is None:
            raise ChatNotFoundError(chat_id)
        if chat.user_id != user_id:
            logger.warning("Chat access denied", chat_id=chat_id, user_id=user_id)
            raise ChatAccessDeniedError(chat_id)
        return chat

    async def list_messages(self, user_id: str, chat_id: str) -> list[MessageRecord]:
        """Messages of an owned chat in creation order."""
        chat = await self.require_chat(user_id, chat_id)
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, chat_id, role, content, created_at
                FROM messages
                WHERE chat_id = $1
                ORDER BY created_at ASC
                """,
                UUID(chat.id),
            )
        return [self._row_to_message(r) for r in rows]

    async def append_message(
        self,
        user_id: str,
        chat_id: str,
        role: MessageRole,
        content: dict[str, Any],
    ) -> MessageRecord:
        chat = await self.require_chat(user_id, chat_id)
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO messages (chat_id, role, content)
                VALUES ($1, $2, $3)
                RETURNING id, chat_id, role, content, created_at
                """,
                UUID(chat.id),
                role,
                content,
            )
        if row is None:
            raise DatabaseError("Message insert returned no row")
        return self._row_to_message(row)

    async def delete_chat(self, user_id: str, chat_id: str) -> None:
        """Delete an owned chat; its messages go with it (ON DELETE CASCADE)."""
        chat = await self.require_chat(user_id, chat_id)
        async with self.pool.acquire() as conn:
            await conn.execute("DELETE FROM chats WHERE id = $1", UUID(chat.id))
        logger.info("Chat deleted", chat_id=chat.id, user_id=user_id)

    def _row_to_chat(self, row: Any) -> ChatRecord:
        return ChatRecord(
            id=str(row["id"]),
            user_id=row["user_id"],
            title=row["title"],
            created_at=row["created_at"],
            message_count=int(row.get("message_count") or 0),
        )

    def _row_to_message(self, row: Any) -> MessageRecord:
        return MessageRecord(
            id=str(row["id"]),
            chat_id=str(row["chat_id"]),
            role=row["role"],
            content=row["content"],
            created_at=row["created_at"],
        )
