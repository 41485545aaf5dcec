from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest

from cardchat.api.middleware.exception_handlers import ChatAccessDeniedError, ChatNotFoundError, DatabaseError
from cardchat.api.services.conversation_service import ConversationService, default_chat_title

USER_ID = "github:583231"
OTHER_USER_ID = "google:1099"
CHAT_UUID = UUID("0b7d6c1e-6a55-4d0c-9a3e-3f1f4c7f2b10")
CHAT_ID = str(CHAT_UUID)
CREATED_AT = datetime(2025, 1, 15, 10, 30, tzinfo=UTC)


def chat_row(user_id: str = USER_ID, message_count: int = 0) -> dict[str, object]:
    return {
        "id": CHAT_UUID,
        "user_id": user_id,
        "title": "Trip planning",
        "created_at": CREATED_AT,
        "message_count": message_count,
    }


def message_row(role: str = "user", content: dict[str, object] | None = None) -> dict[str, object]:
    return {
        "id": UUID("9b2f0c7e-7e0b-4f57-9a61-0a1c5a0f3e11"),
        "chat_id": CHAT_UUID,
        "role": role,
        "content": content or {"text": "hi"},
        "created_at": CREATED_AT,
    }


@pytest.fixture
def service(mock_db_pool: MagicMock) -> ConversationService:
    return ConversationService(mock_db_pool)


def test_default_chat_title() -> None:
    assert default_chat_title(CREATED_AT) == "Chat 2025-01-15 10:30"


@pytest.mark.asyncio
async def test_create_chat_uses_default_title(service: ConversationService, mock_connection: AsyncMock) -> None:
    mock_connection.fetchrow.return_value = {k: v for k, v in chat_row().items() if k != "message_count"}

    chat = await service.create_chat(USER_ID)

    assert chat.id == CHAT_ID
    assert chat.message_count == 0
    args = mock_connection.fetchrow.call_args.args
    assert args[1] == USER_ID
    assert args[2].startswith("Chat ")


@pytest.mark.asyncio
async def test_create_chat_with_title(service: ConversationService, mock_connection: AsyncMock) -> None:
    mock_connection.fetchrow.return_value = chat_row()

    await service.create_chat(USER_ID, "Trip planning")

    assert mock_connection.fetchrow.call_args.args[2] == "Trip planning"


@pytest.mark.asyncio
async def test_list_chats(service: ConversationService, mock_connection: AsyncMock) -> None:
    mock_connection.fetch.return_value = [chat_row(message_count=4)]

    chats = await service.list_chats(USER_ID)

    assert len(chats) == 1
    assert chats[0].message_count == 4
    query = mock_connection.fetch.call_args.args[0]
    assert "ORDER BY c.created_at DESC" in query


@pytest.mark.asyncio
async def test_get_chat_missing_returns_none(service: ConversationService, mock_connection: AsyncMock) -> None:
    mock_connection.fetchrow.return_value = None

    assert await service.get_chat(CHAT_ID) is None


@pytest.mark.asyncio
async def test_malformed_chat_id_is_not_found(service: ConversationService, mock_connection: AsyncMock) -> None:
    with pytest.raises(ChatNotFoundError):
        await service.require_chat(USER_ID, "not-a-uuid")
    mock_connection.fetchrow.assert_not_called()


@pytest.mark.asyncio
async def test_require_chat_other_owner(service: ConversationService, mock_connection: AsyncMock) -> None:
    mock_connection.fetchrow.return_value = chat_row(user_id=OTHER_USER_ID)

    with pytest.raises(ChatAccessDeniedError):
        await service.require_chat(USER_ID, CHAT_ID)


@pytest.mark.asyncio
async def test_list_messages_in_creation_order(service: ConversationService, mock_connection: AsyncMock) -> None:
    mock_connection.fetchrow.return_value = chat_row()
    mock_connection.fetch.return_value = [message_row("user"), message_row("assistant", {"text": "hello"})]

    messages = await service.list_messages(USER_ID, CHAT_ID)

    assert [m.role for m in messages] == ["user", "assistant"]
    assert messages[1].content == {"text": "hello"}
    query = mock_connection.fetch.call_args.args[0]
    assert "ORDER BY created_at ASC" in query


@pytest.mark.asyncio
async def test_append_message(service: ConversationService, mock_connection: AsyncMock) -> None:
    content = {"toolName": "getWeather", "result": {"location": "Paris"}}
    mock_connection.fetchrow.side_effect = [chat_row(), message_row("tool", content)]

    message = await service.append_message(USER_ID, CHAT_ID, "tool", content)

    assert message.chat_id == CHAT_ID
    assert message.role == "tool"
    insert_args = mock_connection.fetchrow.call_args.args
    assert insert_args[1] == CHAT_UUID
    assert insert_args[3] == content


@pytest.mark.asyncio
async def test_append_message_to_foreign_chat(service: ConversationService, mock_connection: AsyncMock) -> None:
    mock_connection.fetchrow.return_value = chat_row(user_id=OTHER_USER_ID)

    with pytest.raises(ChatAccessDeniedError):
        await service.append_message(USER_ID, CHAT_ID, "user", {"text": "hi"})
    assert mock_connection.fetchrow.call_count == 1


@pytest.mark.asyncio
async def test_delete_chat(service: ConversationService, mock_connection: AsyncMock) -> None:
    mock_connection.fetchrow.return_value = chat_row()

    await service.delete_chat(USER_ID, CHAT_ID)

    mock_connection.execute.assert_awaited_once_with("DELETE FROM chats WHERE id = $1", CHAT_UUID)


@pytest.mark.asyncio
async def test_delete_missing_chat(service: ConversationService, mock_connection: AsyncMock) -> None:
    mock_connection.fetchrow.return_value = None

    with pytest.raises(ChatNotFoundError):
        await service.delete_chat(USER_ID, CHAT_ID)
    mock_connection.execute.assert_not_called()


@pytest.mark.asyncio
async def test_create_chat_without_returned_row(service: ConversationService, mock_connection: AsyncMock) -> None:
    mock_connection.fetchrow.return_value = None

    with pytest.raises(DatabaseError):
        await service.create_chat(USER_ID)
