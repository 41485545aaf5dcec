"""
Chat persistence endpoints.

The browser saves the streamed reply (and any tool cards) here once a
stream finishes. Every route is scoped to the authenticated user: a chat
that does not exist is 404, a chat owned by someone else is 403.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Path, Response, status

from cardchat.api.dependencies import Conversations
from cardchat.api.middleware.auth import CurrentUser
from cardchat.api.middleware.request_context import update_request_context
from cardchat.models.error_models import ErrorResponseWrapper
from cardchat.models.schemas.chats import (
    AppendMessageRequest,
    ChatDetailResponse,
    ChatListResponse,
    ChatResponse,
    CreateChatRequest,
    MessageResponse,
)

router = APIRouter()

ChatIdPath = Annotated[
    str,
    Path(
        ...,
        description="Chat identifier (UUID)",
        examples=["0b7d6c1e-6a55-4d0c-9a3e-3f1f4c7f2b10"],
        min_length=1,
        max_length=64,
    ),
]

_OWNERSHIP_ERRORS: dict[int | str, dict[str, object]] = {
    401: {"model": ErrorResponseWrapper, "description": "Authentication required"},
    403: {"model": ErrorResponseWrapper, "description": "Chat belongs to another user"},
    404: {"model": ErrorResponseWrapper, "description": "Chat not found"},
}


@router.post(
    "/chats",
    response_model=ChatResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
    summary="Create chat",
    responses={401: _OWNERSHIP_ERRORS[401]},
)
async def create_chat(user: CurrentUser, conversations: Conversations, body: CreateChatRequest | None = None) -> ChatResponse:
    """Create an empty chat for the current user."""
    chat = await conversations.create_chat(user.id, body.title if body else None)
    return ChatResponse.from_record(chat)


@router.get(
    "/chats",
    response_model=ChatListResponse,
    response_model_by_alias=True,
    summary="List chats",
    description="The current user's chats, newest first, with message counts.",
    responses={401: _OWNERSHIP_ERRORS[401]},
)
async def list_chats(user: CurrentUser, conversations: Conversations) -> ChatListResponse:
    chats = await conversations.list_chats(user.id)
    return ChatListResponse(chats=[ChatResponse.from_record(c) for c in chats])


@router.get(
    "/chats/{chat_id}",
    response_model=ChatDetailResponse,
    response_model_by_alias=True,
    summary="Get chat",
    description="A chat with its messages in creation order.",
    responses=_OWNERSHIP_ERRORS,
)
async def get_chat(chat_id: ChatIdPath, user: CurrentUser, conversations: Conversations) -> ChatDetailResponse:
    update_request_context(chat_id=chat_id)
    chat = await conversations.require_chat(user.id, chat_id)
    messages = await conversations.list_messages(user.id, chat_id)
    summary = ChatResponse.from_record(chat)
    return ChatDetailResponse(
        **summary.model_dump(),
        messages=[MessageResponse.from_record(m) for m in messages],
    )


@router.post(
    "/chats/{chat_id}/messages",
    response_model=MessageResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
    summary="Append message",
    responses=_OWNERSHIP_ERRORS,
)
async def append_message(
    chat_id: ChatIdPath,
    body: AppendMessageRequest,
    user: CurrentUser,
    conversations: Conversations,
) -> MessageResponse:
    update_request_context(chat_id=chat_id)
    message = await conversations.append_message(user.id, chat_id, body.role, body.content)
    return MessageResponse.from_record(message)


@router.get(
    "/chat/{chat_id}/messages",
    response_model=list[MessageResponse],
    response_model_by_alias=True,
    summary="List chat messages",
    responses=_OWNERSHIP_ERRORS,
)
async def list_messages(chat_id: ChatIdPath, user: CurrentUser, conversations: Conversations) -> list[MessageResponse]:
    update_request_context(chat_id=chat_id)
    messages = await conversations.list_messages(user.id, chat_id)
    return [MessageResponse.from_record(m) for m in messages]


@router.delete(
    "/chats/{chat_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete chat",
    description="Delete a chat and all of its messages.",
    responses=_OWNERSHIP_ERRORS,
)
async def delete_chat(chat_id: ChatIdPath, user: CurrentUser, conversations: Conversations) -> Response:
    update_request_context(chat_id=chat_id)
    await conversations.delete_chat(user.id, chat_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
