"""Health assistant chat client.

The backend answers free-text health questions with the user's own data
as context. Unlike the journal client, failures here do not raise: every
call returns a :class:`ChatResult` carrying either the response body or a
user-facing message with a classified :class:`ChatErrorCode`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from occur.core.api.client import (
    API_PREFIX,
    BackendAuthError,
    BackendClient,
    BackendClientError,
    BackendConnectionError,
    BackendResponseError,
)

logger = logging.getLogger(__name__)

CHAT_ASK_PATH = f"{API_PREFIX}/adv_chat/chat/ask"
CHAT_HISTORY_PATH = f"{API_PREFIX}/adv_chat/chat/history/"
CHAT_CONVERSATIONS_PATH = f"{API_PREFIX}/adv_chat/chat/conversations"

DEFAULT_TAGS = ("general", "user_input")
DEFAULT_CONTEXT = "user_query"
DEFAULT_HISTORY_LIMIT = 6


class ChatErrorCode(str, Enum):
    AUTH = "AUTH_ERROR"
    VALIDATION = "VALIDATION_ERROR"
    SERVER = "SERVER_ERROR"
    NETWORK = "NETWORK_ERROR"
    UNKNOWN = "UNKNOWN_ERROR"
    HISTORY = "HISTORY_ERROR"
    CONVERSATIONS = "CONVERSATIONS_ERROR"


_MESSAGES = {
    ChatErrorCode.AUTH: "Authentication failed. Please log in again.",
    ChatErrorCode.VALIDATION: "Invalid request. Please check your input.",
    ChatErrorCode.SERVER: "Server error. Please try again later.",
    ChatErrorCode.NETWORK: "Network error. Please check your connection.",
    ChatErrorCode.UNKNOWN: "Something went wrong. Please try again.",
    ChatErrorCode.HISTORY: "Failed to load conversation history.",
    ChatErrorCode.CONVERSATIONS: "Failed to load conversations.",
}


@dataclass(frozen=True)
class ChatResult:
    success: bool
    data: Any = None
    error: str | None = None
    code: ChatErrorCode | None = None

    @classmethod
    def ok(cls, data: Any) -> ChatResult:
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, code: ChatErrorCode, message: str | None = None) -> ChatResult:
        return cls(success=False, error=message or _MESSAGES[code], code=code)

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error, "code": self.code.value}


def classify_chat_error(exc: Exception) -> ChatResult:
    """Map a failed ask request onto an error code and message.

    A 400 keeps the backend's ``detail`` text when it sent one.
    """
    if isinstance(exc, BackendAuthError):
        return ChatResult.failed(ChatErrorCode.AUTH)
    if isinstance(exc, BackendConnectionError):
        return ChatResult.failed(ChatErrorCode.NETWORK)
    if isinstance(exc, BackendResponseError) and exc.status_code is not None:
        if exc.status_code == 400:
            detail = exc.detail if isinstance(exc.detail, str) and exc.detail else None
            return ChatResult.failed(ChatErrorCode.VALIDATION, detail)
        if exc.status_code >= 500:
            return ChatResult.failed(ChatErrorCode.SERVER)
    return ChatResult.failed(ChatErrorCode.UNKNOWN)


def _iso_now(clock: Callable[[], datetime]) -> str:
    moment = clock().astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def build_chat_request(
    question: str,
    *,
    tags: Sequence[str] | None = None,
    context: str | None = None,
    date: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    conversation_id: str | None = None,
    clock: Callable[[], datetime] | None = None,
) -> dict[str, Any]:
    """Request body for the ask endpoint.

    Unset optional fields are left out. ``date`` defaults to the current
    UTC time.

    Raises:
        ValueError: If the question is blank.
    """
    question = question.strip()
    if not question:
        raise ValueError("question must not be blank")

    request: dict[str, Any] = {
        "question": question,
        "tags": list(tags or DEFAULT_TAGS),
        "context": context or DEFAULT_CONTEXT,
        "date": date or _iso_now(clock or (lambda: datetime.now(timezone.utc))),
        "start_date": start_date or None,
        "end_date": end_date or None,
        "conversation_id": conversation_id or None,
    }
    return {key: value for key, value in request.items() if value is not None}


class ChatService:
    """Wrapper over the assistant chat endpoints.

    Usage::

        chat = ChatService(client)
        result = await chat.send_message("How did I sleep this week?")
        if result.success:
            print(result.data["reply"])
    """

    def __init__(
        self,
        client: BackendClient,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = client
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def send_message(self, question: str, **options: Any) -> ChatResult:
        """Ask the assistant a question.

        ``options`` are the optional fields of :func:`build_chat_request`.
        A blank question is reported as a validation error.
        """
        try:
            request = build_chat_request(question, clock=self._clock, **options)
        except ValueError as exc:
            return ChatResult.failed(ChatErrorCode.VALIDATION, str(exc))

        try:
            data = await self._client.post(CHAT_ASK_PATH, json=request)
        except BackendClientError as exc:
            result = classify_chat_error(exc)
            logger.error("Chat request failed (%s): %s", result.code.value, exc)
            return result
        logger.info("Chat reply received for conversation %s", _conversation_id(data))
        return ChatResult.ok(data)

    async def get_conversation_history(self, limit: int = DEFAULT_HISTORY_LIMIT) -> ChatResult:
        try:
            data = await self._client.get(CHAT_HISTORY_PATH, params={"limit": limit})
        except BackendClientError as exc:
            logger.error("Chat history fetch failed: %s", exc)
            return ChatResult.failed(ChatErrorCode.HISTORY)
        return ChatResult.ok(data)

    async def get_conversation_list(self) -> ChatResult:
        try:
            data = await self._client.get(CHAT_CONVERSATIONS_PATH)
        except BackendClientError as exc:
            logger.error("Chat conversation list fetch failed: %s", exc)
            return ChatResult.failed(ChatErrorCode.CONVERSATIONS)
        return ChatResult.ok(data)


def _conversation_id(data: Any) -> Any:
    if isinstance(data, dict):
        return data.get("conversation_id")
    return None
