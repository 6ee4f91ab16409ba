"""Journal conversation client.

The backend drives the journaling conversation: starting one returns the
first question, each answer returns either the next question or a closing
``message``. Errors propagate as ``BackendClientError`` subclasses.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

from occur.core.api.client import API_PREFIX, BackendClient

logger = logging.getLogger(__name__)

CONVERSATION_PATH = f"{API_PREFIX}/journal/journal/conversation"
BY_DAY_PATH = f"{API_PREFIX}/journal/journal/by-day"
MONTHLY_SUMMARY_PATH = f"{API_PREFIX}/journal/journal/summary/month"
SAVE_DETAILED_PATH = f"{API_PREFIX}/journal/journal/save-detailed"

# Answers to the journaling questions, in the order they are asked.
# Answers beyond the last field are joined into ``extra_note``.
JOURNAL_ANSWER_FIELDS = ("mood", "food_intake", "personal", "work_or_study", "sleep")


def build_journal_update(journal_id: str, answers: Sequence[str]) -> dict[str, Any]:
    """Map an edit session's answers onto the journal entry's fields."""
    update: dict[str, Any] = {"journal_id": journal_id}
    for field, answer in zip(JOURNAL_ANSWER_FIELDS, answers):
        update[field] = answer
    extra = answers[len(JOURNAL_ANSWER_FIELDS):]
    if extra:
        update["extra_note"] = " | ".join(extra)
    return update


def _format_day(day: date | str) -> str:
    if isinstance(day, datetime):
        day = day.date()
    if isinstance(day, date):
        return day.isoformat()
    # Validate and normalise "2025-01-05"
    return date.fromisoformat(day).isoformat()


class JournalService:
    """Wrapper over the journal endpoints.

    Usage::

        journal = JournalService(client)
        first = await journal.start_conversation()
        reply = await journal.send_message("Pretty good", first.get("conversationId"))
    """

    def __init__(self, client: BackendClient) -> None:
        self._client = client

    async def start_conversation(self) -> dict[str, Any]:
        data = await self._client.post(CONVERSATION_PATH, json={})
        logger.info("Journal conversation started")
        return data or {}

    async def send_message(
        self, message: str, conversation_id: str | None = None
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"message": message}
        if conversation_id:
            body["conversation_id"] = conversation_id
        return await self._client.post(CONVERSATION_PATH, json=body) or {}

    async def update_conversation_journal(self, update_data: dict[str, Any]) -> Any:
        """PATCH an existing journal entry (``journal_id`` plus changed fields)."""
        if not update_data.get("journal_id"):
            raise ValueError("update_data requires a journal_id")
        result = await self._client.patch(CONVERSATION_PATH, json=update_data)
        logger.info("Journal %s updated", update_data["journal_id"])
        return result

    async def get_journals_by_day(self, day: date | str) -> Any:
        """Journal entries for one calendar day.

        Raises:
            ValueError: If ``day`` is a string that is not ``YYYY-MM-DD``.
        """
        return await self._client.get(BY_DAY_PATH, params={"date": _format_day(day)})

    async def get_monthly_summary(self) -> Any:
        return await self._client.get(MONTHLY_SUMMARY_PATH)

    async def save_detailed_journal(self, journal_data: dict[str, Any]) -> Any:
        """Save a complete entry written outside the conversation flow."""
        if not journal_data:
            raise ValueError("journal_data must not be empty")
        result = await self._client.post(SAVE_DETAILED_PATH, json=journal_data)
        logger.info("Detailed journal entry saved")
        return result
