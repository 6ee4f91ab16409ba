"""MCP tools for the journaling conversation."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastmcp import Context, FastMCP

from occur.core.api.client import BackendClientError, BackendResponseError
from occur.domains.journal.service import JournalService, build_journal_update

logger = logging.getLogger(__name__)


def _error(exc: Exception) -> str:
    payload = {"status": "error", "message": str(exc)}
    if isinstance(exc, BackendResponseError) and exc.status_code is not None:
        payload["status_code"] = exc.status_code
    return json.dumps(payload)


def register_journal_tools(mcp: FastMCP, journal: JournalService) -> None:
    """Register journal conversation tools on the MCP server."""

    @mcp.tool
    async def start_journal_conversation(ctx: Context) -> str:
        """Start today's journaling conversation and get the first question."""
        try:
            return json.dumps(await journal.start_conversation())
        except BackendClientError as exc:
            logger.error("Failed to start journal conversation: %s", exc)
            return _error(exc)

    @mcp.tool
    async def send_journal_message(
        ctx: Context, message: str, conversation_id: str = ""
    ) -> str:
        """Answer the current journaling question.

        Args:
            message: The user's answer.
            conversation_id: Conversation id returned when it was started.
        """
        try:
            reply = await journal.send_message(message, conversation_id or None)
        except BackendClientError as exc:
            logger.error("Failed to send journal message: %s", exc)
            return _error(exc)
        return json.dumps(reply)

    @mcp.tool
    async def update_journal_entry(ctx: Context, journal_id: str, answers: list[str]) -> str:
        """Replace an existing journal entry's answers.

        Args:
            journal_id: Entry to update.
            answers: New answers in question order (mood, food intake,
                personal, work or study, sleep, then extra notes).
        """
        try:
            result = await journal.update_conversation_journal(
                build_journal_update(journal_id, answers)
            )
        except (BackendClientError, ValueError) as exc:
            logger.error("Failed to update journal %s: %s", journal_id, exc)
            return _error(exc)
        return json.dumps({"status": "updated", "result": result})

    @mcp.tool
    async def get_journals_by_day(ctx: Context, date: str) -> str:
        """Journal entries for a day.

        Args:
            date: Calendar day as YYYY-MM-DD.
        """
        try:
            return json.dumps(await journal.get_journals_by_day(date))
        except (BackendClientError, ValueError) as exc:
            logger.error("Failed to fetch journals for %s: %s", date, exc)
            return _error(exc)

    @mcp.tool
    async def get_journal_monthly_summary(ctx: Context) -> str:
        """Summary of this month's journal entries."""
        try:
            return json.dumps(await journal.get_monthly_summary())
        except BackendClientError as exc:
            logger.error("Failed to fetch monthly journal summary: %s", exc)
            return _error(exc)

    @mcp.tool
    async def save_journal_entry(ctx: Context, entry: dict[str, Any]) -> str:
        """Save a complete journal entry written outside the conversation.

        Args:
            entry: Entry fields, e.g. mood, food_intake, personal,
                work_or_study, sleep, extra_note and a date.
        """
        try:
            result = await journal.save_detailed_journal(entry)
        except (BackendClientError, ValueError) as exc:
            logger.error("Failed to save journal entry: %s", exc)
            return _error(exc)
        return json.dumps({"status": "saved", "result": result})
