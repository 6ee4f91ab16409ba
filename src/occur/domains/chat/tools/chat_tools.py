"""MCP tools for the health assistant chat."""

from __future__ import annotations

import json

from fastmcp import Context, FastMCP

from occur.domains.chat.service import DEFAULT_HISTORY_LIMIT, ChatService


def register_chat_tools(mcp: FastMCP, chat: ChatService) -> None:
    """Register assistant chat tools on the MCP server."""

    @mcp.tool
    async def ask_health_assistant(
        ctx: Context,
        question: str,
        conversation_id: str = "",
        start_date: str = "",
        end_date: str = "",
        tags: list[str] | None = None,
    ) -> str:
        """Ask the health assistant a question about the user's data.

        Args:
            question: Free-text question, e.g. "How did I sleep this week?".
            conversation_id: Continue an earlier conversation.
            start_date: Optional start of a date range the question is about.
            end_date: Optional end of that range.
            tags: Optional categorization tags.
        """
        result = await chat.send_message(
            question,
            conversation_id=conversation_id or None,
            start_date=start_date or None,
            end_date=end_date or None,
            tags=tags,
        )
        return json.dumps(result.to_dict())

    @mcp.tool
    async def get_chat_history(ctx: Context, limit: int = DEFAULT_HISTORY_LIMIT) -> str:
        """Most recent assistant chat messages.

        Args:
            limit: Number of messages to return.
        """
        return json.dumps((await chat.get_conversation_history(limit)).to_dict())

    @mcp.tool
    async def list_chat_conversations(ctx: Context) -> str:
        """All of the user's assistant conversations."""
        return json.dumps((await chat.get_conversation_list()).to_dict())
