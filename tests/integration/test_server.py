"""Integration tests for the Occur Health MCP server."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from fastmcp import Client

from occur.core.server.app import SERVER_NAME, create_app
from occur.core.storage.state_store import InMemoryThrottleStore
from occur.domains.health.domain_logic.metric_models import MetricKind
from occur.domains.chat.service import CHAT_ASK_PATH, CHAT_HISTORY_PATH
from occur.domains.health.services.health_api import GRAPH_DATA_PATH, HEALTH_GOALS_PATH, SAVE_PATH
from occur.domains.journal.service import BY_DAY_PATH, CONVERSATION_PATH, SAVE_DETAILED_PATH


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _json(result):
    """Decode the JSON text of a tool result."""
    content = getattr(result, "content", result)
    return json.loads(content[0].text)


ALL_EXPECTED_TOOLS = [
    "health_check",
    "get_metric_data",
    "get_metric_summary",
    "health_store_status",
    "request_health_permissions",
    "sync_health_data",
    "start_journal_conversation",
    "send_journal_message",
    "update_journal_entry",
    "get_journals_by_day",
    "get_journal_monthly_summary",
    "save_journal_entry",
    "get_health_goals",
    "update_health_goals",
    "ask_health_assistant",
    "get_chat_history",
    "list_chat_conversations",
]


@pytest.fixture
def throttle():
    return InMemoryThrottleStore()


@pytest.fixture
def mcp(fake_adapter, backend, executor, throttle):
    return create_app(
        health_adapter_override=fake_adapter,
        backend_client_override=backend.client(),
        throttle_store_override=throttle,
        executor_override=executor,
    )


def _call(mcp, tool, args=None):
    async def _go():
        async with Client(mcp) as client:
            return _json(await client.call_tool(tool, args or {}))
    return _run(_go())


def test_server_starts_and_lists_tools(mcp):
    """Server should start and expose all registered tools."""
    async def _check():
        async with Client(mcp) as client:
            tools = await client.list_tools()
            tool_names = [t.name for t in tools]
            for expected in ALL_EXPECTED_TOOLS:
                assert expected in tool_names, f"Missing tool: {expected}"
    _run(_check())


def test_health_check_returns_ok(mcp):
    status = _call(mcp, "health_check")
    assert status["status"] == "ok"
    assert status["server"] == SERVER_NAME
    assert status["platform"] == "android"
    assert status["backend_base_url"] == "http://backend.test"
    assert status["last_health_upload"] is None


class TestMetricTools:
    def test_device_points(self, mcp, fake_adapter, backend):
        backend.add("POST", SAVE_PATH, {"status": "saved"})
        fake_adapter.records = {
            MetricKind.HEART_RATE: [{"beatsPerMinute": 64, "time": "2024-01-15T08:00:00Z"}],
        }
        # The fake store ignores the fetch window.
        result = _call(mcp, "get_metric_data", {"metric": "heartRate", "period": "Year"})
        assert result["metric"] == "heartRate"
        assert isinstance(result["points"], list)
        assert fake_adapter.init_calls == 1

    def test_first_chart_request_does_not_wait_for_upload(self, mcp, fake_adapter, backend, executor):
        backend.add("POST", SAVE_PATH, {"status": "saved"})
        fake_adapter.records = {
            MetricKind.STEPS: [{"count": 300, "startTime": "2024-01-15T08:00:00Z"}],
        }
        _call(mcp, "get_metric_data", {"metric": "steps", "period": "Day"})
        assert backend.calls("POST", SAVE_PATH) == []
        assert "health-initial-upload" in [name for _, name in executor.spawned]

    def test_backend_fallback(self, mcp, backend):
        backend.add("GET", GRAPH_DATA_PATH, {"graph": [{"x": "Mon", "y": 72}]})
        result = _call(mcp, "get_metric_data", {"metric": "heartRate", "period": "Week"})
        assert result["points"] == [{"label": "Mon", "value": 72}]

    def test_no_data_anywhere_is_empty(self, mcp, backend):
        backend.fail("GET", GRAPH_DATA_PATH, httpx.ConnectError("refused"))
        result = _call(mcp, "get_metric_data", {"metric": "steps", "period": "Day"})
        assert result["points"] == []

    def test_unimplemented_metric(self, mcp):
        result = _call(mcp, "get_metric_data", {"metric": "mood", "period": "Week"})
        assert result["points"] == []

    def test_store_status(self, mcp):
        status = _call(mcp, "health_store_status")
        assert status["available"] is True
        assert status["has_permissions"] is True

    def test_sync_skipped_without_data(self, mcp):
        assert _call(mcp, "sync_health_data") == {"status": "skipped"}


class TestJournalTools:
    def test_start_conversation(self, mcp, backend):
        backend.add("POST", CONVERSATION_PATH, {"conversationId": "c1", "question": "How are you?"})
        assert _call(mcp, "start_journal_conversation")["question"] == "How are you?"

    def test_backend_error_is_reported(self, mcp, backend):
        backend.add("POST", CONVERSATION_PATH, {"detail": "journal service down"}, status=503)
        result = _call(mcp, "send_journal_message", {"message": "hi", "conversation_id": "c1"})
        assert result["status"] == "error"
        assert result["status_code"] == 503

    def test_bad_date_is_reported(self, mcp, backend):
        result = _call(mcp, "get_journals_by_day", {"date": "yesterday"})
        assert result["status"] == "error"
        assert backend.calls("GET", BY_DAY_PATH) == []

    def test_update_entry(self, mcp, backend):
        backend.add("PATCH", CONVERSATION_PATH, {"ok": True})
        result = _call(
            mcp, "update_journal_entry", {"journal_id": "j1", "answers": ["calm", "soup"]}
        )
        assert result == {"status": "updated", "result": {"ok": True}}
        assert backend.json_body(backend.requests[0]) == {
            "journal_id": "j1", "mood": "calm", "food_intake": "soup",
        }

    def test_save_detailed_entry(self, mcp, backend):
        backend.add("POST", SAVE_DETAILED_PATH, {"journal_id": "j9"})
        entry = {"mood": "rested", "sleep": "8 hours", "date": "2025-01-05"}
        result = _call(mcp, "save_journal_entry", {"entry": entry})
        assert result == {"status": "saved", "result": {"journal_id": "j9"}}
        assert backend.json_body(backend.requests[0]) == entry


class TestGoalTools:
    def test_get_goals(self, mcp, backend):
        backend.add("GET", HEALTH_GOALS_PATH, {"steps": 8000})
        assert _call(mcp, "get_health_goals") == {"goals": {"steps": 8000}}

    def test_update_goals(self, mcp, backend):
        backend.add("PUT", HEALTH_GOALS_PATH, {"steps": 12000, "sleep": 480})
        result = _call(mcp, "update_health_goals", {"goals": {"steps": 12000, "sleep": 480}})
        assert result["status"] == "updated"
        request = backend.calls("PUT", HEALTH_GOALS_PATH)[0]
        assert backend.json_body(request) == {"steps": 12000, "sleep": 480}

    def test_goal_error_is_reported(self, mcp, backend):
        backend.add("GET", HEALTH_GOALS_PATH, {"detail": "down"}, status=502)
        assert _call(mcp, "get_health_goals")["status"] == "error"


class TestChatTools:
    def test_ask(self, mcp, backend):
        backend.add("POST", CHAT_ASK_PATH, {"reply": "You slept 7h on average.", "conversation_id": "a1"})
        result = _call(mcp, "ask_health_assistant", {"question": " How did I sleep? "})
        assert result == {
            "success": True,
            "data": {"reply": "You slept 7h on average.", "conversation_id": "a1"},
        }
        body = backend.json_body(backend.requests[0])
        assert body["question"] == "How did I sleep?"
        assert "conversation_id" not in body

    def test_ask_server_error(self, mcp, backend):
        backend.add("POST", CHAT_ASK_PATH, {"detail": "boom"}, status=500)
        result = _call(mcp, "ask_health_assistant", {"question": "hi"})
        assert result["success"] is False
        assert result["code"] == "SERVER_ERROR"

    def test_history_limit(self, mcp, backend):
        backend.add("GET", CHAT_HISTORY_PATH, {"history": []})
        assert _call(mcp, "get_chat_history", {"limit": 3})["success"] is True
        assert backend.requests[0].url.params["limit"] == "3"
