"""Tests for sequential tool execution."""

from __future__ import annotations

import json

import httpx
import pytest

from conftest import RecordingTransport
from edge_relay.relay.tools import ToolExecutor, compose_user_prompt
from edge_relay.schemas.chat import ToolInstance

BASE_URL = "https://tools.example.test/functions/v1"


def _tool(tool_id: str, **config) -> ToolInstance:
    return ToolInstance(tool_id=tool_id, config=config)


@pytest.mark.asyncio
async def test_outputs_follow_submission_order_and_failures_continue():
    routes = RecordingTransport(
        {
            "/time": lambda r: httpx.Response(200, json={"time": "12:00"}),
            "/weather": lambda r: httpx.Response(500, text="upstream down"),
            "/google-search": lambda r: httpx.Response(200, json={"items": [1]}),
        }
    )
    async with httpx.AsyncClient(transport=routes.transport()) as http:
        executor = ToolExecutor(http, BASE_URL, authorization="Bearer abc")
        run = await executor.run(
            [
                _tool("time", timezone="Europe/Paris"),
                _tool("weather", apiKey="w"),
                _tool("google_search", apiKey="g", searchEngineId="cx"),
            ],
            "find things",
        )

    assert [o["toolId"] for o in run.outputs] == ["time", "weather", "google_search"]
    assert run.outputs[0]["output"] == {"time": "12:00"}
    assert "error" in run.outputs[1]["output"]
    assert run.outputs[2]["output"] == {"items": [1]}

    assert "\n\nCurrent Time Results: " in run.text
    assert "\n\nTool weather Error: " in run.text
    assert run.text.index("Current Time") < run.text.index("Tool weather") < run.text.index(
        "Google Search Results"
    )

    # Requests are issued one after another, in order.
    assert [r.url.path.rsplit("/", 1)[-1] for r in routes.requests] == [
        "time",
        "weather",
        "google-search",
    ]
    assert routes.requests[0].headers["authorization"] == "Bearer abc"
    assert routes.json_bodies("/google-search") == [
        {"query": "find things", "apiKey": "g", "searchEngineId": "cx"}
    ]


@pytest.mark.asyncio
async def test_missing_config_and_unknown_tool_still_produce_slots():
    routes = RecordingTransport({})
    async with httpx.AsyncClient(transport=routes.transport()) as http:
        run = await ToolExecutor(http, BASE_URL).run(
            [_tool("weather"), _tool("teleport"), _tool("web_scrape")],
            "prompt",
        )

    assert len(run.outputs) == 3
    assert all("error" in o["output"] for o in run.outputs)
    assert "Unknown tool: teleport" in run.outputs[1]["output"]["error"]
    assert routes.requests == []


@pytest.mark.asyncio
async def test_api_call_body_normalizes_method_and_headers():
    routes = RecordingTransport({"/api-call": lambda r: httpx.Response(200, json={"ok": True})})
    async with httpx.AsyncClient(transport=routes.transport()) as http:
        await ToolExecutor(http, BASE_URL).run(
            [
                _tool(
                    "api_call",
                    url="https://example.test/data",
                    method="post",
                    headers=json.dumps({"X-Key": "1"}),
                    body={"a": 1},
                )
            ],
            "",
        )
    assert routes.json_bodies("/api-call") == [
        {
            "url": "https://example.test/data",
            "method": "POST",
            "headers": {"X-Key": "1"},
            "body": {"a": 1},
        }
    ]


@pytest.mark.asyncio
async def test_defaults_for_weather_and_time():
    routes = RecordingTransport(
        {
            "/weather": lambda r: httpx.Response(200, json={}),
            "/time": lambda r: httpx.Response(200, json={}),
        }
    )
    async with httpx.AsyncClient(transport=routes.transport()) as http:
        await ToolExecutor(http, BASE_URL).run([_tool("weather", apiKey="k"), _tool("time")], "")
    assert routes.json_bodies("/weather") == [{"location": "New York", "apiKey": "k"}]
    assert routes.json_bodies("/time") == [{"timezone": "UTC"}]


@pytest.mark.asyncio
async def test_unconfigured_backend_records_error():
    async with httpx.AsyncClient(transport=RecordingTransport({}).transport()) as http:
        run = await ToolExecutor(http, None).run([_tool("time")], "")
    assert run.outputs == [
        {"toolId": "time", "output": {"error": "Tool backend URL is not configured"}}
    ]


def test_compose_user_prompt():
    assert compose_user_prompt("hi", "") == "hi"
    assert compose_user_prompt("hi", "\n\nX Results: 1") == "hi\n\nTool Results:\n\nX Results: 1"
