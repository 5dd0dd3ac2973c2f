"""Sequential execution of auxiliary tools ahead of the model call."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

import httpx

from ..schemas.chat import ToolInstance

logger = logging.getLogger(__name__)


class ToolConfigError(ValueError):
    """A tool instance is missing configuration it cannot run without."""


BodyBuilder = Callable[[Mapping[str, Any], str], dict[str, Any]]


@dataclass(frozen=True)
class ToolSpec:
    endpoint: str
    label: str
    build_body: BodyBuilder


@dataclass
class ToolRun:
    """Outputs in submission order plus the text appended to the user prompt."""

    outputs: list[dict[str, Any]] = field(default_factory=list)
    text: str = ""


def _require(config: Mapping[str, Any], tool_id: str, *keys: str) -> None:
    missing = [key for key in keys if not config.get(key)]
    if missing:
        names = ", ".join(f"'{key}'" for key in missing)
        raise ToolConfigError(f"{tool_id} requires {names}")


def _google_search_body(config: Mapping[str, Any], user_prompt: str) -> dict[str, Any]:
    _require(config, "google_search", "apiKey", "searchEngineId")
    return {
        "query": config.get("query") or user_prompt,
        "apiKey": config["apiKey"],
        "searchEngineId": config["searchEngineId"],
    }


def _weather_body(config: Mapping[str, Any], _user_prompt: str) -> dict[str, Any]:
    _require(config, "weather", "apiKey")
    return {"location": config.get("location") or "New York", "apiKey": config["apiKey"]}


def _time_body(config: Mapping[str, Any], _user_prompt: str) -> dict[str, Any]:
    return {"timezone": config.get("timezone") or "UTC"}


def _web_scrape_body(config: Mapping[str, Any], _user_prompt: str) -> dict[str, Any]:
    _require(config, "web_scrape", "url")
    return {"url": config["url"]}


def _api_call_body(config: Mapping[str, Any], _user_prompt: str) -> dict[str, Any]:
    _require(config, "api_call", "url")
    headers = config.get("headers") or {}
    if isinstance(headers, str):
        try:
            headers = json.loads(headers)
        except json.JSONDecodeError as exc:
            raise ToolConfigError(f"api_call headers are not valid JSON: {exc.msg}") from exc
    if not isinstance(headers, Mapping):
        raise ToolConfigError("api_call headers must be an object")

    body: dict[str, Any] = {
        "url": config["url"],
        "method": str(config.get("method") or "GET").upper(),
        "headers": dict(headers),
    }
    if config.get("body") is not None:
        body["body"] = config["body"]
    return body


TOOL_REGISTRY: dict[str, ToolSpec] = {
    "google_search": ToolSpec("google-search", "Google Search", _google_search_body),
    "weather": ToolSpec("weather", "Weather Data", _weather_body),
    "time": ToolSpec("time", "Current Time", _time_body),
    "web_scrape": ToolSpec("web-scrape", "Web Scrape", _web_scrape_body),
    "api_call": ToolSpec("api-call", "API Call", _api_call_body),
}


def compose_user_prompt(user_prompt: str, tool_text: str) -> str:
    """Append tool output to the user prompt (uncapped)."""

    if not tool_text:
        return user_prompt
    return f"{user_prompt}\n\nTool Results:{tool_text}"


class ToolExecutor:
    """Run tool instances one after another against the tool function backend."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str | None,
        *,
        authorization: str | None = None,
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/") if base_url else None
        self._authorization = authorization

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._authorization:
            headers["Authorization"] = self._authorization
        return headers

    async def _invoke(self, spec: ToolSpec, body: dict[str, Any]) -> Any:
        if self._base_url is None:
            raise ToolConfigError("Tool backend URL is not configured")

        response = await self._http.post(
            f"{self._base_url}/{spec.endpoint}",
            headers=self._headers(),
            json=body,
        )
        if response.status_code >= 400:
            raise RuntimeError(
                f"{spec.endpoint} returned HTTP {response.status_code}: "
                f"{response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise RuntimeError(f"{spec.endpoint} returned a non-JSON body") from exc

    async def run(self, tools: Sequence[ToolInstance], user_prompt: str) -> ToolRun:
        """Execute ``tools`` in order; a failing tool is recorded and skipped past."""

        result = ToolRun()
        for instance in tools:
            tool_id = instance.tool_id
            logger.info("Executing tool: %s", tool_id)
            try:
                spec = TOOL_REGISTRY.get(tool_id)
                if spec is None:
                    raise ToolConfigError(f"Unknown tool: {tool_id}")
                body = spec.build_body(instance.config, user_prompt)
                output = await self._invoke(spec, body)
            except Exception as exc:
                message = str(exc) or type(exc).__name__
                logger.error("Error executing tool %s: %s", tool_id, message)
                result.outputs.append({"toolId": tool_id, "output": {"error": message}})
                result.text += f"\n\nTool {tool_id} Error: {message}"
                continue

            logger.debug("Tool output [%s]: %s", tool_id, output)
            result.outputs.append({"toolId": tool_id, "output": output})
            result.text += f"\n\n{spec.label} Results: {json.dumps(output)}"
        return result


__all__ = [
    "TOOL_REGISTRY",
    "ToolConfigError",
    "ToolExecutor",
    "ToolRun",
    "ToolSpec",
    "compose_user_prompt",
]
