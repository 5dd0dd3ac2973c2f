import json
import pathlib
import sys
from typing import Any, Callable

import httpx
import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from edge_relay.config import Settings  # noqa: E402

_ENV_KEYS = (
    "GEMINI_API_KEY",
    "ANTHROPIC_API_KEY",
    "XAI_API_KEY",
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "SUPABASE_SERVICE_ROLE_KEY",
    "TOOLS_BASE_URL",
    "UPSTREAM_TIMEOUT",
    "CONTEXT_CHAR_LIMIT",
    "VISION_BATCH_SIZE",
    "DEFAULT_MAX_OUTPUT_TOKENS",
)


@pytest.fixture
def make_settings(monkeypatch) -> Callable[..., Settings]:
    """Build `Settings` isolated from the host environment and `.env`."""

    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)

    def _factory(**overrides: Any) -> Settings:
        return Settings(_env_file=None, **overrides)  # pyright: ignore[reportCallIssue]

    return _factory


def sse_body(*payloads: Any, done: bool = False) -> bytes:
    """Encode payloads as an upstream `data:` stream."""

    lines = [f"data: {json.dumps(payload)}\n\n" for payload in payloads]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


def parse_sse_events(text: str) -> list[dict[str, Any]]:
    """Decode the relay's own `data:` lines back into event dicts."""

    events = []
    for line in text.splitlines():
        if line.startswith("data: "):
            events.append(json.loads(line[len("data: ") :]))
    return events


class RecordingTransport:
    """`httpx.MockTransport` handler that records requests and routes by URL."""

    def __init__(self, routes: dict[str, Callable[[httpx.Request], httpx.Response]]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        for fragment, handler in self.routes.items():
            if fragment in url:
                return handler(request)
        return httpx.Response(404, json={"error": f"no route for {url}"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def json_bodies(self, fragment: str) -> list[Any]:
        return [
            json.loads(request.content)
            for request in self.requests
            if fragment in str(request.url)
        ]
