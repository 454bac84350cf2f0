"""Pytest configuration - loads .env for integration tests and fakes the HTTP layer for unit tests."""

import json
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv

from netric_cli.sdk import ApiCaller

# Load .env from project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path)

SERVER = "https://test.netric.com"
TOKEN = "session-token-123"


class FakeResponse:
    """Minimal stand-in for the object urlopen returns."""

    def __init__(self, body: bytes):
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc: Any) -> bool:
        return False


@dataclass
class FakeServer:
    """
    Routes requests by ``controller/action`` to canned payloads.

    A route value may be a JSON-serializable payload, raw bytes, an exception
    to raise, or a callable taking the request and returning one of those.
    """

    routes: dict[str, Any] = field(default_factory=dict)
    requests: list[urllib.request.Request] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.routes.setdefault("authentication/authenticate", {"result": "SUCCESS", "session_token": TOKEN})

    def urlopen(self, req: urllib.request.Request, timeout: Any = None, context: Any = None) -> FakeResponse:
        self.requests.append(req)
        route = self.route_of(req)
        if route not in self.routes:
            raise AssertionError(f"Unexpected request to {route}")

        payload = self.routes[route]
        if callable(payload):
            payload = payload(req)
        if isinstance(payload, BaseException):
            raise payload
        if isinstance(payload, bytes):
            return FakeResponse(payload)
        return FakeResponse(json.dumps(payload).encode("utf-8"))

    @staticmethod
    def route_of(req: urllib.request.Request) -> str:
        path = urllib.parse.urlsplit(req.full_url).path
        return path.split("/api/2/", 1)[1]

    def routes_called(self) -> list[str]:
        return [self.route_of(req) for req in self.requests]

    def last_request(self) -> urllib.request.Request:
        return self.requests[-1]

    def last_body(self) -> Any:
        return json.loads(self.last_request().data.decode("utf-8"))

    def last_query(self) -> str:
        return urllib.parse.urlsplit(self.last_request().full_url).query


@pytest.fixture
def fake_server(monkeypatch):
    """Replace urllib's urlopen with an in-memory server."""
    server = FakeServer()
    monkeypatch.setattr(urllib.request, "urlopen", server.urlopen)
    return server


@pytest.fixture
def api(fake_server):
    """An ApiCaller pointed at the fake server."""
    return ApiCaller(server=SERVER, application_id="app-id", application_key="app-key")
