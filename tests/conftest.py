"""Shared test fixtures."""
import sys
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import orjson
import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from core.config import VenueSettings  # noqa: E402
from core.types import Credential, TransportResponse  # noqa: E402
from gateway.transport import Transport  # noqa: E402

FIXED_NOW_MS = 1700000000000


@dataclass
class SentRequest:
    method: str
    path: str
    query: Dict[str, str]
    body: Optional[str]
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def json(self) -> dict:
        return orjson.loads(self.body) if self.body else {}


class FakeTransport(Transport):
    """Scripted responses per (method, path). The last response on a route
    repeats, so a single pending entry can serve any number of polls."""

    def __init__(self):
        self.routes: Dict[tuple, list] = {}
        self.requests: List[SentRequest] = []
        self.closed = False

    def add(self, method: str, path: str, *responses) -> "FakeTransport":
        self.routes.setdefault((method, path), []).extend(responses)
        return self

    def add_json(self, method: str, path: str, payload, status: int = 200) -> "FakeTransport":
        return self.add(method, path, TransportResponse(status, orjson.dumps(payload).decode()))

    def calls(self, method: str, path: str) -> List[SentRequest]:
        return [r for r in self.requests if r.method == method and r.path == path]

    async def send(self, request):
        self.requests.append(SentRequest(
            request.method.value, request.path, dict(request.query),
            request.body, dict(request.headers),
        ))
        queue = self.routes.get((request.method.value, request.path))
        if not queue:
            raise AssertionError(f"Unexpected request {request.endpoint}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, now_ms: int = FIXED_NOW_MS):
        self.now = now_ms
        self.sleeps: List[float] = []

    def now_ms(self) -> int:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def credential():
    return Credential("test-key", "test-secret", "test-pass")


@pytest.fixture
def settings():
    return VenueSettings(
        base_url="https://example.test",
        withdrawal_interval_s=10,
        withdrawal_max_attempts=500,
        deposit_interval_s=5,
        deposit_max_attempts=1000,
        transient_retries=3,
        transient_backoff_s=2,
    )


@pytest.fixture
def messages():
    return []


@pytest.fixture
def make_client(credential, settings, transport, clock, messages):
    """Build any venue client wired to the fake transport and clock."""
    def _make(cls, **overrides):
        return cls(
            overrides.pop("credential", credential),
            settings=overrides.pop("settings", settings),
            transport=transport,
            clock=clock,
            on_message=messages.append,
        )
    return _make
