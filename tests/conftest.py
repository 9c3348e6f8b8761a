"""Shared test fixtures for datamirror.

Provides a fake HTTP origin backed by :class:`httpx.MockTransport`, a
controllable clock, a :class:`~datamirror.mirror.Mirror` wired to both,
and isolation of the global output/mirror state and XDG directories.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, Optional, Union

import httpx
import pytest

from datamirror.identity import StaticPrincipal
from datamirror.mirror import Mirror, reset_mirror
from datamirror.models import MirrorConfig
from datamirror.output import reset_terminal


Route = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeOrigin:
    """In-memory HTTP origin that records every request it receives.

    Routes map a full URL to either a fixed :class:`httpx.Response` or a
    handler callable. Unknown URLs answer 404.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Route] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, route: Route) -> None:
        self.routes[url] = route

    def ok(self, url: str, body: bytes, headers: Optional[dict[str, str]] = None) -> None:
        self.add(url, httpx.Response(200, content=body, headers=headers or {}))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, content=b"not found")
        if callable(route):
            return route(request)
        return route

    def count(self, url: Optional[str] = None) -> int:
        if url is None:
            return len(self.requests)
        return sum(1 for r in self.requests if str(r.url) == url)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


class FakeClock:
    """Manually advanced clock; starts at the current whole second."""

    def __init__(self) -> None:
        self.now = float(int(time.time()))

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_globals() -> None:
    """Reset the global Terminal and default Mirror after every test."""
    yield
    reset_terminal()
    reset_mirror()


# ---------------------------------------------------------------------------
# Network / time fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def origin() -> FakeOrigin:
    return FakeOrigin()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def http_client(origin: FakeOrigin) -> httpx.Client:
    client = httpx.Client(transport=httpx.MockTransport(origin))
    yield client
    client.close()


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def make_mirror(
    cache_dir: Path,
    http_client: httpx.Client,
    clock: FakeClock,
) -> Callable[..., Mirror]:
    """Factory for mirrors sharing the fake origin, clock and cache dir.

    Keyword arguments are forwarded to :class:`MirrorConfig`.
    """

    def _make(principal: str = "alice", **config: object) -> Mirror:
        config.setdefault("cache_dir", str(cache_dir))
        return Mirror(
            MirrorConfig(**config),
            client=http_client,
            principal=StaticPrincipal(principal),
            clock=clock,
        )

    return _make


@pytest.fixture
def mirror(make_mirror: Callable[..., Mirror]) -> Mirror:
    """A mirror with the default 300 second TTL."""
    return make_mirror()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    and clears DATAMIRROR_* environment variables.
    """
    monkeypatch.setattr("datamirror.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["DATAMIRROR_TTL", "DATAMIRROR_CACHE_DIR"]:
        monkeypatch.delenv(var, raising=False)
    return tmp_path
