"""
Shared pytest fixtures for bot hub tests.

This module provides:
- FakeDiscordClient: stands in for discord.Client (login/connect/wait_for/close)
- Fake guild/channel/message objects for the pass-through endpoints
- A controllable clock for registry expiry tests
"""

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest


# =============================================================================
# Discord fakes
# =============================================================================

_message_ids = itertools.count(900000000000000001)


class FakeUser:
    def __init__(self, tag: str):
        self.tag = tag

    def __str__(self) -> str:
        return self.tag


@dataclass
class FakeMessage:
    id: int
    content: str


class FakeTextChannel:
    """A channel with send(), like discord.TextChannel."""

    def __init__(self, id: int, name: str, type: int = 0, send_error: Optional[Exception] = None):
        self.id = id
        self.name = name
        self.type = type
        self.send_error = send_error
        self.sent: List[FakeMessage] = []

    async def send(self, content: str = None, **kwargs) -> FakeMessage:
        if self.send_error is not None:
            raise self.send_error
        msg = FakeMessage(id=next(_message_ids), content=content)
        self.sent.append(msg)
        return msg


class FakeForumChannel:
    """No send(): posting in a forum needs a thread."""

    def __init__(self, id: int, name: str):
        self.id = id
        self.name = name
        self.type = 15


class FakeVoiceChannel:
    def __init__(self, id: int, name: str):
        self.id = id
        self.name = name
        self.type = 2


@dataclass
class FakeGuild:
    id: int
    name: str
    channels: List[Any] = field(default_factory=list)


class FakeDiscordClient:
    """
    Mimics the parts of discord.Client used by the handshake and the API.

    ready_after: seconds after connect() before READY is dispatched
                 (None = never becomes ready on its own)
    """

    def __init__(
        self,
        *,
        tag: str = "HubBot#0001",
        login_error: Optional[Exception] = None,
        gateway_error: Optional[Exception] = None,
        close_error: Optional[Exception] = None,
        ready_after: Optional[float] = 0.0,
        guilds: Optional[List[FakeGuild]] = None,
        fetch_error: Optional[Exception] = None,
    ):
        self.tag = tag
        self.login_error = login_error
        self.gateway_error = gateway_error
        self.close_error = close_error
        self.ready_after = ready_after
        self.fetch_error = fetch_error
        self.guilds: List[FakeGuild] = guilds or []

        self.user: Optional[FakeUser] = None
        self.login_calls: List[str] = []
        self.close_calls = 0
        self.connect_calls = 0
        self._ready = False
        self._closed = False
        self._closed_event = asyncio.Event()
        self._listeners: List[Tuple[str, asyncio.Future]] = []

    # -- lifecycle ---------------------------------------------------------
    async def login(self, token: str) -> None:
        self.login_calls.append(token)
        if self.login_error is not None:
            raise self.login_error

    async def connect(self, reconnect: bool = True) -> None:
        self.connect_calls += 1
        await asyncio.sleep(0)
        if self.gateway_error is not None:
            raise self.gateway_error
        if self.ready_after is not None:
            await asyncio.sleep(self.ready_after)
            self.mark_ready()
        await self._closed_event.wait()

    async def close(self) -> None:
        self.close_calls += 1
        self._closed = True
        self._ready = False
        self._closed_event.set()
        if self.close_error is not None:
            raise self.close_error

    def is_ready(self) -> bool:
        return self._ready

    def is_closed(self) -> bool:
        return self._closed

    # -- events ------------------------------------------------------------
    def wait_for(self, event: str) -> asyncio.Future:
        fut = asyncio.get_running_loop().create_future()
        self._listeners.append((event, fut))
        return fut

    def dispatch(self, event: str) -> None:
        for name, fut in self._listeners:
            if name == event and not fut.done():
                fut.set_result(None)
        self._listeners = [(n, f) for n, f in self._listeners if not f.done()]

    def pending_listeners(self) -> int:
        return sum(1 for _, f in self._listeners if not f.done())

    def mark_ready(self) -> None:
        self.user = FakeUser(self.tag)
        self._ready = True
        self.dispatch("ready")

    # -- cache / REST --------------------------------------------------------
    def get_guild(self, guild_id: int) -> Optional[FakeGuild]:
        for g in self.guilds:
            if g.id == guild_id:
                return g
        return None

    def get_channel(self, channel_id: int):
        for g in self.guilds:
            for c in g.channels:
                if c.id == channel_id:
                    return c
        return None

    async def fetch_channel(self, channel_id: int):
        if self.fetch_error is not None:
            raise self.fetch_error
        return None


# =============================================================================
# Fixtures
# =============================================================================

class FakeClock:
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock(start=1000.0)


@pytest.fixture
def make_connection():
    """Connection stand-in with an AsyncMock close()."""

    def _make(close_error: Optional[Exception] = None) -> MagicMock:
        conn = MagicMock()
        conn.close = AsyncMock(side_effect=close_error)
        return conn

    return _make


@pytest.fixture
def sample_guilds() -> List[FakeGuild]:
    return [
        FakeGuild(
            id=111111111111111111,
            name="Test Guild",
            channels=[
                FakeTextChannel(id=222222222222222221, name="general", type=0),
                FakeTextChannel(id=222222222222222222, name="announcements", type=5),
                FakeForumChannel(id=222222222222222223, name="forum"),
                FakeVoiceChannel(id=222222222222222224, name="Voice"),
            ],
        ),
        FakeGuild(id=111111111111111112, name="Other Guild"),
    ]


@pytest.fixture
def client_pool() -> Dict[str, FakeDiscordClient]:
    """sessionId -> prepared FakeDiscordClient, handed out by the client factory."""
    return {}
