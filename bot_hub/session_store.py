"""
In-memory session registry for the bot hub.

Session scope: caller-supplied sessionId (one browser tab = one bot).

All mutation happens on the event loop thread, so a lookup followed by a
map mutation never interleaves with another request or with the sweeper as
long as there is no await in between. Teardown (connection.close()) is the
only suspension point and it always runs after the map is already updated.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

import config
from logger import setup_logger


logger = setup_logger(__name__, config.LOG_FILE, config.LOG_LEVEL)


class Closeable(Protocol):
    """
    What the registry needs from a connection: a way to tear it down.
    """

    async def close(self) -> None:
        ...


@dataclass
class SessionRecord:
    session_id: str
    connection: Optional[Closeable]
    client_id: Optional[str] = None
    created_at: float = field(default_factory=time.monotonic)
    generation: int = 0


class SessionRegistry:
    def __init__(
        self,
        idle_timeout_seconds: float = config.SESSION_IDLE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.idle_timeout_seconds = float(idle_timeout_seconds)
        self._clock = clock
        self._sessions: Dict[str, SessionRecord] = {}
        # sessionId -> stamp of the latest configuration attempt / record
        self._generations: Dict[str, int] = {}
        self._counter = itertools.count(1)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return str(session_id) in self._sessions

    def ids(self) -> List[str]:
        return list(self._sessions.keys())

    def get(self, session_id: str) -> Optional[SessionRecord]:
        return self._sessions.get(str(session_id))

    def begin(self, session_id: str) -> int:
        """
        Start a configuration attempt for session_id.

        Returns a generation stamp. Any later begin()/remove() on the same key
        makes this stamp stale, and a stale upsert() is refused.
        """
        gen = next(self._counter)
        self._generations[str(session_id)] = gen
        return gen

    def is_current(self, session_id: str, generation: int) -> bool:
        return self._generations.get(str(session_id)) == generation

    async def upsert(
        self,
        session_id: str,
        connection: Closeable,
        client_id: Optional[str] = None,
        generation: Optional[int] = None,
    ) -> bool:
        sid = str(session_id)
        if generation is not None and not self.is_current(sid, generation):
            # Disconnected (or reconfigured) while this handshake was pending
            logger.info(f"[Session] {sid} handshake superseded; discarding new connection")
            await self._close(sid, connection)
            return False

        if generation is None:
            generation = self.begin(sid)

        old = self._sessions.pop(sid, None)
        teardown = None
        if old is not None and old.connection is not None and old.connection is not connection:
            teardown = asyncio.ensure_future(self._close(sid, old.connection))

        self._sessions[sid] = SessionRecord(
            session_id=sid,
            connection=connection,
            client_id=client_id or None,
            created_at=self._clock(),
            generation=generation,
        )
        if old is not None:
            logger.info(f"[Session] {sid} replaced")
        else:
            logger.info(f"[Session] {sid} created")

        if teardown is not None:
            await teardown
        return True

    async def remove(self, session_id: str, generation: Optional[int] = None) -> bool:
        """
        Drop session_id and close its connection.

        Returns False only when generation is given and no longer current.
        An absent key is a successful no-op.
        """
        sid = str(session_id)
        if generation is not None and not self.is_current(sid, generation):
            return False

        self._generations.pop(sid, None)
        record = self._sessions.pop(sid, None)
        if record is None:
            return True

        if record.connection is not None:
            await self._close(sid, record.connection)
        logger.info(f"[Session] {sid} disconnected")
        return True

    async def sweep(self, now: Optional[float] = None) -> List[str]:
        if now is None:
            now = self._clock()

        expired = [
            rec for rec in self._sessions.values()
            if now - rec.created_at > self.idle_timeout_seconds
        ]
        teardowns: List[Awaitable[None]] = []
        for rec in expired:
            self._sessions.pop(rec.session_id, None)
            # keep the stamp if a newer handshake for this key is in flight
            if self._generations.get(rec.session_id) == rec.generation:
                self._generations.pop(rec.session_id, None)
            if rec.connection is not None:
                teardowns.append(self._close(rec.session_id, rec.connection))
            logger.info(f"[Session] {rec.session_id} expired and removed")

        if teardowns:
            await asyncio.gather(*teardowns)
        return [rec.session_id for rec in expired]

    async def close_all(self) -> None:
        for sid in self.ids():
            await self.remove(sid)

    async def _close(self, session_id: str, connection: Closeable) -> None:
        # best-effort: the client may already be closed or never connected
        try:
            await connection.close()
        except Exception as e:
            logger.warning(f"[Session] {session_id} teardown failed: {e!r}")
