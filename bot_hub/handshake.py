"""
Bot connection + bounded READY handshake.

discord.py splits a connection in two: login() authenticates over HTTP
(bad tokens fail here), connect() runs the gateway websocket until close().
The gateway is run as a background task owned by BotConnection; the
handshake waits at most `timeout` seconds for READY before handing the
connection back, ready or not.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import discord

import config
from logger import setup_logger


logger = setup_logger(__name__, config.LOG_FILE, config.LOG_LEVEL)


def build_client(session_id: str) -> discord.Client:
    """Client with the minimum intents needed to list guilds/channels and post."""
    intents = discord.Intents.none()
    intents.guilds = True
    intents.guild_messages = True

    client = discord.Client(intents=intents)

    @client.event
    async def on_ready():
        logger.info(f"[Bot {session_id}] ready as {client.user or '<unknown>'}")

    return client


class BotConnection:
    """
    One Discord bot connection owned by one session record.
    """

    def __init__(self, client: discord.Client, session_id: str):
        self.client = client
        self.session_id = session_id
        self._gateway_task: Optional[asyncio.Task] = None

    def is_ready(self) -> bool:
        return not self.client.is_closed() and self.client.is_ready()

    @property
    def bot_tag(self) -> Optional[str]:
        user = self.client.user
        return str(user) if user is not None else None

    def start_gateway(self) -> asyncio.Task:
        if self._gateway_task is None:
            self._gateway_task = asyncio.create_task(self._run_gateway())
            self._gateway_task.add_done_callback(self._on_gateway_done)
        return self._gateway_task

    async def _run_gateway(self) -> None:
        await self.client.connect(reconnect=True)

    def _on_gateway_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[Bot {self.session_id}] gateway stopped: {exc!r}")

    async def close(self) -> None:
        try:
            await self.client.close()
        finally:
            task = self._gateway_task
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception:
                    # already reported by _on_gateway_done
                    pass


@dataclass(frozen=True)
class HandshakeResult:
    connection: BotConnection
    ready: bool
    bot_tag: Optional[str]


Connector = Callable[[str, str], Awaitable[HandshakeResult]]


async def establish(
    token: str,
    session_id: str,
    timeout: float = config.READY_TIMEOUT_SECONDS,
    client_factory: Callable[[str], discord.Client] = build_client,
) -> HandshakeResult:
    """
    Log in and wait for READY, a gateway error, or `timeout`, whichever first.

    - login failure (bad token, network) -> raised, client closed
    - gateway task dying with an exception before READY -> raised, client closed
    - timeout -> returned with ready=False; the gateway keeps trying
    """
    client = client_factory(session_id)
    connection = BotConnection(client, session_id)

    try:
        await client.login(token)
    except BaseException:
        await connection.close()
        raise

    # Registered before the gateway starts so READY can't slip past it
    ready_waiter = asyncio.ensure_future(client.wait_for("ready"))
    try:
        gateway = connection.start_gateway()
        if not client.is_ready():
            done, _ = await asyncio.wait(
                {ready_waiter, gateway},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if gateway in done and not gateway.cancelled() and gateway.exception() is not None:
                raise gateway.exception()
            if not done:
                logger.warning(f"[Bot {session_id}] not ready after {timeout:.1f}s; keeping connection")
    except BaseException:
        await connection.close()
        raise
    finally:
        # one-shot: never leave the waiter registered on the client
        ready_waiter.cancel()

    ready = connection.is_ready()
    return HandshakeResult(connection=connection, ready=ready, bot_tag=connection.bot_tag)
