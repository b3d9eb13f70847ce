"""
Bot hub HTTP server (FastAPI).

Serves the browser page and a small JSON API. Each browser tab picks its own
sessionId and drives an independent Discord bot through it.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import quote

import discord
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

import config
from logger import quiet_library_loggers, setup_logger

from .handshake import Connector, establish
from .protocol import (
    ChannelInfo,
    ChannelsResponse,
    ConfigRequest,
    ConfigResponse,
    DisconnectRequest,
    DisconnectResponse,
    GuildInfo,
    GuildsResponse,
    HealthResponse,
    InviteResponse,
    SendRequest,
    SendResponse,
    StatusResponse,
)
from .session_store import SessionRecord, SessionRegistry
from .sweeper import SessionSweeper


logger = setup_logger(__name__, config.LOG_FILE, config.LOG_LEVEL)


class ApiError(Exception):
    """Raised inside a route; rendered as {ok: false, error} with status_code."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _error_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def build_invite_url(client_id: str) -> str:
    return (
        f"{config.INVITE_BASE_URL}?client_id={quote(str(client_id), safe='')}"
        f"&permissions={config.INVITE_PERMISSIONS}"
        f"&scope={quote(config.INVITE_SCOPES)}"
    )


def _channel_type(channel) -> int:
    # discord.ChannelType is an enum; its value is the API integer
    return int(getattr(channel.type, "value", channel.type))


def _parse_snowflake(raw: Optional[str]) -> Optional[int]:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return None


def create_app(
    registry: Optional[SessionRegistry] = None,
    connector: Optional[Connector] = None,
    sweep_interval: Optional[float] = None,
    static_dir: Optional[str] = None,
) -> FastAPI:
    registry = registry if registry is not None else SessionRegistry()
    connector = connector or establish
    static_dir = static_dir or config.STATIC_DIR

    quiet_library_loggers(config.DISCORD_LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper = SessionSweeper(
            registry,
            interval_seconds=sweep_interval if sweep_interval is not None else config.SESSION_SWEEP_INTERVAL_SECONDS,
        )
        app.state.sweeper = sweeper
        sweeper.start()
        try:
            yield
        finally:
            await sweeper.stop()
            if len(registry):
                logger.info(f"Closing {len(registry)} bot session(s)...")
            await registry.close_all()

    app = FastAPI(title="Discord Bot Session Hub", version="0.1.0", lifespan=lifespan)
    app.state.registry = registry
    app.state.connector = connector

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content={"ok": False, "error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = errors[0].get("msg", "invalid request") if errors else "invalid request"
        return JSONResponse(status_code=400, content={"ok": False, "error": str(detail)})

    def connected_session(session_id: Optional[str]) -> SessionRecord:
        if not session_id:
            raise ApiError(400, "sessionId é obrigatório")
        record = registry.get(session_id)
        if record is None or record.connection is None or not record.connection.is_ready():
            raise ApiError(400, "bot não conectado")
        return record

    # ------------------------------------------------------------------
    # Static page
    # ------------------------------------------------------------------
    @app.get("/", include_in_schema=False)
    def index():
        path = os.path.join(static_dir, "index.html")
        if not os.path.isfile(path):
            raise ApiError(404, "index.html não encontrado")
        return FileResponse(path)

    app.mount("/static", StaticFiles(directory=static_dir, check_dir=False), name="static")

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(sessions=len(registry))

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    @app.post("/api/config", response_model=ConfigResponse)
    async def configure(body: Optional[ConfigRequest] = None) -> ConfigResponse:
        body = body or ConfigRequest()
        if not body.token:
            raise ApiError(400, "token é obrigatório")
        if not body.session_id:
            raise ApiError(400, "sessionId é obrigatório")

        sid = body.session_id
        client_id = body.client_id or None
        generation = registry.begin(sid)

        try:
            result = await app.state.connector(body.token, sid)
        except Exception as e:
            # never leave a half-configured session behind
            await registry.remove(sid, generation=generation)
            logger.error(f"Bot login failed [{sid}]: {e!r}")
            raise ApiError(500, _error_message(e))

        installed = await registry.upsert(sid, result.connection, client_id, generation=generation)
        if not installed:
            raise ApiError(409, "sessão desconectada durante a conexão")

        if not result.ready:
            logger.info(f"[Session] {sid} configured; bot still connecting")
        return ConfigResponse(session_id=sid, client_id=client_id, bot_tag=result.connection.bot_tag)

    @app.post("/api/disconnect", response_model=DisconnectResponse, response_model_exclude_none=True)
    async def disconnect(body: Optional[DisconnectRequest] = None) -> DisconnectResponse:
        body = body or DisconnectRequest()
        if not body.session_id:
            raise ApiError(400, "sessionId é obrigatório")

        existed = body.session_id in registry
        # runs even when absent: invalidates a pending handshake for this key
        await registry.remove(body.session_id)
        if not existed:
            return DisconnectResponse(message="sessão já desconectada")
        return DisconnectResponse()

    @app.get("/api/status", response_model=StatusResponse)
    def status(session_id: Optional[str] = Query(None, alias="sessionId")) -> StatusResponse:
        if not session_id:
            raise ApiError(400, "sessionId é obrigatório")
        record = registry.get(session_id)
        online = bool(record and record.connection and record.connection.is_ready())
        return StatusResponse(online=online)

    # ------------------------------------------------------------------
    # Discord pass-through
    # ------------------------------------------------------------------
    @app.get("/api/guilds", response_model=GuildsResponse)
    def list_guilds(session_id: Optional[str] = Query(None, alias="sessionId")) -> GuildsResponse:
        record = connected_session(session_id)
        guilds = [GuildInfo(id=str(g.id), name=g.name) for g in record.connection.client.guilds]
        return GuildsResponse(guilds=guilds)

    @app.get("/api/channels/{guild_id}", response_model=ChannelsResponse)
    def list_channels(
        guild_id: str,
        session_id: Optional[str] = Query(None, alias="sessionId"),
    ) -> ChannelsResponse:
        record = connected_session(session_id)

        gid = _parse_snowflake(guild_id)
        guild = record.connection.client.get_guild(gid) if gid is not None else None
        if guild is None:
            raise ApiError(404, "guild não encontrada")

        channels = [
            ChannelInfo(id=str(c.id), name=c.name, type=_channel_type(c))
            for c in guild.channels
            if _channel_type(c) in config.TEXT_CHANNEL_TYPES
        ]
        return ChannelsResponse(channels=channels)

    @app.post("/api/send", response_model=SendResponse)
    async def send_message(body: Optional[SendRequest] = None) -> SendResponse:
        body = body or SendRequest()
        record = connected_session(body.session_id)
        if not body.channel_id or not body.message:
            raise ApiError(400, "channelId e message são obrigatórios")

        client = record.connection.client
        try:
            cid = _parse_snowflake(body.channel_id)
            channel = None
            if cid is not None:
                channel = client.get_channel(cid)
                if channel is None:
                    try:
                        channel = await client.fetch_channel(cid)
                    except discord.NotFound:
                        channel = None
            if channel is None:
                raise ApiError(404, "canal não encontrado")
            if not callable(getattr(channel, "send", None)):
                raise ApiError(400, "canal não suporta envio de mensagem")

            sent = await channel.send(content=body.message)
        except ApiError:
            raise
        except Exception as e:
            logger.error(f"Send failed [{body.session_id}]: {e!r}")
            raise ApiError(500, _error_message(e))

        return SendResponse(id=str(sent.id))

    @app.get("/api/invite", response_model=InviteResponse)
    def invite(session_id: Optional[str] = Query(None, alias="sessionId")) -> InviteResponse:
        if not session_id:
            raise ApiError(400, "sessionId é obrigatório")
        record = registry.get(session_id)
        if record is None or not record.client_id:
            raise ApiError(400, "clientId não configurado")
        return InviteResponse(invite=build_invite_url(record.client_id))

    return app


# Default ASGI app for uvicorn: `uvicorn bot_hub.server:app --port 3000`
app = create_app()
