"""
Bot hub HTTP API protocol (Pydantic models).

Field names on the wire are camelCase (sessionId, clientId, ...) to match
the browser page; Python attributes stay snake_case.
Request fields are all optional so missing values surface as 400 with the
API's own error message instead of a generic validation error.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class ConfigRequest(_Model):
    token: Optional[str] = None
    client_id: Optional[str] = Field(None, alias="clientId", description="Application ID, used for invite links only")
    session_id: Optional[str] = Field(None, alias="sessionId")


class ConfigResponse(_Model):
    ok: bool = True
    session_id: str = Field(..., alias="sessionId")
    client_id: Optional[str] = Field(None, alias="clientId")
    bot_tag: Optional[str] = Field(None, alias="botTag")


class DisconnectRequest(_Model):
    session_id: Optional[str] = Field(None, alias="sessionId")


class DisconnectResponse(_Model):
    ok: bool = True
    message: Optional[str] = None


class StatusResponse(_Model):
    online: bool


class GuildInfo(_Model):
    id: str
    name: str


class GuildsResponse(_Model):
    ok: bool = True
    guilds: List[GuildInfo] = Field(default_factory=list)


class ChannelInfo(_Model):
    id: str
    name: str
    type: int = Field(..., description="Discord channel type: 0 text, 5 announcement, 15 forum")


class ChannelsResponse(_Model):
    ok: bool = True
    channels: List[ChannelInfo] = Field(default_factory=list)


class SendRequest(_Model):
    channel_id: Optional[str] = Field(None, alias="channelId")
    message: Optional[str] = None
    session_id: Optional[str] = Field(None, alias="sessionId")


class SendResponse(_Model):
    ok: bool = True
    id: str


class InviteResponse(_Model):
    ok: bool = True
    invite: str


class HealthResponse(_Model):
    ok: bool = True
    sessions: int = 0


class ErrorResponse(_Model):
    ok: bool = False
    error: str
