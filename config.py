"""
Discord Bot Session Hub Configuration
=====================================

1. Environment loading
2. HTTP server
3. Session lifecycle
4. Discord
5. Logging
"""
import os
from pathlib import Path
from dotenv import load_dotenv
import logging

# ============================================================================
# 1. Environment loading
# ============================================================================
load_dotenv()

# ============================================================================
# 2. HTTP server
# ============================================================================
# Bound on all interfaces; only the port is meant to be changed per deploy.
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))

# index.html and any other assets served under /static
STATIC_DIR = os.getenv("STATIC_DIR", str(Path(__file__).resolve().parent / "bot_hub" / "static"))

# "*" keeps the open CORS behaviour of the browser page
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# ============================================================================
# 3. Session lifecycle
# ============================================================================
# A session is evicted once it is older than this (no sliding expiry).
SESSION_IDLE_TIMEOUT_SECONDS = 3600.0
# How often the sweeper scans the registry.
SESSION_SWEEP_INTERVAL_SECONDS = 300.0
# Bounded wait for the gateway READY event after login.
READY_TIMEOUT_SECONDS = 5.0

# ============================================================================
# 4. Discord
# ============================================================================
INVITE_BASE_URL = "https://discord.com/oauth2/authorize"
# Send Messages, Embed Links, Read History, Send Messages in Threads, ...
INVITE_PERMISSIONS = 274877905152
INVITE_SCOPES = "bot applications.commands"

# GUILD_TEXT(0), GUILD_ANNOUNCEMENT(5), GUILD_FORUM(15)
TEXT_CHANNEL_TYPES = (0, 5, 15)

# ============================================================================
# 5. Logging
# ============================================================================
LOG_LEVEL = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
if not isinstance(LOG_LEVEL, int):
    LOG_LEVEL = logging.INFO
LOG_FILE = os.getenv("LOG_FILE") or None  # e.g. "logs/bot_hub.log"
# discord.py is chatty on INFO (gateway heartbeats, resumes)
DISCORD_LOG_LEVEL = logging.WARNING
