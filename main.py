"""
Discord Bot Session Hub (entrypoint)

This file only keeps the entrypoint.
- HTTP API + static page: bot_hub/server.py
- Session registry / sweeper: bot_hub/session_store.py, bot_hub/sweeper.py
- Discord login + READY handshake: bot_hub/handshake.py
"""

import logging

import uvicorn

import config
from logger import setup_logger


logger = setup_logger(__name__, config.LOG_FILE, config.LOG_LEVEL)


def run_server() -> None:
    logger.info(f"Server running at http://localhost:{config.PORT}")
    uvicorn.run(
        "bot_hub.server:app",
        host=config.HOST,
        port=config.PORT,
        reload=False,
        log_level=logging.getLevelName(config.LOG_LEVEL).lower(),
    )


if __name__ == "__main__":
    run_server()
