"""
Shared aiohttp ClientSession, initialized once during the FastAPI lifespan.

Reusing a single session avoids per-request TCP handshake overhead on every
external HTTP call (thumbnail probes and downloads, YouTube Data API, the
external detector).

Usage:
    async with http_client.request_session() as sess:
        async with sess.get(url) as response:
            ...

The context manager yields the shared session when available, otherwise
creates and closes a temporary one (covers tests and pre-init calls).
"""

import logging
from contextlib import asynccontextmanager

import aiohttp

from app.config import settings

logger = logging.getLogger(__name__)

session: aiohttp.ClientSession | None = None


def _new_session() -> aiohttp.ClientSession:
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=settings.http_timeout_sec)
    )


async def initialize() -> None:
    global session
    session = _new_session()
    logger.info("[STARTUP] Shared HTTP session initialized")


async def close() -> None:
    global session
    if session and not session.closed:
        await session.close()
        session = None
        logger.info("[SHUTDOWN] Shared HTTP session closed")


@asynccontextmanager
async def request_session():
    """
    Async context manager that yields the shared session if available,
    otherwise creates and closes a temporary one.

    Never closes the shared session; http_client.close() handles that.
    """
    if session and not session.closed:
        yield session
    else:
        tmp = _new_session()
        try:
            yield tmp
        finally:
            await tmp.close()
