"""
Shared pytest fixtures for all test modules.

Credentials are cleared before the app is imported so no test can reach the
real YouTube API or external detector by accident.
"""

import io
import os

for _var in ("YT_API_KEY", "YOUTUBE_API_KEY", "AI_DETECT_API_BASE_URL", "AI_DETECT_API_KEY"):
    os.environ.pop(_var, None)

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app.main import app  # noqa: E402


# ---------------------------------------------------------------------------
# Core infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def client():
    """FastAPI TestClient; the lifespan opens and closes the shared HTTP session."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


# ---------------------------------------------------------------------------
# Shared test-data helpers
# ---------------------------------------------------------------------------


def make_flat_png(size=(64, 64), color=(128, 128, 128)) -> bytes:
    """A single-color PNG: uniform, noiseless, maximally 'synthetic'."""
    buf = io.BytesIO()
    Image.new("RGB", size, color=color).save(buf, format="PNG")
    return buf.getvalue()


def make_noise_array(size=(64, 96), seed=7) -> np.ndarray:
    """Deterministic uniform RGB noise as an (H, W, 3) int32 array."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(size[0], size[1], 3)).astype(np.int32)


def make_noise_png(size=(64, 96), seed=7) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(make_noise_array(size, seed).astype(np.uint8), "RGB").save(buf, format="PNG")
    return buf.getvalue()


def make_mock_response(status=200, json_data=None, content=b"", headers=None, json_error=None):
    """Mock aiohttp response usable as an async context manager."""
    mock_resp = MagicMock()
    mock_resp.__aenter__ = AsyncMock(return_value=mock_resp)
    mock_resp.__aexit__ = AsyncMock(return_value=None)
    mock_resp.status = status
    mock_resp.read = AsyncMock(return_value=content)
    if json_error is not None:
        mock_resp.json = AsyncMock(side_effect=json_error)
    else:
        mock_resp.json = AsyncMock(return_value=json_data)
    mock_resp.headers = headers or {}
    return mock_resp


def make_mock_session(response=None, **method_side_effects):
    """Mock aiohttp session whose get/post/head return `response`."""
    mock_session = MagicMock()
    for method in ("get", "post", "head"):
        if method in method_side_effects:
            setattr(mock_session, method, MagicMock(side_effect=method_side_effects[method]))
        else:
            setattr(mock_session, method, MagicMock(return_value=response))
    return mock_session


def patch_session(mock_session):
    """
    Patch http_client.request_session to yield mock_session directly,
    bypassing aiohttp.ClientSession construction entirely.
    """
    @asynccontextmanager
    async def _fake_request_session():
        yield mock_session

    return patch(
        "app.integrations.http_client.request_session",
        side_effect=_fake_request_session,
    )
