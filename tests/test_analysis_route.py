"""
Tests for POST /api/analyze and the request orchestration behind it.

YouTube retrieval and the detection pipeline are mocked; URL validation and
the HTTP error mapping run for real.
"""

from contextlib import ExitStack
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import HTTPException

from app.detection.frames import StreamFrameExtractor
from app.detection.scoring import combine_scores
from app.schemas.analysis import CommentRecord, TemporalAnalysis, VideoMetadata
from app.services.analysis_service import analyze_video_url

VID = "dQw4w9WgXcQ"
URL = f"https://www.youtube.com/watch?v={VID}"
THUMB = f"https://img.youtube.com/vi/{VID}/maxresdefault.jpg"


def fused_result():
    return combine_scores(
        85,
        ["[Noise] Almost no sensor noise - rare in natural footage"],
        temporal=TemporalAnalysis(status="skipped", error_reason="off"),
        thumbnail_url=THUMB,
        video_id=VID,
    )


def _service_patches(thumbnail=THUMB, metadata=None, comments=None, detect_result=None):
    """Return an ExitStack with the service's retrieval and pipeline calls mocked."""
    stack = ExitStack()
    mocks = {
        "thumbnail": stack.enter_context(
            patch(
                "app.services.analysis_service.get_best_thumbnail",
                new_callable=AsyncMock,
                side_effect=thumbnail if isinstance(thumbnail, Exception) else None,
                return_value=thumbnail,
            )
        ),
        "metadata": stack.enter_context(
            patch(
                "app.services.analysis_service.get_video_metadata",
                new_callable=AsyncMock,
                return_value=metadata or VideoMetadata(channel_title="Chan", duration_seconds=42),
            )
        ),
        "comments": stack.enter_context(
            patch("app.services.analysis_service.fetch_comments", new_callable=AsyncMock, return_value=comments)
        ),
        "detect": stack.enter_context(
            patch(
                "app.services.analysis_service.detect_ai_video",
                new_callable=AsyncMock,
                return_value=detect_result or fused_result(),
            )
        ),
    }
    return stack, mocks


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------


def test_analyze_success_returns_camel_case(client):
    with patch("app.api.analysis.analyze_video_url", new_callable=AsyncMock, return_value=fused_result()) as mock:
        response = client.post("/api/analyze", json={"videoUrl": f"  {URL}  "})

    assert response.status_code == 200
    mock.assert_awaited_once_with(URL)
    body = response.json()
    assert body["score"] == 85
    assert body["label"] == "LIKELY_AI"
    assert body["debug"] == {
        "heuristicScore": 85,
        "externalApiScore": None,
        "communityAdjustment": 0,
        "finalScore": 85,
    }
    assert body["meta"]["source"] == "heuristic_only"
    assert body["meta"]["thumbnailUrl"] == THUMB
    assert body["temporal"]["status"] == "skipped"
    assert body["temporal"]["overallAssessment"] == "UNAVAILABLE"
    assert len(body["tips"]) == 4


def test_analyze_invalid_url_is_400(client):
    response = client.post("/api/analyze", json={"videoUrl": "https://vimeo.com/12345"})

    assert response.status_code == 400
    assert response.json() == {"detail": "Not a valid YouTube URL"}
    assert response.headers["access-control-allow-origin"] == "*"


def test_analyze_empty_url_is_422(client):
    response = client.post("/api/analyze", json={"videoUrl": ""})
    assert response.status_code == 422


def test_analyze_missing_body_field_is_422(client):
    response = client.post("/api/analyze", json={})
    assert response.status_code == 422


def test_analyze_unexpected_error_is_500(client):
    with patch(
        "app.api.analysis.analyze_video_url", new_callable=AsyncMock, side_effect=RuntimeError("boom")
    ):
        response = client.post("/api/analyze", json={"videoUrl": URL})

    assert response.status_code == 500
    assert response.json() == {"detail": "Analysis failed. Please try again."}


def test_analyze_thumbnail_failure_is_502(client):
    stack, _ = _service_patches(thumbnail=RuntimeError("network down"))
    with stack:
        response = client.post("/api/analyze", json={"videoUrl": URL})

    assert response.status_code == 502


# ---------------------------------------------------------------------------
# Service orchestration
# ---------------------------------------------------------------------------


async def test_service_builds_pipeline_inputs():
    stack, mocks = _service_patches()
    with stack:
        result = await analyze_video_url(f"https://youtu.be/{VID}")

    assert result.score == 85
    inputs, options = mocks["detect"].call_args.args
    assert inputs.video_id == VID
    assert inputs.thumbnail_url == THUMB
    assert inputs.duration_seconds == 42
    assert inputs.channel_title == "Chan"
    assert inputs.comments is None
    assert options.external_detector_enabled is False
    assert options.community_analysis_enabled is False
    assert isinstance(mocks["detect"].call_args.kwargs["frame_extractor"], StreamFrameExtractor)


async def test_service_skips_comments_without_api_key():
    stack, mocks = _service_patches()
    with stack:
        await analyze_video_url(URL)

    mocks["comments"].assert_not_called()


async def test_service_fetches_comments_with_api_key():
    comments = [CommentRecord(author="a", text="this is ai", like_count=1)]
    stack, mocks = _service_patches(comments=comments)
    with stack, patch("app.services.analysis_service.settings.youtube_api_key", "key"):
        await analyze_video_url(URL)

    mocks["comments"].assert_awaited_once_with(VID, "key")
    inputs, options = mocks["detect"].call_args.args
    assert inputs.comments == comments
    assert options.community_analysis_enabled is True


async def test_service_without_temporal_passes_no_extractor():
    stack, mocks = _service_patches()
    with stack, patch("app.services.analysis_service.settings.enable_temporal_analysis", False):
        await analyze_video_url(URL)

    assert mocks["detect"].call_args.kwargs["frame_extractor"] is None


async def test_service_rejects_invalid_url():
    stack, mocks = _service_patches()
    with stack, pytest.raises(HTTPException) as exc_info:
        await analyze_video_url("https://example.com/watch")

    assert exc_info.value.status_code == 400
    mocks["thumbnail"].assert_not_called()
