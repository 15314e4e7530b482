"""
Unit tests for app/detection/pipeline.py: detect_ai_video().

Signal producers are patched at the pipeline's import site. The heuristic
branch runs for real on a flat PNG unless a test says otherwise.
"""

from unittest.mock import AsyncMock, patch

import pytest

from app.config import PipelineOptions
from app.detection.community import AI_REASON
from app.detection.image_features import default_error_result
from app.detection.pipeline import detect_ai_video
from app.schemas.analysis import (
    CommentRecord,
    ExternalDetectorResult,
    HeuristicResult,
    TemporalAnalysis,
    VideoAnalysisInput,
)
from tests.conftest import make_flat_png

THUMB_URL = "https://img.youtube.com/vi/abc123def45/maxresdefault.jpg"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def heuristic(score):
    return HeuristicResult(score=score, reasons=[f"h{score}"], features=default_error_result().features)


def ai_comments(n_ai, n_other):
    return [CommentRecord(text="this is ai") for _ in range(n_ai)] + [
        CommentRecord(text="nice") for _ in range(n_other)
    ]


def bytes_input(**kwargs):
    return VideoAnalysisInput(video_id="abc123def45", thumbnail_bytes=make_flat_png(), **kwargs)


# ---------------------------------------------------------------------------
# Fusion
# ---------------------------------------------------------------------------


async def test_heuristic_only_with_defaults():
    result = await detect_ai_video(bytes_input())

    assert result.score == 100
    assert result.label == "LIKELY_AI"
    assert result.meta.source == "heuristic_only"
    assert result.debug.external_api_score is None
    assert result.community is None
    assert result.temporal.status == "skipped"


async def test_external_score_is_blended():
    external = AsyncMock(return_value=ExternalDetectorResult(score=20, available=True))
    with patch("app.detection.pipeline.call_external_detector", external):
        result = await detect_ai_video(bytes_input())

    # 0.3 * 100 + 0.7 * 20 = 44
    assert result.score == 44
    assert result.label == "UNCLEAR"
    assert result.meta.source == "heuristic_plus_external"
    frames = external.call_args.args[0]
    assert len(frames) == 1 and frames[0].startswith("data:image/jpeg;base64,")


async def test_thumbnail_url_used_when_no_bytes():
    fetch = AsyncMock(return_value=heuristic(30))
    external = AsyncMock(return_value=ExternalDetectorResult())
    with patch("app.detection.pipeline.analyze_image", fetch), \
         patch("app.detection.pipeline.call_external_detector", external):
        result = await detect_ai_video(VideoAnalysisInput(video_id="abc123def45", thumbnail_url=THUMB_URL))

    fetch.assert_awaited_once_with(THUMB_URL)
    assert external.call_args.args[0] == [THUMB_URL]
    assert result.score == 30
    assert result.meta.thumbnail_url == THUMB_URL


async def test_missing_thumbnail_raises():
    with pytest.raises(ValueError):
        await detect_ai_video(VideoAnalysisInput(video_id="abc123def45"))


# ---------------------------------------------------------------------------
# Branch isolation
# ---------------------------------------------------------------------------


async def test_external_failure_does_not_abort():
    with patch("app.detection.pipeline.call_external_detector", AsyncMock(side_effect=RuntimeError("down"))):
        result = await detect_ai_video(bytes_input())

    assert result.score == 100
    assert result.meta.source == "heuristic_only"


async def test_temporal_failure_does_not_abort():
    with patch("app.detection.pipeline.analyze_temporal", AsyncMock(side_effect=RuntimeError("boom"))):
        result = await detect_ai_video(bytes_input(), frame_extractor=object())

    assert result.score == 100
    assert result.temporal.status == "failed"


async def test_heuristic_failure_uses_default():
    with patch("app.detection.pipeline.analyze_image_bytes", side_effect=RuntimeError("boom")):
        result = await detect_ai_video(bytes_input())

    assert result.score == 50
    assert result.debug.heuristic_score == 50


async def test_temporal_result_is_attached_not_fused():
    temporal = TemporalAnalysis(overall_assessment="FULL_AI", average_score=95, ai_segment_percentage=100)
    with patch("app.detection.pipeline.analyze_temporal", AsyncMock(return_value=temporal)), \
         patch("app.detection.pipeline.analyze_image_bytes", return_value=heuristic(20)):
        result = await detect_ai_video(bytes_input(duration_seconds=30), frame_extractor=object())

    assert result.temporal == temporal
    assert result.score == 20


# ---------------------------------------------------------------------------
# Community
# ---------------------------------------------------------------------------


async def test_community_ignored_when_disabled():
    result = await detect_ai_video(bytes_input(comments=ai_comments(10, 0)))

    assert result.community is None
    assert result.debug.community_adjustment == 0


async def test_community_adjustment_applied_when_enabled():
    options = PipelineOptions(community_analysis_enabled=True)
    with patch("app.detection.pipeline.analyze_image_bytes", return_value=heuristic(50)):
        result = await detect_ai_video(bytes_input(comments=ai_comments(4, 6)), options)

    assert result.community.total_comments == 10
    assert result.community.ai_votes == 4
    assert result.debug.community_adjustment == 10
    assert result.score == 60
    assert result.reasons[-1] == AI_REASON


async def test_community_absent_when_comments_unavailable():
    options = PipelineOptions(community_analysis_enabled=True)
    result = await detect_ai_video(bytes_input(comments=None), options)

    assert result.community is None


async def test_empty_comment_list_gives_zero_totals():
    options = PipelineOptions(community_analysis_enabled=True)
    result = await detect_ai_video(bytes_input(comments=[]), options)

    assert result.community.total_comments == 0
    assert result.debug.community_adjustment == 0
