"""
Top-level detection pipeline: the entry point behind /api/analyze.

`detect_ai_video` fans out the four signal producers concurrently:
  1. Heuristic feature scoring of the thumbnail
  2. External deep-learning detector (optional)
  3. Temporal segment analysis across the video
  4. Community comment classification
and fuses them once all four have finished. Each branch converts its own
failures into its defined fallback, so one broken signal never aborts fusion.
"""

import asyncio
import base64
import logging
from typing import Optional

from app.config import PipelineOptions
from app.detection.community import analyze_comments, calculate_community_adjustment
from app.detection.frames import FrameExtractor
from app.detection.image_features import analyze_image, analyze_image_bytes, default_error_result
from app.detection.scoring import combine_scores
from app.detection.temporal import analyze_temporal, unavailable
from app.integrations.external_detector import call_external_detector
from app.schemas.analysis import (
    CommunityAnalysis,
    ExternalDetectorResult,
    FusedResult,
    HeuristicResult,
    TemporalAnalysis,
    VideoAnalysisInput,
)

logger = logging.getLogger(__name__)


def _frame_refs(inputs: VideoAnalysisInput) -> list[str]:
    if inputs.thumbnail_url:
        return [inputs.thumbnail_url]
    if inputs.thumbnail_bytes:
        return ["data:image/jpeg;base64," + base64.b64encode(inputs.thumbnail_bytes).decode()]
    return []


async def _heuristic_branch(inputs: VideoAnalysisInput) -> HeuristicResult:
    try:
        if inputs.thumbnail_bytes:
            return await asyncio.to_thread(analyze_image_bytes, inputs.thumbnail_bytes)
        return await analyze_image(inputs.thumbnail_url)
    except Exception as e:
        logger.error(f"[PIPELINE] Heuristic branch failed: {e}")
        return default_error_result()


async def _external_branch(inputs: VideoAnalysisInput, options: PipelineOptions) -> ExternalDetectorResult:
    try:
        return await call_external_detector(_frame_refs(inputs), options)
    except Exception as e:
        logger.error(f"[PIPELINE] External detector branch failed: {e}")
        return ExternalDetectorResult(score=None, available=options.external_detector_enabled)


async def _temporal_branch(
    inputs: VideoAnalysisInput, options: PipelineOptions, extractor: Optional[FrameExtractor]
) -> TemporalAnalysis:
    try:
        return await analyze_temporal(inputs.video_id, inputs.duration_seconds, extractor, options)
    except Exception as e:
        logger.error(f"[PIPELINE] Temporal branch failed: {e}")
        return unavailable("failed", "Temporal analysis failed unexpectedly.")


async def _community_branch(inputs: VideoAnalysisInput, options: PipelineOptions) -> Optional[CommunityAnalysis]:
    if not options.community_analysis_enabled or inputs.comments is None:
        return None
    try:
        return analyze_comments(inputs.comments)
    except Exception as e:
        logger.error(f"[PIPELINE] Community branch failed: {e}")
        return None


async def detect_ai_video(
    inputs: VideoAnalysisInput,
    options: Optional[PipelineOptions] = None,
    frame_extractor: Optional[FrameExtractor] = None,
) -> FusedResult:
    """
    Run every signal producer and fuse the results.

    Args:
        inputs: Already-retrieved facts about the video (thumbnail, duration, comments).
        options: Explicit feature switches and detector endpoint.
        frame_extractor: Frame source for temporal analysis; None skips it.
    """
    options = options or PipelineOptions()

    if not inputs.thumbnail_bytes and not inputs.thumbnail_url:
        raise ValueError("A thumbnail URL or thumbnail bytes are required")

    logger.info(f"[PIPELINE] Analyzing video {inputs.video_id} (duration={inputs.duration_seconds})")

    heuristic, external, temporal, community = await asyncio.gather(
        _heuristic_branch(inputs),
        _external_branch(inputs, options),
        _temporal_branch(inputs, options, frame_extractor),
        _community_branch(inputs, options),
    )

    adjustment, community_reason = calculate_community_adjustment(community)

    return combine_scores(
        heuristic_score=heuristic.score,
        heuristic_reasons=heuristic.reasons,
        external_score=external.score,
        community_adjustment=adjustment,
        community_reason=community_reason,
        community=community,
        temporal=temporal,
        thumbnail_url=inputs.thumbnail_url,
        video_id=inputs.video_id,
        channel_title=inputs.channel_title,
        duration_seconds=inputs.duration_seconds,
    )
