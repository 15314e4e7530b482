"""
Request-level orchestration for /api/analyze: URL validation, YouTube
retrieval, pipeline invocation, and memory usage logging.
"""

import asyncio
import logging
import os

import psutil
from fastapi import HTTPException

from app.config import PipelineOptions, settings
from app.detection.frames import StreamFrameExtractor
from app.detection.pipeline import detect_ai_video
from app.integrations.youtube import (
    extract_video_id,
    fetch_comments,
    get_best_thumbnail,
    get_video_metadata,
)
from app.schemas.analysis import FusedResult, VideoAnalysisInput

logger = logging.getLogger(__name__)


def log_memory(stage: str) -> None:
    """Log current process and system memory usage. Only runs when DEBUG logging is active."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    process = psutil.Process(os.getpid())
    mem_info = process.memory_info()
    sys_mem = psutil.virtual_memory()
    logger.debug(
        f"[MEMORY] {stage} | "
        f"PID: {os.getpid()} | "
        f"Process RSS: {mem_info.rss / 1024 / 1024:.2f} MB | "
        f"System Available: {sys_mem.available / 1024 / 1024:.2f} MB / {sys_mem.total / 1024 / 1024:.2f} MB"
    )


async def analyze_video_url(video_url: str) -> FusedResult:
    """Resolve a YouTube URL into pipeline inputs and run the detection pipeline."""
    video_id = extract_video_id(video_url)
    if not video_id:
        raise HTTPException(status_code=400, detail="Not a valid YouTube URL")

    options = PipelineOptions.from_settings(settings)
    logger.info(
        f"[ANALYZE] Starting analysis for {video_id} "
        f"(external={options.external_detector_enabled}, community={options.community_analysis_enabled}, "
        f"temporal={options.temporal_analysis_enabled})"
    )

    comments_task = (
        fetch_comments(video_id, settings.youtube_api_key)
        if options.community_analysis_enabled
        else asyncio.sleep(0, result=None)
    )

    try:
        thumbnail_url, metadata, comments = await asyncio.gather(
            get_best_thumbnail(video_id),
            get_video_metadata(video_id, settings.youtube_api_key),
            comments_task,
        )
    except Exception as e:
        logger.error(f"[ANALYZE] Could not retrieve thumbnail for {video_id}: {e}")
        raise HTTPException(status_code=502, detail="Could not retrieve the video thumbnail")

    inputs = VideoAnalysisInput(
        video_id=video_id,
        thumbnail_url=thumbnail_url,
        duration_seconds=metadata.duration_seconds,
        channel_title=metadata.channel_title,
        comments=comments,
    )

    extractor = StreamFrameExtractor() if options.temporal_analysis_enabled else None

    log_memory(f"Pre-Analyze: {video_id}")
    result = await detect_ai_video(inputs, options, frame_extractor=extractor)
    log_memory(f"Post-Analyze: {video_id}")

    return result
