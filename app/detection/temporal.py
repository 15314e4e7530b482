"""
Time-segmented analysis across a video's duration.

The duration is split into 4/8/12/16 contiguous segments depending on length.
One frame is taken at the midpoint of each segment and scored with the image
feature extractor. Segments are processed in sequential batches of at most
`segment_concurrency` (default 3) so the frame extraction tool is never hit
by more than that many concurrent requests.

A bad frame only affects its own segment (neutral 50 / UNCLEAR). The whole
analysis reports `failed` when the duration is unusable or the video stream
cannot be resolved, and `skipped` when temporal analysis is turned off.
"""

import asyncio
import logging
import math
from typing import List, Optional

from app.config import PipelineOptions
from app.detection.frames import FrameExtractor
from app.detection.image_features import analyze_image_bytes
from app.detection.scoring import get_label, round_half_up
from app.schemas.analysis import Segment, TemporalAnalysis, TemporalAssessment

logger = logging.getLogger(__name__)

MIN_DURATION_SECONDS = 4
TRANSITION_DELTA = 25
FULL_AI_THRESHOLD = 70
FALLBACK_SCORE = 50


def segment_count_for(duration_seconds: float) -> int:
    if duration_seconds <= 30:
        return 4
    if duration_seconds <= 120:
        return 8
    if duration_seconds <= 300:
        return 12
    return 16


def generate_segments(duration_seconds: float) -> List[tuple]:
    """
    Split [0, duration) into contiguous (start, end) ranges.

    Inner boundaries are floored to whole seconds; the last segment always
    ends exactly at `duration_seconds`.
    """
    if duration_seconds < MIN_DURATION_SECONDS:
        return [(0, duration_seconds)]

    count = segment_count_for(duration_seconds)
    length = duration_seconds / count
    segments = []
    for i in range(count):
        start = math.floor(i * length)
        end = duration_seconds if i == count - 1 else math.floor((i + 1) * length)
        segments.append((start, end))
    return segments


def format_time(seconds: float) -> str:
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins:02d}:{secs:02d}"


def determine_overall_assessment(
    segments: List[Segment], average_score: int, ai_percentage: int
) -> TemporalAssessment:
    if not segments:
        return "UNAVAILABLE"
    if average_score >= FULL_AI_THRESHOLD or ai_percentage >= FULL_AI_THRESHOLD:
        return "FULL_AI"
    if any(s.label == "LIKELY_AI" for s in segments):
        return "PARTIAL_AI"
    return "LIKELY_REAL"


def generate_notes(segments: List[Segment], assessment: TemporalAssessment) -> List[str]:
    notes = []

    if assessment == "FULL_AI":
        notes.append("[Temporal] AI-generation characteristics detected consistently across the whole video")
    elif assessment == "PARTIAL_AI":
        ranges = [
            f"{format_time(s.start_seconds)}~{format_time(s.end_seconds)}"
            for s in segments
            if s.label == "LIKELY_AI"
        ]
        notes.append(f"[Temporal] AI generation suspected in specific ranges: {', '.join(ranges)}")

    for prev, curr in zip(segments, segments[1:]):
        if abs(curr.score - prev.score) >= TRANSITION_DELTA:
            direction = "increase" if curr.score > prev.score else "decrease"
            notes.append(
                f"[Temporal] Sharp AI score {direction} around {format_time(prev.end_seconds)} "
                f"({prev.score}% -> {curr.score}%) - possible transition or edit point"
            )

    return notes


def summarize_segments(segments: List[Segment]) -> TemporalAnalysis:
    """Aggregate scored segments into the per-video assessment."""
    if not segments:
        return TemporalAnalysis(status="failed", error_reason="No segments were analyzed.")

    average_score = round_half_up(sum(s.score for s in segments) / len(segments))
    ai_segments = sum(1 for s in segments if s.label == "LIKELY_AI")
    ai_percentage = round_half_up(ai_segments / len(segments) * 100)

    assessment = determine_overall_assessment(segments, average_score, ai_percentage)
    return TemporalAnalysis(
        segments=segments,
        overall_assessment=assessment,
        notes=generate_notes(segments, assessment),
        average_score=average_score,
        ai_segment_percentage=ai_percentage,
        status="ok",
    )


def unavailable(status: str, reason: str) -> TemporalAnalysis:
    return TemporalAnalysis(
        segments=[],
        overall_assessment="UNAVAILABLE",
        notes=[],
        average_score=0,
        ai_segment_percentage=0,
        status=status,
        error_reason=reason,
    )


def _fallback_segment(start, end) -> Segment:
    return Segment(start_seconds=start, end_seconds=end, score=FALLBACK_SCORE, label="UNCLEAR")


async def analyze_segment(video_ref: str, start, end, extractor: FrameExtractor) -> Segment:
    midpoint = math.floor((start + end) / 2)
    try:
        frame = await extractor.extract_frame(video_ref, midpoint)
        if not frame:
            logger.warning(f"[TEMPORAL] Empty frame at {midpoint}s, using fallback")
            return _fallback_segment(start, end)

        result = await asyncio.to_thread(analyze_image_bytes, frame)
    except Exception as e:
        logger.warning(f"[TEMPORAL] Segment {start}-{end}s failed: {e}")
        return _fallback_segment(start, end)

    return Segment(start_seconds=start, end_seconds=end, score=result.score, label=get_label(result.score))


async def analyze_temporal(
    video_ref: str,
    duration_seconds: Optional[float],
    extractor: Optional[FrameExtractor],
    options: Optional[PipelineOptions] = None,
) -> TemporalAnalysis:
    options = options or PipelineOptions()

    if not options.temporal_analysis_enabled or extractor is None:
        return unavailable("skipped", "Temporal analysis is not available in this environment. Please refer to the thumbnail analysis.")

    if duration_seconds is None:
        return unavailable("failed", "Video duration is unknown, so temporal analysis could not run.")

    if duration_seconds < MIN_DURATION_SECONDS:
        return unavailable(
            "failed", f"Video is too short for temporal analysis ({duration_seconds}s < {MIN_DURATION_SECONDS}s)."
        )

    try:
        await extractor.prepare(video_ref)
    except Exception as e:
        logger.warning(f"[TEMPORAL] Could not prepare video {video_ref}: {e}")
        return unavailable("failed", "Could not access the video stream for frame sampling.")

    try:
        ranges = generate_segments(duration_seconds)
        batch_size = options.segment_concurrency
        segments: List[Segment] = []

        for i in range(0, len(ranges), batch_size):
            batch = ranges[i:i + batch_size]
            results = await asyncio.gather(
                *(analyze_segment(video_ref, start, end, extractor) for start, end in batch)
            )
            segments.extend(results)

        analysis = summarize_segments(segments)
    except Exception as e:
        logger.error(f"[TEMPORAL] Temporal analysis failed for {video_ref}: {e}")
        return unavailable("failed", "Temporal analysis failed unexpectedly.")

    logger.info(
        f"[TEMPORAL] {video_ref}: {len(segments)} segments, avg={analysis.average_score}, "
        f"ai%={analysis.ai_segment_percentage}, assessment={analysis.overall_assessment}"
    )
    return analysis
