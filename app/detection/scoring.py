"""
Score fusion and labeling.

Combines the heuristic score, the optional external detector score and the
community adjustment into one final 0-100 score, then derives the label and
the fixed guidance tips for that label.
"""

import logging
import math
from datetime import datetime, timezone
from typing import List, Optional

from app.schemas.analysis import (
    AnalysisMeta,
    CommunityAnalysis,
    DebugInfo,
    DetectionLabel,
    FusedResult,
    TemporalAnalysis,
)

logger = logging.getLogger(__name__)

AI_THRESHOLD = 70
UNCLEAR_THRESHOLD = 40

HEURISTIC_WEIGHT = 0.3
EXTERNAL_WEIGHT = 0.7

TIPS = {
    "LIKELY_AI": [
        "Check whether fine details look consistently unnatural throughout the video",
        "Look closely at eyes, fingers and teeth for distortions",
        "Check whether text and signs in the background are actually readable",
        "Verify the video's source and the creator's information directly",
    ],
    "UNCLEAR": [
        "More information is needed - watch the video yourself",
        "Compare it with the creator's other content",
        "Look for extra context in the description or comments",
        "Consider asking an expert for their opinion",
    ],
    "LIKELY_HUMAN": [
        "The analysis suggests natural, camera-captured footage",
        "If the information matters, cross-check it with other sources",
        "Take the creator's credibility into account as well",
    ],
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp(value: float, low: int = 0, high: int = 100) -> float:
    return min(high, max(low, value))


def get_label(score: int) -> DetectionLabel:
    if score >= AI_THRESHOLD:
        return "LIKELY_AI"
    if score >= UNCLEAR_THRESHOLD:
        return "UNCLEAR"
    return "LIKELY_HUMAN"


def get_tips(label: DetectionLabel) -> List[str]:
    return list(TIPS[label])


def blend_scores(heuristic_score: int, external_score: Optional[int]) -> tuple[int, str]:
    """Returns (blended score, source)."""
    if external_score is None:
        return int(clamp(heuristic_score)), "heuristic_only"

    blended = heuristic_score * HEURISTIC_WEIGHT + external_score * EXTERNAL_WEIGHT
    return int(clamp(round_half_up(blended))), "heuristic_plus_external"


def combine_scores(
    heuristic_score: int,
    heuristic_reasons: List[str],
    external_score: Optional[int] = None,
    community_adjustment: int = 0,
    community_reason: Optional[str] = None,
    community: Optional[CommunityAnalysis] = None,
    temporal: Optional[TemporalAnalysis] = None,
    thumbnail_url: Optional[str] = None,
    video_id: Optional[str] = None,
    channel_title: Optional[str] = None,
    duration_seconds: Optional[float] = None,
) -> FusedResult:
    """
    Fuse all signals into the final result.

    The community adjustment is folded into the returned score (re-clamped to
    0-100), so `debug.final_score` always equals `score`.
    """
    blended, source = blend_scores(heuristic_score, external_score)
    final_score = int(clamp(blended + community_adjustment))

    reasons = list(heuristic_reasons)
    if external_score is not None:
        reasons.append(f"[External model] Deep-learning detector probability: {external_score}%")
    if community_adjustment != 0 and community_reason:
        reasons.append(community_reason)

    label = get_label(final_score)

    logger.info(
        f"[FUSION] heuristic={heuristic_score}, external={external_score}, "
        f"community={community_adjustment:+d} -> {final_score} ({label}, {source})"
    )

    return FusedResult(
        score=final_score,
        label=label,
        reasons=reasons,
        tips=get_tips(label),
        debug=DebugInfo(
            heuristic_score=heuristic_score,
            external_api_score=external_score,
            community_adjustment=community_adjustment,
            final_score=final_score,
        ),
        meta=AnalysisMeta(
            source=source,
            thumbnail_url=thumbnail_url,
            analyzed_at=datetime.now(timezone.utc).isoformat(),
            video_id=video_id,
            channel_title=channel_title,
            duration_seconds=duration_seconds,
        ),
        community=community,
        temporal=temporal,
    )
