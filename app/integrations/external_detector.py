"""
Adapter for an optional third-party deep-learning detector.

Wire contract: POST {"frames": [<url or data URI>, ...]} with a bearer token.
Accepted response shapes, in priority order:
    {"probability": 0.87}
    {"score": 87}            (or 0.87 - values above 1 are treated as percent)
    {"result": {"probability": 0.87}}

`available=False` means the detector is not configured; `available=True` with
`score=None` means a call was attempted and failed.
"""

import logging
import math
from typing import List, Optional

import aiohttp

from app.config import PipelineOptions
from app.detection.scoring import clamp, round_half_up
from app.integrations import http_client as http_module
from app.schemas.analysis import ExternalDetectorResult

logger = logging.getLogger(__name__)


def _is_number(value) -> bool:
    """Finite int/float; bools, NaN and Infinity do not count."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def parse_probability(data) -> Optional[float]:
    """Extract a 0-1 probability from any accepted response shape."""
    if not isinstance(data, dict):
        return None

    if _is_number(data.get("probability")):
        return float(data["probability"])

    if _is_number(data.get("score")):
        score = float(data["score"])
        return score / 100 if score > 1 else score

    result = data.get("result")
    if isinstance(result, dict) and _is_number(result.get("probability")):
        return float(result["probability"])

    return None


def probability_to_score(probability: float) -> int:
    return int(clamp(round_half_up(probability * 100)))


async def call_external_detector(frames: List[str], options: PipelineOptions) -> ExternalDetectorResult:
    if not (options.external_detector_enabled and options.external_detector_url and options.external_detector_api_key):
        return ExternalDetectorResult(score=None, available=False)

    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {options.external_detector_api_key}",
    }
    timeout = aiohttp.ClientTimeout(total=options.external_detector_timeout_sec)

    try:
        async with http_module.request_session() as session:
            async with session.post(
                options.external_detector_url,
                json={"frames": frames},
                headers=headers,
                timeout=timeout,
            ) as response:
                if response.status < 200 or response.status >= 300:
                    logger.error(f"[EXTERNAL] Detector returned status {response.status}")
                    return ExternalDetectorResult(score=None, available=True)
                data = await response.json(content_type=None)
    except Exception as e:
        logger.error(f"[EXTERNAL] Detector call failed: {e}")
        return ExternalDetectorResult(score=None, available=True)

    probability = parse_probability(data)
    if probability is None:
        logger.warning(f"[EXTERNAL] Unrecognized detector payload: {str(data)[:200]}")
        return ExternalDetectorResult(score=None, available=True)

    score = probability_to_score(probability)
    logger.info(f"[EXTERNAL] Detector probability={probability:.4f} -> score={score}")
    return ExternalDetectorResult(score=score, available=True)
