"""
Analysis route: /api/analyze

Accepts JSON { "videoUrl": "https://www.youtube.com/watch?v=..." } and returns
the fused AI-likelihood result in camelCase.
"""

import json
import logging

from fastapi import APIRouter, HTTPException

from app.schemas.analysis import AnalyzeRequest, FusedResult
from app.services.analysis_service import analyze_video_url

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Analysis"])


@router.post("/api/analyze", response_model=FusedResult)
async def analyze(payload: AnalyzeRequest):
    """
    Estimate how likely a YouTube video's visuals are AI-generated.
    """
    try:
        result = await analyze_video_url(payload.video_url.strip())
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[ROUTE] Analysis error for {payload.video_url}: {e}")
        raise HTTPException(status_code=500, detail="Analysis failed. Please try again.")

    logger.info(f"[ROUTE] Final Response: {json.dumps(result.model_dump(mode='json', by_alias=True))[:500]}")
    return result
