"""
YouTube retrieval: video-id parsing, thumbnail choice, metadata and comments.

Metadata and comments need a YouTube Data API key. Without one (or on any
API failure) the callers get empty metadata / no comments, and the dependent
analyses degrade instead of failing the request.
"""

import logging
import re
from typing import List, Optional

from app.config import settings
from app.integrations import http_client as http_module
from app.schemas.analysis import CommentRecord, VideoMetadata

logger = logging.getLogger(__name__)

API_BASE = "https://www.googleapis.com/youtube/v3"

VIDEO_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|youtube\.com/shorts/)([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/embed/([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/v/([a-zA-Z0-9_-]{11})"),
]

ISO_DURATION = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


def extract_video_id(url: str) -> Optional[str]:
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def get_thumbnail_urls(video_id: str) -> List[str]:
    return [
        f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg",
        f"https://img.youtube.com/vi/{video_id}/sddefault.jpg",
        f"https://img.youtube.com/vi/{video_id}/hqdefault.jpg",
        f"https://img.youtube.com/vi/{video_id}/mqdefault.jpg",
    ]


async def get_best_thumbnail(video_id: str) -> str:
    """
    First thumbnail that exists and is not a placeholder.
    Falls back to hqdefault, which YouTube serves for every public video.
    """
    urls = get_thumbnail_urls(video_id)

    async with http_module.request_session() as session:
        for url in urls:
            try:
                async with session.head(url) as response:
                    if response.status != 200:
                        continue
                    length = response.headers.get("Content-Length")
                    if length and int(length) > settings.thumbnail_min_bytes:
                        return url
            except Exception as e:
                logger.debug(f"[YOUTUBE] Thumbnail probe failed for {url}: {e}")
                continue

    return urls[2]


def parse_iso8601_duration(value: str) -> Optional[float]:
    """'PT1H2M3S' -> 3723. Returns None for anything unparsable."""
    match = ISO_DURATION.match(value or "")
    if not match or not any(match.groupdict().values()):
        return None
    parts = {k: float(v) if v else 0.0 for k, v in match.groupdict().items()}
    total = parts["days"] * 86400 + parts["hours"] * 3600 + parts["minutes"] * 60 + parts["seconds"]
    return int(total) if total.is_integer() else total


async def _get_json(url: str, params: dict) -> Optional[dict]:
    async with http_module.request_session() as session:
        async with session.get(url, params=params) as response:
            if response.status != 200:
                logger.warning(f"[YOUTUBE] {url} returned status {response.status}")
                return None
            return await response.json()


async def get_video_metadata(video_id: str, api_key: Optional[str] = None) -> VideoMetadata:
    if not api_key:
        logger.info("[YOUTUBE] No API key configured, skipping metadata lookup")
        return VideoMetadata()

    try:
        data = await _get_json(
            f"{API_BASE}/videos",
            {"id": video_id, "part": "snippet,contentDetails", "key": api_key},
        )
    except Exception as e:
        logger.warning(f"[YOUTUBE] Metadata request failed: {e}")
        return VideoMetadata()

    items = (data or {}).get("items") or []
    if not items:
        return VideoMetadata()

    item = items[0]
    return VideoMetadata(
        channel_title=item.get("snippet", {}).get("channelTitle"),
        duration_seconds=parse_iso8601_duration(item.get("contentDetails", {}).get("duration", "")),
    )


def _parse_comment(item: dict) -> CommentRecord:
    snippet = item.get("snippet", {}).get("topLevelComment", {}).get("snippet", {})
    return CommentRecord(
        author=snippet.get("authorDisplayName") or "Anonymous",
        text=snippet.get("textDisplay") or "",
        like_count=snippet.get("likeCount") or 0,
    )


async def fetch_comments(
    video_id: str,
    api_key: Optional[str] = None,
    max_results: int = settings.comment_max_results,
) -> Optional[List[CommentRecord]]:
    """Top-level comments ordered by relevance. None when unavailable."""
    if not api_key:
        return None

    try:
        data = await _get_json(
            f"{API_BASE}/commentThreads",
            {
                "videoId": video_id,
                "part": "snippet",
                "order": "relevance",
                "maxResults": max_results,
                "key": api_key,
            },
        )
    except Exception as e:
        logger.warning(f"[YOUTUBE] Error fetching comments: {e}")
        return None

    if data is None:
        return None

    comments = []
    for item in data.get("items") or []:
        try:
            comments.append(_parse_comment(item))
        except Exception as e:
            logger.warning(f"[YOUTUBE] Skipping malformed comment: {e}")
    return comments
