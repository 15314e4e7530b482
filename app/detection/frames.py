"""
Frame extraction capability used by temporal analysis.

`FrameExtractor` is the abstract seam: anything that can turn
(video_ref, timestamp) into encoded image bytes. Every call is a single
attempt; timeouts are reported as `FrameExtractionError` like any other failure.

`StreamFrameExtractor` resolves a direct stream URL with yt-dlp once per
instance (one instance per request), then seeks and grabs frames with OpenCV.
At most three grabs hold the stream at once per extractor, including grabs
whose caller already timed out.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

import cv2

from app.config import MAX_SEGMENT_CONCURRENCY, settings

logger = logging.getLogger(__name__)


class FrameExtractionError(Exception):
    """A frame (or the stream behind it) could not be obtained."""


class FrameExtractor(ABC):
    async def prepare(self, video_ref: str) -> None:
        """Optional per-video setup. Raise FrameExtractionError if the video is unusable."""

    @abstractmethod
    async def extract_frame(self, video_ref: str, timestamp_seconds: float) -> bytes:
        """Encoded image bytes of the frame at `timestamp_seconds`."""


def watch_url(video_ref: str) -> str:
    if video_ref.startswith(("http://", "https://")):
        return video_ref
    return f"https://www.youtube.com/watch?v={video_ref}"


def grab_frame(stream_url: str, timestamp_seconds: float, timeout_seconds: Optional[float] = None) -> bytes:
    """
    Seek to `timestamp_seconds` and return the frame as PNG bytes (blocking).

    With `timeout_seconds`, OpenCV's own open/read timeouts bound the capture.
    """
    if timeout_seconds:
        timeout_ms = int(timeout_seconds * 1000)
        cap = cv2.VideoCapture(
            stream_url,
            cv2.CAP_ANY,
            [cv2.CAP_PROP_OPEN_TIMEOUT_MSEC, timeout_ms, cv2.CAP_PROP_READ_TIMEOUT_MSEC, timeout_ms],
        )
    else:
        cap = cv2.VideoCapture(stream_url)
    try:
        if not cap.isOpened():
            raise FrameExtractionError("Could not open video stream")

        cap.set(cv2.CAP_PROP_POS_MSEC, float(timestamp_seconds) * 1000.0)
        ret, frame = cap.read()
        if not ret or frame is None:
            raise FrameExtractionError(f"No frame at {timestamp_seconds}s")

        success, encoded = cv2.imencode(".png", frame)
        if not success:
            raise FrameExtractionError(f"PNG encoding failed at {timestamp_seconds}s")
        return encoded.tobytes()
    finally:
        cap.release()


class StreamFrameExtractor(FrameExtractor):
    def __init__(
        self,
        stream_format: str = settings.stream_format,
        resolve_timeout: float = settings.stream_resolve_timeout_sec,
        frame_timeout: float = settings.frame_extract_timeout_sec,
    ):
        self.stream_format = stream_format
        self.resolve_timeout = resolve_timeout
        self.frame_timeout = frame_timeout
        self._stream_urls: dict[str, str] = {}
        self._lock = asyncio.Lock()
        self._grab_slots = threading.BoundedSemaphore(MAX_SEGMENT_CONCURRENCY)

    async def prepare(self, video_ref: str) -> None:
        await self._get_stream_url(video_ref)

    async def _get_stream_url(self, video_ref: str) -> str:
        async with self._lock:
            if video_ref not in self._stream_urls:
                self._stream_urls[video_ref] = await self.resolve_stream_url(video_ref)
            return self._stream_urls[video_ref]

    async def resolve_stream_url(self, video_ref: str) -> str:
        """Ask yt-dlp for a direct media URL (async to avoid blocking event loop)."""
        proc: Optional[asyncio.subprocess.Process] = None
        try:
            proc = await asyncio.create_subprocess_exec(
                "yt-dlp", "-f", self.stream_format, "-g", watch_url(video_ref),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.resolve_timeout)
            except asyncio.TimeoutError:
                raise FrameExtractionError(f"yt-dlp timed out after {self.resolve_timeout}s")

            if proc.returncode != 0:
                detail = stderr.decode(errors="ignore").strip()[:200]
                raise FrameExtractionError(f"yt-dlp exited with {proc.returncode}: {detail}")

            lines = [line for line in stdout.decode().splitlines() if line.strip()]
            if not lines:
                raise FrameExtractionError("yt-dlp returned no stream URL")

            logger.info(f"[FRAMES] Resolved stream for {video_ref}")
            return lines[0].strip()
        except FileNotFoundError:
            raise FrameExtractionError("yt-dlp not installed")
        finally:
            if proc is not None:
                try:
                    if proc.returncode is None:
                        proc.kill()
                        await proc.wait()
                except ProcessLookupError:
                    pass

    def _grab_with_slot(self, stream_url: str, timestamp_seconds: float) -> bytes:
        """
        Runs in a worker thread. The slot stays taken until OpenCV returns,
        including after the awaiting coroutine has timed out.
        """
        if not self._grab_slots.acquire(timeout=self.frame_timeout):
            raise FrameExtractionError(f"No free capture slot for {timestamp_seconds}s")
        try:
            return grab_frame(stream_url, timestamp_seconds, self.frame_timeout)
        finally:
            self._grab_slots.release()

    async def extract_frame(self, video_ref: str, timestamp_seconds: float) -> bytes:
        stream_url = await self._get_stream_url(video_ref)
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._grab_with_slot, stream_url, timestamp_seconds),
                timeout=self.frame_timeout,
            )
        except asyncio.TimeoutError:
            raise FrameExtractionError(
                f"Frame extraction at {timestamp_seconds}s timed out after {self.frame_timeout}s"
            )
