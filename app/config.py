"""
Central application configuration.

Every tunable value lives here as a typed, documented field.
Any field can be overridden at runtime via an environment variable of the
same name (case-insensitive), e.g.:

    SEGMENT_CONCURRENCY=2 uvicorn app.main:app    # lighter load on yt-dlp hosts
    export ENABLE_TEMPORAL_ANALYSIS=false          # serverless deployments

A `.env` file at the project root is loaded automatically.

`PipelineOptions` is the explicit, per-request view of these settings that the
detection pipeline receives. Modules under `app/detection` never read the
environment themselves.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Upper bound on simultaneous frame extraction + analysis operations per video
MAX_SEGMENT_CONCURRENCY = 3


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,   # YT_API_KEY == yt_api_key
        extra="ignore",         # silently drop unknown env vars
    )

    # ------------------------------------------------------------------ #
    # Credentials                                                         #
    # ------------------------------------------------------------------ #
    youtube_api_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("YT_API_KEY", "YOUTUBE_API_KEY"),
        description="YouTube Data API key (metadata + comments)",
    )
    external_detector_url: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("AI_DETECT_API_BASE_URL", "EXTERNAL_DETECTOR_URL"),
        description="Endpoint of the third-party deep-learning detector",
    )
    external_detector_api_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("AI_DETECT_API_KEY", "EXTERNAL_DETECTOR_API_KEY"),
        description="Bearer token for the third-party detector",
    )

    # ------------------------------------------------------------------ #
    # Feature flags                                                       #
    # ------------------------------------------------------------------ #
    enable_external_detector: bool = Field(
        True, description="Call the external detector when it is configured"
    )
    enable_community_analysis: bool = Field(
        True, description="Fetch and classify viewer comments when a key is present"
    )
    enable_temporal_analysis: bool = Field(
        True, description="Sample frames across the video (needs yt-dlp + OpenCV)"
    )

    # ------------------------------------------------------------------ #
    # Timeouts (seconds)                                                  #
    # ------------------------------------------------------------------ #
    http_timeout_sec: int = Field(
        30, description="Total timeout for the shared aiohttp session"
    )
    external_detector_timeout_sec: int = Field(
        20, description="Timeout for one external detector call"
    )
    stream_resolve_timeout_sec: int = Field(
        30, description="Timeout for yt-dlp stream URL resolution"
    )
    frame_extract_timeout_sec: int = Field(
        15, description="Timeout for grabbing a single frame"
    )

    # ------------------------------------------------------------------ #
    # Temporal analysis                                                   #
    # ------------------------------------------------------------------ #
    segment_concurrency: int = Field(
        3, ge=1, le=MAX_SEGMENT_CONCURRENCY, description="Max concurrent frame extractions per batch (hard cap 3)"
    )
    stream_format: str = Field(
        "best[height<=720]", description="yt-dlp format selector for frame sampling"
    )

    # ------------------------------------------------------------------ #
    # Community analysis                                                  #
    # ------------------------------------------------------------------ #
    comment_max_results: int = Field(
        50, description="Comment threads requested from the YouTube API"
    )

    # ------------------------------------------------------------------ #
    # File Size Limits                                                    #
    # ------------------------------------------------------------------ #
    max_image_download_mb: int = Field(
        20, description="Max MB for thumbnail / image downloads"
    )
    pil_max_image_pixels: int = Field(
        20_000_000, description="PIL decompression-bomb guard (pixels)"
    )
    thumbnail_min_bytes: int = Field(
        1000, description="Thumbnails smaller than this are YouTube placeholders"
    )

    # ------------------------------------------------------------------ #
    # Derived byte-level properties (computed from MB fields)             #
    # ------------------------------------------------------------------ #
    @property
    def max_image_download_bytes(self) -> int:
        return self.max_image_download_mb * 1024 * 1024

    @property
    def external_detector_configured(self) -> bool:
        return bool(self.external_detector_url and self.external_detector_api_key)


class PipelineOptions(BaseModel):
    """Explicit switches and endpoints handed to `detect_ai_video`."""

    external_detector_enabled: bool = False
    external_detector_url: Optional[str] = None
    external_detector_api_key: Optional[str] = None
    external_detector_timeout_sec: int = 20
    community_analysis_enabled: bool = False
    temporal_analysis_enabled: bool = True
    segment_concurrency: int = Field(3, ge=1, le=MAX_SEGMENT_CONCURRENCY)

    @classmethod
    def from_settings(cls, s: "Settings") -> "PipelineOptions":
        return cls(
            external_detector_enabled=s.enable_external_detector and s.external_detector_configured,
            external_detector_url=s.external_detector_url,
            external_detector_api_key=s.external_detector_api_key,
            external_detector_timeout_sec=s.external_detector_timeout_sec,
            community_analysis_enabled=s.enable_community_analysis and bool(s.youtube_api_key),
            temporal_analysis_enabled=s.enable_temporal_analysis,
            segment_concurrency=s.segment_concurrency,
        )


# Single shared instance, import this everywhere.
settings = Settings()
