from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DetectionLabel = Literal["LIKELY_AI", "UNCLEAR", "LIKELY_HUMAN"]
TemporalAssessment = Literal["FULL_AI", "PARTIAL_AI", "LIKELY_REAL", "UNAVAILABLE"]
TemporalStatus = Literal["ok", "failed", "skipped"]
CommentClass = Literal["AI", "REAL", "NEUTRAL"]
ScoreSource = Literal["heuristic_only", "heuristic_plus_external"]

Seconds = Union[int, float]


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImageFeatureVector(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    brightness_uniformity: float
    color_saturation: float
    color_banding: float
    texture_repetition: float
    smoothness: float
    edge_sharpness: float
    noise_level: float
    contrast_variance: float
    color_temperature_consistency: float


class HeuristicResult(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    score: int = Field(ge=0, le=100)
    reasons: List[str]
    features: ImageFeatureVector


class Segment(CamelModel):
    start_seconds: Seconds
    end_seconds: Seconds
    score: int = Field(ge=0, le=100)
    label: DetectionLabel


class TemporalAnalysis(CamelModel):
    segments: List[Segment] = []
    overall_assessment: TemporalAssessment = "UNAVAILABLE"
    notes: List[str] = []
    average_score: int = 0
    ai_segment_percentage: int = 0
    status: TemporalStatus = "ok"
    error_reason: Optional[str] = None


class CommentRecord(CamelModel):
    author: str = "Anonymous"
    text: str = ""
    like_count: int = 0


class CommentItem(CamelModel):
    author: str
    text: str
    like_count: int


class CommunityAnalysis(CamelModel):
    total_comments: int = 0
    ai_votes: int = 0
    real_votes: int = 0
    neutral_votes: int = 0
    top_ai_comments: List[CommentItem] = []
    top_real_comments: List[CommentItem] = []


class ExternalDetectorResult(CamelModel):
    score: Optional[int] = Field(None, ge=0, le=100)
    available: bool = False


class DebugInfo(CamelModel):
    heuristic_score: int
    external_api_score: Optional[int] = None
    community_adjustment: int = 0
    final_score: int


class AnalysisMeta(CamelModel):
    source: ScoreSource
    thumbnail_url: Optional[str] = None
    analyzed_at: str
    video_id: Optional[str] = None
    channel_title: Optional[str] = None
    duration_seconds: Optional[Seconds] = None


class FusedResult(CamelModel):
    score: int = Field(ge=0, le=100)
    label: DetectionLabel
    reasons: List[str]
    tips: List[str]
    debug: DebugInfo
    meta: AnalysisMeta
    community: Optional[CommunityAnalysis] = None
    temporal: Optional[TemporalAnalysis] = None


class VideoMetadata(CamelModel):
    channel_title: Optional[str] = None
    duration_seconds: Optional[Seconds] = None


class VideoAnalysisInput(CamelModel):
    """Everything the pipeline needs about one video, already retrieved."""
    video_id: str
    thumbnail_url: Optional[str] = None
    thumbnail_bytes: Optional[bytes] = None
    duration_seconds: Optional[Seconds] = None
    channel_title: Optional[str] = None
    comments: Optional[List[CommentRecord]] = None


class AnalyzeRequest(CamelModel):
    video_url: str = Field(min_length=1, description="YouTube watch / shorts / youtu.be URL")
