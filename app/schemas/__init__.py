from app.schemas.analysis import (
    AnalyzeRequest,
    CommunityAnalysis,
    FusedResult,
    HeuristicResult,
    ImageFeatureVector,
    Segment,
    TemporalAnalysis,
    VideoAnalysisInput,
)

__all__ = [
    "AnalyzeRequest",
    "CommunityAnalysis",
    "FusedResult",
    "HeuristicResult",
    "ImageFeatureVector",
    "Segment",
    "TemporalAnalysis",
    "VideoAnalysisInput",
]
