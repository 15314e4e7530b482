"""
Viewer-comment classification and the bounded community score adjustment.

Comments are matched against REAL keywords first, then AI keywords, so a
comment carrying both cues ("not AI, this is real footage") counts as REAL.
Keyword lists hold the Korean and English cues seen on Korean YouTube.
"""

import logging
import re
from typing import List, Optional

from app.schemas.analysis import CommentClass, CommentItem, CommentRecord, CommunityAnalysis

logger = logging.getLogger(__name__)

AI_KEYWORDS = [
    "ai", "인공지능", "딥페이크", "deepfake", "fake", "합성", "generated",
    "ai video", "ai로 만든", "ai네", "ai 영상", "ai가 만든", "소라", "sora",
    "runway", "pika", "midjourney", "미드저니", "달리", "dalle",
    "진짜 같네", "실사인 줄", "실사인줄", "사람이 찍은 줄", "사람이 찍은줄",
    "구분 안 되네", "구분안되네", "리얼하다", "진짜 같아서 무섭",
    "실사급", "cgi", "vfx", "가짜", "합성인가", "합성이네",
]

REAL_KEYWORDS = [
    "실사", "실제 촬영", "진짜 촬영", "직접 찍은", "사람이 찍은거",
    "ai 아님", "ai아님", "이건 ai 아니", "real footage", "this is real",
    "not ai", "shot on", "filmed with", "촬영장", "현장 촬영",
    "실제로 찍은", "진짜야", "진짜임", "찐이야", "찐임",
]

PREVIEW_LENGTH = 120
TOP_COMMENTS = 3
MIN_SAMPLE = 5
MIN_CONFIDENT_SAMPLE = 10
AI_RATIO_HIGH = 0.3
AI_RATIO_LOW = 0.05

AI_ADJUSTMENT = 10
REAL_ADJUSTMENT = -5
AI_REASON = "[Community] A large share of viewer comments suspect this video is AI-generated."
REAL_REASON = "[Community] Viewer comments barely mention AI or synthetic content."

_WHITESPACE = re.compile(r"\s+")


def _keyword_pattern(word: str) -> str:
    # Short ASCII keywords ("ai", "cgi", "fake") would otherwise hit inside "said", "again".
    # Latin-only boundaries so Korean particles ("ai가", "ai임") still match.
    if word.isascii() and word.isalpha() and len(word) <= 4:
        return r"(?<![a-z0-9])" + re.escape(word) + r"(?![a-z0-9])"
    return re.escape(word)


_REAL_RE = re.compile("|".join(_keyword_pattern(w) for w in REAL_KEYWORDS))
_AI_RE = re.compile("|".join(_keyword_pattern(w) for w in AI_KEYWORDS))


def normalize_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text.lower()).strip()


def classify_comment(text: str) -> CommentClass:
    normalized = normalize_text(text)
    if _REAL_RE.search(normalized):
        return "REAL"
    if _AI_RE.search(normalized):
        return "AI"
    return "NEUTRAL"


def truncate_text(text: str, max_length: int = PREVIEW_LENGTH) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length].strip() + "…"


def _top_comments(comments: List[CommentRecord]) -> List[CommentItem]:
    ranked = sorted(comments, key=lambda c: c.like_count, reverse=True)[:TOP_COMMENTS]
    return [
        CommentItem(author=c.author, text=truncate_text(c.text), like_count=c.like_count)
        for c in ranked
    ]


def analyze_comments(comments: List[CommentRecord]) -> CommunityAnalysis:
    buckets = {"AI": [], "REAL": [], "NEUTRAL": []}

    for comment in comments:
        try:
            bucket = classify_comment(comment.text)
        except Exception as e:
            logger.warning(f"[COMMUNITY] Could not classify comment by {comment.author!r}: {e}")
            bucket = "NEUTRAL"
        buckets[bucket].append(comment)

    analysis = CommunityAnalysis(
        total_comments=len(comments),
        ai_votes=len(buckets["AI"]),
        real_votes=len(buckets["REAL"]),
        neutral_votes=len(buckets["NEUTRAL"]),
        top_ai_comments=_top_comments(buckets["AI"]),
        top_real_comments=_top_comments(buckets["REAL"]),
    )
    logger.info(
        f"[COMMUNITY] total={analysis.total_comments}, ai={analysis.ai_votes}, "
        f"real={analysis.real_votes}, neutral={analysis.neutral_votes}"
    )
    return analysis


def calculate_community_adjustment(community: Optional[CommunityAnalysis]) -> tuple[int, Optional[str]]:
    """
    Returns (adjustment, reason). Small samples never move the score; an
    adjustment of 0 always comes with no reason.
    """
    if community is None or community.total_comments < MIN_SAMPLE:
        return 0, None

    total = community.total_comments
    ai_ratio = community.ai_votes / total

    if total >= MIN_CONFIDENT_SAMPLE and ai_ratio >= AI_RATIO_HIGH:
        return AI_ADJUSTMENT, AI_REASON

    if total >= MIN_CONFIDENT_SAMPLE and (community.ai_votes == 0 or ai_ratio <= AI_RATIO_LOW):
        return REAL_ADJUSTMENT, REAL_REASON

    return 0, None
