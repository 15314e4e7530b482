import pytest

from app.detection.community import (
    AI_REASON,
    REAL_REASON,
    analyze_comments,
    calculate_community_adjustment,
    classify_comment,
    truncate_text,
)
from app.schemas.analysis import CommentRecord, CommunityAnalysis


def comment(text, likes=0, author="viewer"):
    return CommentRecord(author=author, text=text, like_count=likes)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("This is so fake, clearly AI", "AI"),
        ("Made with SORA for sure", "AI"),
        ("ai가 만든 영상이네요", "AI"),
        ("딥페이크 같아요", "AI"),
        ("not ai, this is real footage", "REAL"),
        ("Shot on iPhone 15", "REAL"),
        ("이건 실제 촬영입니다", "REAL"),
        ("I said I'd watch it again", "NEUTRAL"),
        ("Great video!", "NEUTRAL"),
        ("", "NEUTRAL"),
    ],
)
def test_classify_comment(text, expected):
    assert classify_comment(text) == expected


def test_real_cue_wins_over_ai_cue():
    assert classify_comment("People keep saying AI but this is real") == "REAL"


def test_whitespace_is_normalized():
    assert classify_comment("NOT\n\n   AI at all") == "REAL"


def test_truncate_text():
    assert truncate_text("short") == "short"
    assert truncate_text("x" * 120) == "x" * 120
    assert truncate_text("x" * 130) == "x" * 120 + "…"


def test_analyze_comments_counts_buckets():
    comments = [
        comment("fake fake fake"),
        comment("this is ai"),
        comment("not ai, real footage"),
        comment("nice music"),
        comment("love it"),
    ]
    result = analyze_comments(comments)

    assert result.total_comments == 5
    assert (result.ai_votes, result.real_votes, result.neutral_votes) == (2, 1, 2)
    assert result.ai_votes + result.real_votes + result.neutral_votes == result.total_comments


def test_top_comments_ranked_by_likes_and_truncated():
    comments = [
        comment("ai one", likes=1, author="a"),
        comment("ai two " + "y" * 200, likes=50, author="b"),
        comment("ai three", likes=3, author="c"),
        comment("ai four", likes=50, author="d"),
        comment("ai five", likes=0, author="e"),
    ]
    result = analyze_comments(comments)

    assert [c.author for c in result.top_ai_comments] == ["b", "d", "c"]
    assert result.top_ai_comments[0].text.endswith("…")
    assert len(result.top_ai_comments[0].text) == 121
    assert result.top_real_comments == []


def test_empty_comment_list():
    result = analyze_comments([])
    assert result.total_comments == 0
    assert calculate_community_adjustment(result) == (0, None)


@pytest.mark.parametrize(
    "total, ai_votes, expected",
    [
        (4, 4, (0, None)),
        (5, 5, (0, None)),
        (10, 4, (10, AI_REASON)),
        (10, 3, (10, AI_REASON)),
        (10, 0, (-5, REAL_REASON)),
        (20, 1, (-5, REAL_REASON)),
        (10, 2, (0, None)),
    ],
)
def test_community_adjustment(total, ai_votes, expected):
    community = CommunityAnalysis(
        total_comments=total, ai_votes=ai_votes, real_votes=0, neutral_votes=total - ai_votes
    )
    assert calculate_community_adjustment(community) == expected


def test_no_community_means_no_adjustment():
    assert calculate_community_adjustment(None) == (0, None)


@pytest.mark.parametrize("text", ["these fakes are everywhere", "the ais of the team", "cgis", "soraya sang"])
def test_short_keywords_need_word_boundaries(text):
    assert classify_comment(text) == "NEUTRAL"


@pytest.mark.parametrize("text", ["fake!", "(ai)", "ai임", "cgi-heavy"])
def test_short_keywords_match_next_to_punctuation_and_hangul(text):
    assert classify_comment(text) == "AI"
