"""Tests for the moderation heuristic and keyword extraction."""
from feedback_portal.services.moderation import (
    FLAG_ABUSIVE,
    FLAG_SPAM,
    FLAG_THREAT,
    FLAG_TOO_SHORT,
    extract_keywords,
    moderate_content,
)


class TestModerateContent:
    def test_clean_text_passes(self):
        result = moderate_content(
            "The parking lot lighting is too dim at night and people feel unsafe walking to their cars"
        )
        assert result.passed is True
        assert result.score == 100
        assert result.flags == []

    def test_threat_always_fails(self):
        result = moderate_content("I will attack the problem head on with a new plan")
        assert result.score == 50
        assert FLAG_THREAT in result.flags
        assert result.passed is False

    def test_too_short(self):
        result = moderate_content("Too dim")
        assert result.flags == [FLAG_TOO_SHORT]
        assert result.score == 90
        assert result.passed is True

    def test_excessive_caps(self):
        result = moderate_content("THIS IS ABSOLUTELY UNACCEPTABLE behaviour from management")
        assert result.flags == [FLAG_ABUSIVE]
        assert result.score == 80
        assert result.passed is True

    def test_each_abusive_pattern_costs_points_but_flags_once(self):
        result = moderate_content("stupid idea!!!!!! AAAAAAAAAAAA")
        assert result.flags == [FLAG_ABUSIVE]
        assert result.score == 40
        assert result.passed is False

    def test_spam_phrases_and_urls(self):
        result = moderate_content("Click here to claim free money at https://spam.example.com today")
        assert result.flags == [FLAG_SPAM]
        assert result.score == 40
        assert result.passed is False

    def test_insult_match_is_case_insensitive(self):
        result = moderate_content("This whole process is Terrible for everyone involved")
        assert FLAG_ABUSIVE in result.flags

    def test_score_floors_at_zero(self):
        result = moderate_content("kill kill stupid AAAAAAAAAA!!!!!! buy now http://x.io")
        assert result.score == 0
        assert result.passed is False
        assert result.flags == [FLAG_ABUSIVE, FLAG_SPAM, FLAG_THREAT]

    def test_empty_text_does_not_raise(self):
        result = moderate_content("")
        assert result.flags == [FLAG_TOO_SHORT]
        assert 0 <= result.score <= 100


class TestExtractKeywords:
    def test_counts_and_orders(self):
        words = extract_keywords("The lighting in the parking lot is broken. Lighting matters!")
        assert words == ["lighting", "parking", "broken", "matters"]

    def test_drops_stop_words_and_short_tokens(self):
        words = extract_keywords("would these cat dog bird about them")
        assert words == ["bird"]

    def test_ties_keep_first_seen_order(self):
        assert extract_keywords("zebra apple mango") == ["zebra", "apple", "mango"]

    def test_limit(self):
        text = " ".join(f"word{chr(97 + i)}" for i in range(12))
        assert len(extract_keywords(text)) == 10
        assert extract_keywords(text, limit=3) == ["worda", "wordb", "wordc"]

    def test_empty(self):
        assert extract_keywords("") == []
