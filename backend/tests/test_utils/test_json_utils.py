"""Tests for LLM JSON extraction, validation and coercion."""
from feedback_portal.schemas.common import Sentiment, Urgency
from feedback_portal.utils.json_utils import (
    coerce_analysis,
    coerce_report,
    extract_json_object,
    safe_parse_json,
    sanitize_llm_output,
    validate_analysis_schema,
    validate_report_schema,
)


class TestSanitize:
    def test_strips_reasoning_and_fences(self):
        raw = '<think>let me see {"no": 1}</think>\n```json\n{"a": 1}\n```'
        assert sanitize_llm_output(raw) == '{"a": 1}'

    def test_unclosed_reasoning_tag(self):
        assert sanitize_llm_output('{"a": 1} <thought>and then') == '{"a": 1}'

    def test_empty(self):
        assert sanitize_llm_output("") == ""


class TestExtractJsonObject:
    def test_braces_inside_strings(self):
        text = 'Here you go: {"summary": "use {curly} braces", "n": {"x": 1}} trailing'
        assert extract_json_object(text) == '{"summary": "use {curly} braces", "n": {"x": 1}}'

    def test_unbalanced(self):
        assert extract_json_object('{"a": 1') is None
        assert extract_json_object("no json") is None


class TestSafeParseJson:
    def test_direct(self):
        result = safe_parse_json('{"a": 1}')
        assert result.ok and result.method == "direct"

    def test_extraction(self):
        result = safe_parse_json('Sure! {"a": 1} Hope that helps.')
        assert result.data == {"a": 1}
        assert result.method == "extraction"

    def test_non_object(self):
        result = safe_parse_json("[1, 2, 3]")
        assert result.ok is False
        assert result.method == "failed"


class TestValidation:
    def test_analysis_violations(self):
        ok, violations = validate_analysis_schema({
            "suggestedCategory": 3,
            "suggestedUrgency": "urgent",
            "sentiment": "Positive",
            "actionItems": "fix it",
            "keyTopics": [],
        })
        assert ok is False
        joined = " | ".join(violations)
        assert "'suggestedCategory' is not a string" in joined
        assert "missing required field 'summary'" in joined
        assert "invalid suggestedUrgency" in joined
        assert "sentiment" not in joined
        assert "'actionItems' is not a list" in joined
        assert "missing required field 'suggestedTags'" in joined

    def test_every_enum_value_accepted(self):
        for urgency in Urgency:
            for sentiment in Sentiment:
                ok, violations = validate_analysis_schema({
                    "suggestedCategory": "facilities",
                    "suggestedUrgency": urgency.value.upper(),
                    "sentiment": sentiment.value,
                    "summary": "Lights out",
                    "actionItems": [],
                    "keyTopics": [],
                    "suggestedTags": [],
                })
                assert ok, violations

    def test_report_violations(self):
        ok, violations = validate_report_schema({
            "executiveSummary": "x",
            "keyThemes": [{"frequency": 1}],
            "urgentItems": [],
            "recommendations": [],
        })
        assert ok is False
        assert "missing or non-string 'trendAnalysis'" in violations
        assert "keyThemes[0] missing 'theme'" in violations


class TestCoercion:
    def test_analysis_normalized(self):
        data = coerce_analysis({
            "suggestedCategory": " facilities ",
            "suggestedUrgency": "HIGH",
            "sentiment": "Negative",
            "summary": " Lights. ",
            "actionItems": ["Fix", "", None, " Check "],
            "keyTopics": ["lighting"],
            "suggestedTags": ["safety"],
        })
        assert data["suggested_category"] == "facilities"
        assert data["suggested_urgency"] == "high"
        assert data["sentiment"] == "negative"
        assert data["summary"] == "Lights."
        assert data["action_items"] == ["Fix", "Check"]
        assert data["is_actionable"] is False

    def test_report_theme_defaults(self):
        data = coerce_report({
            "executiveSummary": " Summary ",
            "keyThemes": [{"theme": "Lighting", "frequency": "many"}],
            "trendAnalysis": "Flat",
        })
        assert data["key_themes"] == [{"theme": "Lighting", "frequency": 0, "sentiment": "neutral"}]
        assert data["executive_summary"] == "Summary"
        assert data["urgent_items"] == []
