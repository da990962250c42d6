"""JSON extraction, validation and coercion for LLM output.

Even in JSON mode, provider output is treated as untrusted text. The
pipeline is:

1. **Sanitize**: strip reasoning tags, markdown fences, whitespace
2. **Direct parse**: ``json.loads()`` on the cleaned text
3. **Balanced-brace extraction**: character-level scan for the first ``{…}``
4. **Validate**: check the parsed dict against the expected shape
5. **Coerce**: normalize enums and list fields for storage
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any

from feedback_portal.schemas.common import Sentiment, Urgency

logger = logging.getLogger(__name__)

URGENCY_VALUES = {u.value for u in Urgency}
SENTIMENT_VALUES = {s.value for s in Sentiment}


# ── 1. Sanitization ───────────────────────────────────────────────────

def sanitize_llm_output(raw: str) -> str:
    """Strip non-JSON artefacts from raw LLM output."""
    if not raw:
        return ""

    text = raw
    for tag in ("think", "reasoning", "thought"):
        text = re.sub(rf"<{tag}>.*?</{tag}>", "", text, flags=re.DOTALL | re.IGNORECASE)
    # Unclosed tags run to end-of-string
    for tag in ("think", "reasoning", "thought"):
        text = re.sub(rf"<{tag}>.*$", "", text, flags=re.DOTALL | re.IGNORECASE)

    text = re.sub(r"```(?:json|JSON)?\s*\n?", "", text)
    return text.strip()


# ── 2. Balanced-brace extraction ──────────────────────────────────────

def extract_json_object(text: str) -> str | None:
    """Extract the first balanced ``{…}`` substring.

    Braces inside JSON string literals are ignored. Returns ``None`` when no
    balanced object exists.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False

    for i in range(start, len(text)):
        ch = text[i]

        if escape_next:
            escape_next = False
            continue
        if ch == "\\":
            if in_string:
                escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    return None


# ── 3. Safe parse pipeline ────────────────────────────────────────────

class ParseResult:
    """Outcome of a ``safe_parse_json`` call with diagnostic metadata."""

    __slots__ = ("data", "method", "raw_preview")

    def __init__(self, data: dict[str, Any] | None, method: str, raw_preview: str = ""):
        self.data = data
        self.method = method                # "direct" | "extraction" | "failed"
        self.raw_preview = raw_preview

    @property
    def ok(self) -> bool:
        return self.data is not None


def safe_parse_json(raw: str) -> ParseResult:
    """Parse the first JSON object found in ``raw``; never raises."""
    raw_preview = (raw or "")[:300]
    sanitized = sanitize_llm_output(raw or "")

    try:
        data = json.loads(sanitized)
        if isinstance(data, dict):
            return ParseResult(data, "direct", raw_preview)
    except (json.JSONDecodeError, ValueError):
        pass

    extracted = extract_json_object(sanitized)
    if extracted:
        try:
            data = json.loads(extracted)
            if isinstance(data, dict):
                return ParseResult(data, "extraction", raw_preview)
        except (json.JSONDecodeError, ValueError):
            pass

    return ParseResult(None, "failed", raw_preview)


# ── 4. Schema validation ──────────────────────────────────────────────

def _check_str_list(data: dict[str, Any], key: str, violations: list[str]) -> None:
    val = data.get(key)
    if val is None:
        violations.append(f"missing required field '{key}'")
    elif not isinstance(val, list):
        violations.append(f"'{key}' is not a list: {type(val).__name__}")


def validate_analysis_schema(data: dict[str, Any]) -> tuple[bool, list[str]]:
    """Validate a parsed feedback analysis.

    Returns (is_valid, list_of_violations).
    """
    violations: list[str] = []

    for key in ("suggestedCategory", "summary"):
        val = data.get(key)
        if val is None:
            violations.append(f"missing required field '{key}'")
        elif not isinstance(val, str):
            violations.append(f"'{key}' is not a string: {type(val).__name__}")

    urgency = str(data.get("suggestedUrgency", "")).lower()
    if urgency not in URGENCY_VALUES:
        violations.append(f"invalid suggestedUrgency: {data.get('suggestedUrgency')!r}")

    sentiment = str(data.get("sentiment", "")).lower()
    if sentiment not in SENTIMENT_VALUES:
        violations.append(f"invalid sentiment: {data.get('sentiment')!r}")

    for key in ("actionItems", "keyTopics", "suggestedTags"):
        _check_str_list(data, key, violations)

    return (len(violations) == 0, violations)


def validate_report_schema(data: dict[str, Any]) -> tuple[bool, list[str]]:
    """Validate a parsed trend report."""
    violations: list[str] = []

    for key in ("executiveSummary", "trendAnalysis"):
        if not isinstance(data.get(key), str):
            violations.append(f"missing or non-string '{key}'")

    for key in ("urgentItems", "recommendations"):
        _check_str_list(data, key, violations)

    themes = data.get("keyThemes")
    if not isinstance(themes, list):
        violations.append("'keyThemes' is not a list")
    else:
        for i, theme in enumerate(themes):
            if not isinstance(theme, dict) or "theme" not in theme:
                violations.append(f"keyThemes[{i}] missing 'theme'")

    return (len(violations) == 0, violations)


# ── 5. Coercion (only after validation) ───────────────────────────────

def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def coerce_analysis(data: dict[str, Any]) -> dict[str, Any]:
    """Normalize a validated analysis into snake_case storage-ready fields."""
    return {
        "suggested_category": str(data.get("suggestedCategory", "")).strip(),
        "suggested_urgency": str(data.get("suggestedUrgency", "")).lower(),
        "sentiment": str(data.get("sentiment", "")).lower(),
        "summary": str(data.get("summary", "")).strip(),
        "action_items": _str_list(data.get("actionItems")),
        "key_topics": _str_list(data.get("keyTopics")),
        "is_actionable": bool(data.get("isActionable", False)),
        "suggested_tags": _str_list(data.get("suggestedTags")),
    }


def coerce_report(data: dict[str, Any]) -> dict[str, Any]:
    """Normalize a validated report, defaulting missing theme fields."""
    themes = []
    for theme in data.get("keyThemes", []):
        try:
            frequency = int(theme.get("frequency", 0))
        except (TypeError, ValueError):
            frequency = 0
        themes.append({
            "theme": str(theme.get("theme", "")).strip(),
            "frequency": frequency,
            "sentiment": str(theme.get("sentiment", "neutral")),
        })
    return {
        "executive_summary": data["executiveSummary"].strip(),
        "key_themes": themes,
        "urgent_items": _str_list(data.get("urgentItems")),
        "recommendations": _str_list(data.get("recommendations")),
        "trend_analysis": data["trendAnalysis"].strip(),
    }
