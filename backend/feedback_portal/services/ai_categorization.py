"""AI-assisted categorization and trend reporting.

The LLM is a best-effort collaborator. ``analyze_feedback`` never raises:
a missing API key, a timeout, a provider error or a malformed answer all
come back as an ``AnalysisOutcome`` with ``unavailable_reason`` set, and the
submission proceeds with the user's own category and urgency.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from feedback_portal.config import get_settings
from feedback_portal.services.llm_http import call_provider_json
from feedback_portal.utils.json_utils import (
    coerce_analysis,
    coerce_report,
    safe_parse_json,
    validate_analysis_schema,
    validate_report_schema,
)

logger = logging.getLogger(__name__)

# Errors that mean "no analysis", never "failed submission"
_PROVIDER_ERRORS = (
    asyncio.TimeoutError,
    httpx.HTTPError,
    ValueError,
    KeyError,
    IndexError,
    TypeError,
)

ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "suggestedCategory": {
            "type": "string",
            "description": "The most appropriate category for this feedback",
        },
        "suggestedUrgency": {
            "type": "string",
            "enum": ["low", "medium", "high", "critical"],
            "description": "Suggested urgency level based on content",
        },
        "sentiment": {
            "type": "string",
            "enum": ["positive", "neutral", "negative", "mixed"],
            "description": "Overall sentiment of the feedback",
        },
        "summary": {
            "type": "string",
            "description": "A brief 1-2 sentence summary of the feedback",
        },
        "actionItems": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Specific actionable items extracted from the feedback",
        },
        "keyTopics": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Main topics or themes in the feedback",
        },
        "isActionable": {
            "type": "boolean",
            "description": "Whether this feedback contains actionable suggestions",
        },
        "suggestedTags": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Suggested tags based on content",
        },
    },
    "required": [
        "suggestedCategory", "suggestedUrgency", "sentiment", "summary",
        "actionItems", "keyTopics", "isActionable", "suggestedTags",
    ],
}

REPORT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "executiveSummary": {"type": "string"},
        "keyThemes": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "theme": {"type": "string"},
                    "frequency": {"type": "number"},
                    "sentiment": {"type": "string"},
                },
                "required": ["theme", "frequency", "sentiment"],
            },
        },
        "urgentItems": {"type": "array", "items": {"type": "string"}},
        "recommendations": {"type": "array", "items": {"type": "string"}},
        "trendAnalysis": {"type": "string"},
    },
    "required": [
        "executiveSummary", "keyThemes", "urgentItems", "recommendations", "trendAnalysis",
    ],
}

URGENCY_GUIDANCE = """\
   - Critical: Safety issues, legal concerns, immediate business impact
   - High: Significant employee wellbeing, major process failures
   - Medium: Improvement opportunities, recurring issues
   - Low: General suggestions, minor observations"""


@dataclass
class FeedbackAnalysis:
    suggested_category: str
    suggested_urgency: str
    sentiment: str
    summary: str
    action_items: list[str] = field(default_factory=list)
    key_topics: list[str] = field(default_factory=list)
    is_actionable: bool = False
    suggested_tags: list[str] = field(default_factory=list)


@dataclass
class AnalysisOutcome:
    """Either an analysis or the reason there is none."""

    analysis: FeedbackAnalysis | None = None
    unavailable_reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.analysis is not None

    @classmethod
    def unavailable(cls, reason: str) -> "AnalysisOutcome":
        return cls(analysis=None, unavailable_reason=reason)


# ── Prompts ────────────────────────────────────────────────────────────

def build_analysis_prompt(
    subject: str,
    description: str,
    impact: str | None,
    suggested_solution: str | None,
    categories: list[str],
    tags: list[str],
) -> str:
    category_line = (
        f"Available categories: {', '.join(categories)}"
        if categories else "Suggest an appropriate category name"
    )
    tag_line = (
        f"Available tags to choose from: {', '.join(tags)}"
        if tags else "Suggest relevant tags"
    )
    parts = [
        "Analyze the following anonymous feedback and provide structured analysis.",
        "",
        category_line,
        tag_line,
        "",
        "FEEDBACK:",
        f"Subject: {subject}",
        "",
        f"Description: {description}",
    ]
    if impact:
        parts += ["", f"Impact: {impact}"]
    if suggested_solution:
        parts += ["", f"Suggested Solution: {suggested_solution}"]
    parts += [
        "",
        "Analyze this feedback and provide:",
        "1. The most appropriate category from the available options",
        "2. Suggested urgency level (low, medium, high, critical) based on:",
        URGENCY_GUIDANCE,
        "3. Overall sentiment",
        "4. A brief summary",
        "5. Specific action items (if any)",
        "6. Key topics/themes",
        "7. Whether it's actionable",
        "8. Relevant tags from the available options",
    ]
    return "\n".join(parts)


def build_report_prompt(items: list[dict[str, Any]]) -> str:
    blocks = []
    for i, item in enumerate(items, start=1):
        blocks.append(
            f"{i}. [{str(item.get('urgency', '')).upper()}] "
            f"{item.get('category', '')} - {item.get('feedback_type', '')}\n"
            f"Subject: {item.get('subject', '')}\n"
            f"Description: {item.get('description', '')}\n"
            f"Status: {item.get('status', '')}\n"
            f"Submitted: {item.get('created_at', '')}"
        )
    return (
        "Analyze the following collection of anonymous feedback items and "
        "generate a comprehensive report.\n\n"
        "FEEDBACK ITEMS:\n"
        + "\n---\n".join(blocks)
        + "\n\nGenerate a report that includes:\n"
        "1. Executive summary of overall feedback trends\n"
        "2. Key themes with frequency and sentiment\n"
        "3. Items requiring urgent attention\n"
        "4. Specific recommendations for improvement\n"
        "5. Trend analysis and patterns observed"
    )


# ── Provider call ──────────────────────────────────────────────────────

async def _request_json(prompt: str, schema: dict[str, Any]) -> tuple[dict | None, str | None]:
    """Call the configured provider under the AI timeout.

    Returns (parsed_dict, None) or (None, reason).
    """
    settings = get_settings()
    api_key = settings.ai_api_key
    if not api_key:
        return None, "AI provider not configured"

    try:
        raw = await asyncio.wait_for(
            call_provider_json(
                prompt,
                schema,
                provider=settings.AI_PROVIDER,
                model=settings.ai_model,
                api_key=api_key,
                temperature=settings.AI_TEMPERATURE,
            ),
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.warning("AI call timed out after %.1fs", settings.AI_TIMEOUT_SECONDS)
        return None, "timeout"
    except _PROVIDER_ERRORS as exc:
        logger.warning("AI provider call failed: %s: %s", type(exc).__name__, exc)
        return None, f"provider error: {type(exc).__name__}"

    parsed = safe_parse_json(raw)
    if not parsed.ok:
        logger.warning("AI returned unparseable output: %r", parsed.raw_preview)
        return None, "malformed response"
    return parsed.data, None


async def analyze_feedback(
    subject: str,
    description: str,
    impact: str | None = None,
    suggested_solution: str | None = None,
    categories: list[str] | None = None,
    tags: list[str] | None = None,
) -> AnalysisOutcome:
    """Ask the LLM for a structured analysis of one submission."""
    prompt = build_analysis_prompt(
        subject, description, impact, suggested_solution, categories or [], tags or [],
    )
    data, reason = await _request_json(prompt, ANALYSIS_SCHEMA)
    if data is None:
        return AnalysisOutcome.unavailable(reason or "unknown")

    valid, violations = validate_analysis_schema(data)
    if not valid:
        logger.warning("AI analysis failed schema validation: %s", "; ".join(violations))
        return AnalysisOutcome.unavailable("schema violation")

    analysis = FeedbackAnalysis(**coerce_analysis(data))
    logger.info(
        "AI analysis: category=%s urgency=%s sentiment=%s",
        analysis.suggested_category, analysis.suggested_urgency, analysis.sentiment,
    )
    return AnalysisOutcome(analysis=analysis)


def merge_tag_names(user_tags: list[str], outcome: AnalysisOutcome) -> list[str]:
    """Union the user's tags with AI-suggested tags, first-seen order."""
    merged = list(dict.fromkeys(user_tags))
    if outcome.ok:
        for tag in outcome.analysis.suggested_tags:
            if tag not in merged:
                merged.append(tag)
    return merged


def analysis_fields(outcome: AnalysisOutcome, category_names: list[str]) -> dict[str, Any]:
    """Map an outcome onto the advisory ``ai_*`` feedback columns.

    ``ai_category`` is only set when the suggestion names a known category.
    """
    if not outcome.ok:
        return {}
    a = outcome.analysis
    return {
        "ai_category": a.suggested_category if a.suggested_category in category_names else None,
        "ai_category_suggestion": a.suggested_category or None,
        "ai_urgency_suggestion": a.suggested_urgency,
        "ai_priority": a.suggested_urgency,
        "ai_sentiment": a.sentiment,
        "ai_summary": a.summary or None,
        "ai_keywords": a.key_topics,
        "ai_action_items": a.action_items,
    }


# ── Trend report ───────────────────────────────────────────────────────

def render_report(report: dict[str, Any]) -> str:
    """Render a coerced report dict as Markdown."""
    themes = "\n".join(
        f"- **{t['theme']}** ({t['frequency']} mentions) - {t['sentiment']}"
        for t in report["key_themes"]
    )
    urgent = "\n".join(f"- {item}" for item in report["urgent_items"])
    recs = "\n".join(f"{i}. {rec}" for i, rec in enumerate(report["recommendations"], start=1))
    return (
        "# Feedback Analysis Report\n\n"
        f"## Executive Summary\n{report['executive_summary']}\n\n"
        f"## Key Themes\n{themes}\n\n"
        f"## Urgent Items\n{urgent}\n\n"
        f"## Recommendations\n{recs}\n\n"
        f"## Trend Analysis\n{report['trend_analysis']}\n"
    )


async def generate_feedback_report(items: list[dict[str, Any]]) -> str | None:
    """Summarize many feedback items into a Markdown report, or ``None``."""
    if not items:
        return None

    data, reason = await _request_json(build_report_prompt(items), REPORT_SCHEMA)
    if data is None:
        logger.info("Report unavailable: %s", reason)
        return None

    valid, violations = validate_report_schema(data)
    if not valid:
        logger.warning("AI report failed schema validation: %s", "; ".join(violations))
        return None

    return render_report(coerce_report(data))
