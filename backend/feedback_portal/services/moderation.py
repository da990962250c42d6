"""Content moderation heuristic and keyword extraction.

Every submission is scored against three pattern families plus a length
floor before it is stored:

  - abusive language (insults, long capital runs, repeated characters)
  - spam (promotional phrases, embedded URLs)
  - threats (violence vocabulary)

The result only decides the initial ``moderation_status`` (approved or
flagged). Rejection is always a human decision.
"""
from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

START_SCORE = 100
PASS_SCORE = 50
MIN_LENGTH = 20

FLAG_ABUSIVE = "potentially_abusive"
FLAG_SPAM = "potential_spam"
FLAG_THREAT = "potential_threat"
FLAG_TOO_SHORT = "too_short"

# (flag, penalty, patterns); each matching pattern costs one penalty
PATTERN_FAMILIES: list[tuple[str, int, list[re.Pattern]]] = [
    (
        FLAG_ABUSIVE,
        20,
        [
            re.compile(r"\b(idiot|stupid|dumb|hate|terrible)\b", re.IGNORECASE),
            re.compile(r"[A-Z]{10,}"),
            re.compile(r"(.)\1{5,}"),
        ],
    ),
    (
        FLAG_SPAM,
        30,
        [
            re.compile(r"\b(buy now|click here|free money|winner)\b", re.IGNORECASE),
            re.compile(r"https?://\S+", re.IGNORECASE),
        ],
    ),
    (
        FLAG_THREAT,
        50,
        [re.compile(r"\b(threat|kill|hurt|violence|attack)\b", re.IGNORECASE)],
    ),
]
TOO_SHORT_PENALTY = 10


@dataclass
class ModerationResult:
    passed: bool
    score: int  # 0 - 100
    flags: list[str] = field(default_factory=list)


def moderate_content(text: str) -> ModerationResult:
    """Score ``text`` and decide whether it can be auto-approved.

    A threat flag fails the check whatever the numeric score is.
    """
    text = text or ""
    flags: list[str] = []
    score = START_SCORE

    for flag, penalty, patterns in PATTERN_FAMILIES:
        for pattern in patterns:
            if pattern.search(text):
                if flag not in flags:
                    flags.append(flag)
                score -= penalty

    if len(text) < MIN_LENGTH:
        flags.append(FLAG_TOO_SHORT)
        score -= TOO_SHORT_PENALTY

    score = max(0, score)
    passed = score >= PASS_SCORE and FLAG_THREAT not in flags

    logger.debug("Moderation score=%d passed=%s flags=%s", score, passed, flags)
    return ModerationResult(passed=passed, score=score, flags=flags)


STOP_WORDS = frozenset({
    "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "shall", "can", "need", "dare",
    "ought", "used", "to", "of", "in", "for", "on", "with", "at", "by",
    "from", "up", "about", "into", "over", "after", "beneath", "under",
    "above", "and", "but", "or", "nor", "so", "yet", "both", "either",
    "neither", "not", "only", "own", "same", "than", "too", "very", "just",
    "that", "this", "these", "those", "i", "me", "my", "we", "our", "you",
    "your", "he", "him", "his", "she", "her", "it", "its", "they", "them",
    "their", "what", "which", "who", "whom", "when", "where", "why", "how",
})

MAX_KEYWORDS = 10
_PUNCT_RE = re.compile(r"[^\w\s]")


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """Return the most frequent content words of ``text``.

    Tokens are lowercased, stripped of punctuation and split on whitespace.
    Stop words and tokens of three characters or fewer are dropped. Equal
    counts keep first-seen order.
    """
    cleaned = _PUNCT_RE.sub("", (text or "").lower())
    words = [w for w in cleaned.split() if len(w) > 3 and w not in STOP_WORDS]
    # Counter preserves insertion order and sorted() is stable
    counts = Counter(words)
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [word for word, _ in ranked[:limit]]
