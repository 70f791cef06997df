"""Keyword-based urgency triage of inbound text."""

from __future__ import annotations

from typing import Any, Sequence

from omnisync.contracts.models import UrgencyLevel, UrgencyReport
from omnisync.contracts.validation import validate
from omnisync.observability.telemetry import TraceRecorder
from omnisync.utils.errors import InvalidInputError

APPARATUS = "UrgencyTriage"
POINTS_PER_MATCH = 25
MAX_SCORE = 100

# Minimum score per level, highest first
LEVEL_THRESHOLDS: tuple[tuple[int, UrgencyLevel], ...] = (
    (90, UrgencyLevel.CRITICAL),
    (50, UrgencyLevel.HIGH),
    (25, UrgencyLevel.MEDIUM),
)


def resolve_level(score: int) -> UrgencyLevel:
    for threshold, level in LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return UrgencyLevel.LOW


def analyze_text_urgency(
    content: str,
    localized_keywords: Sequence[str],
    recorder: TraceRecorder | None = None,
) -> UrgencyReport:
    """Score ``content`` by the number of distinct keywords it contains.

    Matching is a case-insensitive substring test. Keywords are stripped
    and lowercased; blank ones are ignored and repeats count once.

    Args:
        content: User text
        localized_keywords: Keywords for the detected language
        recorder: When given, the analysis is traced as one
            PERFORMANCE (or ERROR) entry

    Returns:
        UrgencyReport with a score of 25 per match, capped at 100

    Raises:
        InvalidInputError: If content is not a string or keywords are not
            a sequence of strings
    """
    if recorder is None:
        return _analyze(content, localized_keywords)
    return recorder.trace_execution_sync(
        APPARATUS,
        "analyze_text_urgency",
        lambda: _analyze(content, localized_keywords),
    )


def _analyze(content: Any, localized_keywords: Any) -> UrgencyReport:
    if not isinstance(content, str):
        raise InvalidInputError("Content must be a string", argument="content")
    keywords = _check_keywords(localized_keywords)

    haystack = content.lower()
    matched: list[str] = []
    for keyword in keywords:
        normalized = keyword.strip().lower()
        if normalized and normalized not in matched and normalized in haystack:
            matched.append(normalized)

    score = min(len(matched) * POINTS_PER_MATCH, MAX_SCORE)
    return validate(
        UrgencyReport,
        {
            "is_urgent": score >= POINTS_PER_MATCH,
            "score": score,
            "level": resolve_level(score),
            "matched_keywords": matched,
        },
        "analyze_text_urgency",
    )


def _check_keywords(keywords: Any) -> list[str]:
    if isinstance(keywords, (str, bytes)) or not isinstance(keywords, Sequence):
        raise InvalidInputError("Keywords must be a sequence of strings", argument="localized_keywords")
    for keyword in keywords:
        if not isinstance(keyword, str):
            raise InvalidInputError(
                f"Keyword must be a string, got {type(keyword).__name__}",
                argument="localized_keywords",
            )
    return list(keywords)
