"""Tests for urgency triage."""

import pytest

from omnisync.contracts.models import TelemetryLevel, UrgencyLevel
from omnisync.triage.urgency import analyze_text_urgency, resolve_level
from omnisync.utils.errors import InvalidInputError

KEYWORDS = ["emergency", "urgent", "help"]


class TestAnalyzeTextUrgency:
    """Test keyword scoring."""

    def test_two_matches(self):
        report = analyze_text_urgency("this is an emergency, please help now", KEYWORDS)
        assert report.score == 50
        assert report.level == UrgencyLevel.HIGH
        assert report.is_urgent is True
        assert report.matched_keywords == ["emergency", "help"]

    def test_no_match(self):
        report = analyze_text_urgency("what are your opening hours?", KEYWORDS)
        assert report.score == 0
        assert report.level == UrgencyLevel.LOW
        assert report.is_urgent is False
        assert report.matched_keywords == []

    def test_single_match_is_urgent(self):
        report = analyze_text_urgency("I need HELP", KEYWORDS)
        assert report.score == 25
        assert report.level == UrgencyLevel.MEDIUM
        assert report.is_urgent is True

    def test_three_matches(self):
        report = analyze_text_urgency("urgent emergency, help", KEYWORDS)
        assert report.score == 75
        assert report.level == UrgencyLevel.HIGH

    def test_score_capped(self):
        keywords = ["fire", "flood", "help", "now", "please"]
        report = analyze_text_urgency("fire and flood, help now please", keywords)
        assert report.score == 100
        assert report.level == UrgencyLevel.CRITICAL

    def test_keywords_normalised(self):
        report = analyze_text_urgency("Es URGENTE", ["  Urgente "])
        assert report.matched_keywords == ["urgente"]

    def test_duplicates_and_blanks(self):
        report = analyze_text_urgency("help!", ["help", "HELP", "", "   "])
        assert report.score == 25
        assert report.matched_keywords == ["help"]

    def test_empty_keywords(self):
        assert analyze_text_urgency("anything", []).score == 0

    def test_accepts_tuple(self):
        assert analyze_text_urgency("help", ("help",)).score == 25

    @pytest.mark.parametrize(
        "content,keywords",
        [
            (None, KEYWORDS),
            (42, KEYWORDS),
            ("help", "help"),
            ("help", None),
            ("help", ["help", 3]),
        ],
    )
    def test_invalid_input(self, content, keywords):
        with pytest.raises(InvalidInputError):
            analyze_text_urgency(content, keywords)


class TestResolveLevel:
    """Test score thresholds."""

    @pytest.mark.parametrize(
        "score,level",
        [
            (0, UrgencyLevel.LOW),
            (24, UrgencyLevel.LOW),
            (25, UrgencyLevel.MEDIUM),
            (49, UrgencyLevel.MEDIUM),
            (50, UrgencyLevel.HIGH),
            (89, UrgencyLevel.HIGH),
            (90, UrgencyLevel.CRITICAL),
            (100, UrgencyLevel.CRITICAL),
        ],
    )
    def test_thresholds(self, score, level):
        assert resolve_level(score) == level


class TestTracedAnalysis:
    """Test analysis through a TraceRecorder."""

    def test_success_traced(self, recorder, sink):
        report = analyze_text_urgency("urgent help", KEYWORDS, recorder=recorder)

        assert report.score == 50
        [entry] = sink.entries
        assert entry.level == TelemetryLevel.PERFORMANCE
        assert entry.apparatus == "UrgencyTriage"
        assert entry.operation == "analyze_text_urgency"

    def test_invalid_input_traced_and_raised(self, recorder, sink):
        with pytest.raises(InvalidInputError):
            analyze_text_urgency(None, KEYWORDS, recorder=recorder)

        [entry] = sink.entries
        assert entry.level == TelemetryLevel.ERROR
        assert entry.metadata["error_type"] == "InvalidInputError"
