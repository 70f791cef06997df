"""Message triage."""

from omnisync.triage.urgency import analyze_text_urgency, resolve_level

__all__ = ["analyze_text_urgency", "resolve_level"]
