"""
Severity classification for operational incidents.

Pure functions only: nothing here touches persisted state, and nothing
raises for unrecognized input. Unknown contexts and unknown severity
strings fall through to the caller-supplied default, or ``warning``.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @classmethod
    def coerce(cls, value: Any, default: Optional["Severity"] = None) -> "Severity":
        if default is None:
            default = cls.WARNING
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        return default


# info -> warning -> error -> critical; critical is absorbing
SEVERITY_LADDER = (Severity.INFO, Severity.WARNING, Severity.ERROR, Severity.CRITICAL)

CONTEXT_VISUAL_METADATA_MISSING = "visual_metadata_missing"
CONTEXT_INCIDENT_STUCK = "incident_stuck"
CONTEXT_DEFAULT = "default"

STUCK_CRITICAL_MINUTES = 15


def escalate_one_step(severity: Severity) -> Severity:
    idx = SEVERITY_LADDER.index(severity)
    return SEVERITY_LADDER[min(idx + 1, len(SEVERITY_LADDER) - 1)]


def severity_rank(severity: Severity) -> int:
    return SEVERITY_LADDER.index(severity)


def _fallback(details: Mapping[str, Any]) -> Severity:
    return Severity.coerce(details.get("severity"), default=Severity.WARNING)


def classify(context: Optional[str], details: Optional[Mapping[str, Any]] = None) -> Severity:
    """
    Map a situation tag plus its signals to a severity.

    ``visual_metadata_missing`` reads ``thumbnail_timeout``, ``has_dimensions``
    and ``retry_count``; ``incident_stuck`` reads ``minutes_stuck``. Every
    other context returns ``details["severity"]`` or ``warning``.
    """
    details = details or {}
    tag = (context or CONTEXT_DEFAULT).strip().lower()

    if tag == CONTEXT_VISUAL_METADATA_MISSING:
        timed_out = bool(details.get("thumbnail_timeout"))
        has_dimensions = bool(details.get("has_dimensions"))
        try:
            retry_count = int(details.get("retry_count") or 0)
        except (TypeError, ValueError):
            retry_count = 0
        if timed_out and not has_dimensions:
            return Severity.CRITICAL
        if retry_count >= 2:
            return Severity.ERROR
        return Severity.WARNING

    if tag == CONTEXT_INCIDENT_STUCK:
        try:
            minutes_stuck = float(details.get("minutes_stuck") or 0)
        except (TypeError, ValueError):
            minutes_stuck = 0
        if minutes_stuck >= STUCK_CRITICAL_MINUTES:
            return Severity.CRITICAL
        return _fallback(details)

    return _fallback(details)
