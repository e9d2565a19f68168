from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


DEFAULT_SUMMARY = "request summary"

# Checked in order; the upper bound is exclusive, None means unbounded.
_STATUS_SEVERITY: tuple[tuple[int, int | None, Severity], ...] = (
    (500, None, Severity.ERROR),
    (400, 500, Severity.WARNING),
)


def severity_for_status(status: int) -> Severity:
    """Map a final HTTP status code to the summary record's level.

    4xx is a warning, 5xx and above an error, everything else info.
    """

    for low, high, severity in _STATUS_SEVERITY:
        if status >= low and (high is None or status < high):
            return severity
    return Severity.INFO


def summary_message(errors: list[str]) -> str:
    if not errors:
        return DEFAULT_SUMMARY
    return ", ".join(f"error #{i}: {msg}" for i, msg in enumerate(errors, start=1))
