"""Helpers for the human-readable time and length strings shown on channel pages."""

from __future__ import annotations

import re

_RELATIVE_AGE_PATTERN = re.compile(r"(\d+)\s*(second|minute|hour|day|week|month|year)s?")
_DAYS_PER_UNIT = {
    "second": 1 / 86400,
    "minute": 1 / 1440,
    "hour": 1 / 24,
    "day": 1.0,
    "week": 7.0,
    "month": 30.0,
    "year": 365.0,
}
_SPOKEN_DURATION_PATTERN = re.compile(r"(\d+)\s*(hour|minute|second)s?")
_SECONDS_PER_UNIT = {"hour": 3600, "minute": 60, "second": 1}
UPCOMING_KEYWORDS = ("scheduled", "premieres", "waiting", "upcoming")


def parse_relative_age_days(text: str | None) -> float:
    """Convert text such as ``"3 weeks ago"`` into an age in days.

    Text without a recognizable quantity yields ``0``.
    """

    if not text:
        return 0.0
    match = _RELATIVE_AGE_PATTERN.search(text.lower())
    if not match:
        return 0.0
    return int(match.group(1)) * _DAYS_PER_UNIT[match.group(2)]


def parse_duration_seconds(text: str | None) -> int | None:
    """Convert ``H:MM:SS``, ``M:SS`` or ``S`` into seconds; ``None`` if unparseable."""

    if not text:
        return None
    parts = text.strip().split(":")
    try:
        numbers = [int(part) for part in parts]
    except ValueError:
        return _parse_spoken_duration(text)
    seconds = 0
    for number in numbers[-3:]:
        seconds = seconds * 60 + number
    return seconds


def _parse_spoken_duration(text: str) -> int | None:
    # Accessibility labels: "1 hour, 2 minutes, 3 seconds"
    matches = _SPOKEN_DURATION_PATTERN.findall(text.lower())
    if not matches:
        return None
    return sum(int(amount) * _SECONDS_PER_UNIT[unit] for amount, unit in matches)


def is_upcoming(text: str | None) -> bool:
    """Return True for scheduled/premiering entries, which carry no real age."""

    if not text:
        return True
    lowered = text.lower()
    return any(keyword in lowered for keyword in UPCOMING_KEYWORDS)


def exceeds_max_age(text: str | None, max_age_days: float | None) -> bool:
    if max_age_days is None:
        return False
    return parse_relative_age_days(text) > max_age_days


def below_min_length(text: str | None, min_length_seconds: int) -> bool:
    if min_length_seconds <= 0:
        return False
    seconds = parse_duration_seconds(text)
    if seconds is None:
        return False
    return seconds < min_length_seconds
