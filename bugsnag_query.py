"""Event query filters and time window parsing."""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

UTC = ZoneInfo("UTC")
DEFAULT_PER_PAGE = 100
ISO8601_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

_RELATIVE_RE = re.compile(
    r"^(?P<amount>\d+)\s*(?P<unit>second|minute|hour|day|week)s?\s+ago$",
    re.IGNORECASE,
)
_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d")


def _now(tz: tzinfo) -> datetime:
    return datetime.now(tz)


def _parse_datetime(value: str, tz: tzinfo) -> Optional[datetime]:
    text = value.strip()
    lowered = text.lower()

    if lowered == "now":
        return _now(tz)
    if lowered in ("today", "yesterday"):
        day = _now(tz).date()
        if lowered == "yesterday":
            day -= timedelta(days=1)
        return datetime.combine(day, time(), tzinfo=tz)

    match = _RELATIVE_RE.match(lowered)
    if match:
        delta = timedelta(**{f"{match.group('unit')}s": int(match.group("amount"))})
        return _now(tz) - delta

    for fmt in _FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=tz)

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def parse_time(value: str, tz: Optional[tzinfo] = None) -> str:
    """Parse a user supplied time and format it as a UTC ISO 8601 string.

    Times without an explicit offset are read in ``tz`` (UTC by default).
    Accepts ``YYYY-MM-DD``, ``YYYY-MM-DD HH:MM[:SS]``, ISO 8601, ``now``,
    ``today``, ``yesterday`` and ``N minutes/hours/days/weeks ago``.
    """

    parsed = _parse_datetime(value, tz or UTC)
    if parsed is None:
        raise ValueError(f"Could not understand '{value}'")
    return parsed.astimezone(timezone.utc).strftime(ISO8601_FORMAT)


@dataclass
class EventQuery:
    """Filters sent with the first events page request."""

    start_time: Optional[str] = None
    end_time: Optional[str] = None
    per_page: int = DEFAULT_PER_PAGE

    def validate(self) -> None:
        if self.per_page < 1:
            raise ValueError("per_page must be a positive integer")
        if self.start_time and self.end_time:
            start = datetime.strptime(self.start_time, ISO8601_FORMAT)
            end = datetime.strptime(self.end_time, ISO8601_FORMAT)
            if start > end:
                raise ValueError("start_time cannot be after end_time")

    def to_query_params(self) -> Dict[str, Any]:
        self.validate()
        params: Dict[str, Any] = {"per_page": self.per_page}
        if self.start_time:
            params["start_time"] = self.start_time
        if self.end_time:
            params["end_time"] = self.end_time
        return params
