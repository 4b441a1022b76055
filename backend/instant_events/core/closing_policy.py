"""Closing Policy: decides whether an event still accepts messages.

Invariants:
    - evaluate_closing is PURE: returns a ClosingDecision, never writes
    - closed=True always wins over the end date (closing is monotonic)
    - An event without endDate never expires
    - Expired means now >= endDate (the end instant itself is already closed)
    - Offset-less and date-only ISO strings are interpreted as UTC
    - An unparseable stored endDate raises CorruptDocumentError, never a bare ValueError

Design Decisions:
    - Lazy closing: the shell applies the closed=true write inside the same
      transaction that evaluated this function, never from a background sweep
    - `now` passed in by the caller: keeps the function deterministic under test
"""

from datetime import datetime, timezone
from typing import Any, Mapping

from instant_events.core.domain_types import ClosingDecision
from instant_events.core.errors import CorruptDocumentError


def parse_iso_instant(value: str) -> datetime:
    """Parse an ISO-8601 date or datetime into an aware UTC datetime.

    Raises ValueError on unparseable input.
    """
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def evaluate_closing(event_data: Mapping[str, Any], now: datetime) -> ClosingDecision:
    """Rule: closed events reject, expired events close then reject."""
    if event_data.get("closed") is True:
        return ClosingDecision.ALREADY_CLOSED

    end_date = event_data.get("endDate")
    if end_date is None:
        return ClosingDecision.OPEN

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    try:
        end = parse_iso_instant(end_date)
    except (TypeError, ValueError, AttributeError):
        raise CorruptDocumentError("endDate", end_date)
    if now >= end:
        return ClosingDecision.EXPIRED
    return ClosingDecision.OPEN
