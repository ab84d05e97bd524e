"""Recurrence rule parsing and occurrence generation.

Understands a small subset of the iCalendar recurrence grammar:

    DTSTART:20240101T100000Z
    RRULE:FREQ=WEEKLY;UNTIL=20240122T100000Z

FREQ is one of DAILY, WEEKLY, MONTHLY or YEARLY. UNTIL, INTERVAL and COUNT
are optional (UNTIL and COUNT are mutually exclusive). Any other rule part
(BYDAY, BYMONTHDAY, WKST, ...) is rejected with RuleParseError rather than
silently ignored. Timestamps without a trailing Z are read as UTC.

Monthly and yearly steps that land on a day the target month does not have
are clamped to that month's last day. Every occurrence is computed from the
anchor, so Jan 31 monthly gives Feb 29, Mar 31, Apr 30 and never drifts.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional

from dateutil.relativedelta import relativedelta

from models.timeutils import to_utc

logger = logging.getLogger(__name__)

SUPPORTED_PARTS = {"FREQ", "UNTIL", "INTERVAL", "COUNT"}
_TIMESTAMP_RE = re.compile(r"^\d{8}(T\d{6})?$")


class RuleParseError(ValueError):
    """Raised when recurrence rule text cannot be interpreted"""


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


@dataclass(frozen=True)
class RecurrenceRule:
    anchor: datetime
    frequency: Frequency
    until: Optional[datetime] = None
    interval: int = 1
    count: Optional[int] = None


def _parse_timestamp(value: str, field: str) -> datetime:
    raw = value.strip()
    if raw[-1:] in ("Z", "z"):
        raw = raw[:-1]
    if not _TIMESTAMP_RE.match(raw):
        raise RuleParseError(f"Malformed {field} timestamp: {value!r}")
    fmt = "%Y%m%dT%H%M%S" if "T" in raw else "%Y%m%d"
    try:
        return datetime.strptime(raw, fmt).replace(tzinfo=timezone.utc)
    except ValueError:
        raise RuleParseError(f"Malformed {field} timestamp: {value!r}") from None


def _parse_positive_int(value: str, field: str) -> int:
    if not value.isdigit() or int(value) <= 0:
        raise RuleParseError(f"{field} must be a positive integer, got {value!r}")
    return int(value)


def _parse_rrule_parts(value: str) -> Dict[str, str]:
    parts: Dict[str, str] = {}
    for item in value.split(";"):
        item = item.strip()
        if not item:
            continue
        key, sep, part_value = item.partition("=")
        key = key.strip().upper()
        part_value = part_value.strip()
        if not sep or not key or not part_value:
            raise RuleParseError(f"Malformed rule part: {item!r}")
        if key not in SUPPORTED_PARTS:
            raise RuleParseError(f"Unsupported rule part: {key}")
        if key in parts:
            raise RuleParseError(f"Duplicate rule part: {key}")
        parts[key] = part_value
    return parts


def parse_rule(text: str) -> RecurrenceRule:
    """Parse DTSTART/RRULE text into a RecurrenceRule.

    Raises RuleParseError on a missing anchor, an unknown frequency, a
    malformed timestamp or an unsupported rule part.
    """
    if not text or not text.strip():
        raise RuleParseError("Recurrence rule is empty")

    anchor: Optional[datetime] = None
    parts: Optional[Dict[str, str]] = None

    for line in text.strip().splitlines():
        line = line.strip()
        if not line:
            continue
        name, sep, value = line.partition(":")
        name = name.strip().upper()
        if not sep:
            raise RuleParseError(f"Malformed rule line: {line!r}")
        if name == "DTSTART":
            if anchor is not None:
                raise RuleParseError("Duplicate DTSTART line")
            anchor = _parse_timestamp(value, "DTSTART")
        elif name == "RRULE":
            if parts is not None:
                raise RuleParseError("Duplicate RRULE line")
            parts = _parse_rrule_parts(value)
        else:
            raise RuleParseError(f"Unsupported rule line: {name}")

    if anchor is None:
        raise RuleParseError("Recurrence rule has no DTSTART anchor")
    if parts is None:
        raise RuleParseError("Recurrence rule has no RRULE line")

    freq_token = parts.get("FREQ")
    if not freq_token:
        raise RuleParseError("Recurrence rule has no FREQ")
    try:
        frequency = Frequency(freq_token.upper())
    except ValueError:
        raise RuleParseError(f"Unknown frequency: {freq_token}") from None

    until = _parse_timestamp(parts["UNTIL"], "UNTIL") if "UNTIL" in parts else None
    interval = _parse_positive_int(parts.get("INTERVAL", "1"), "INTERVAL")
    count = _parse_positive_int(parts["COUNT"], "COUNT") if "COUNT" in parts else None
    if until is not None and count is not None:
        raise RuleParseError("UNTIL and COUNT cannot both be set")

    return RecurrenceRule(
        anchor=anchor,
        frequency=frequency,
        until=until,
        interval=interval,
        count=count,
    )


def _nth_occurrence(rule: RecurrenceRule, n: int) -> datetime:
    step = n * rule.interval
    if rule.frequency == Frequency.DAILY:
        return rule.anchor + timedelta(days=step)
    if rule.frequency == Frequency.WEEKLY:
        return rule.anchor + timedelta(weeks=step)
    if rule.frequency == Frequency.MONTHLY:
        return rule.anchor + relativedelta(months=step)
    return rule.anchor + relativedelta(years=step)


def _first_candidate_index(rule: RecurrenceRule, window_start: datetime) -> int:
    # Lowest index worth visiting; its occurrence is never after window_start
    if window_start <= rule.anchor:
        return 0
    if rule.frequency in (Frequency.DAILY, Frequency.WEEKLY):
        unit = timedelta(days=rule.interval if rule.frequency == Frequency.DAILY else 7 * rule.interval)
        return (window_start - rule.anchor) // unit
    if rule.frequency == Frequency.MONTHLY:
        months = (window_start.year - rule.anchor.year) * 12 + window_start.month - rule.anchor.month
        return max(0, months // rule.interval - 1)
    years = window_start.year - rule.anchor.year
    return max(0, years // rule.interval - 1)


def occurrences_between(
    rule: RecurrenceRule,
    window_start: datetime,
    window_end: datetime
) -> List[datetime]:
    """Occurrence start times inside [window_start, window_end], ascending.

    Both bounds are inclusive. Generation stops at the earlier of window_end
    and the rule's UNTIL, or once COUNT occurrences (counted from the anchor)
    have been produced.
    """
    start = to_utc(window_start)
    end = to_utc(window_end)
    limit = end if rule.until is None else min(end, rule.until)

    occurrences: List[datetime] = []
    if start > limit:
        return occurrences

    n = _first_candidate_index(rule, start)
    while rule.count is None or n < rule.count:
        occurrence = _nth_occurrence(rule, n)
        if occurrence > limit:
            break
        if occurrence >= start:
            occurrences.append(occurrence)
        n += 1

    return occurrences
