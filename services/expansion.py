"""Expansion of recurring events into dated occurrences for a listing window."""
import logging
from datetime import datetime
from typing import List, Optional, Sequence, Union
from models.events import Event, EventOccurrence
from models.timeutils import to_utc
from services.recurrence import occurrences_between, parse_rule

logger = logging.getLogger(__name__)


def materialize(template: Event, occurrence_start: datetime) -> EventOccurrence:
    """Clone a recurring event onto one occurrence, keeping its duration.

    Nested values (owner summary, invites) are shared with the template.
    """
    duration = template.endDate - template.startDate
    fields = dict(template)
    fields.update(
        startDate=occurrence_start,
        endDate=occurrence_start + duration,
        isRecurringInstance=True,
        originalEventId=template.id,
    )
    return EventOccurrence.model_construct(**fields)


def expand_events(
    events: Sequence[Event],
    window_start: Optional[datetime] = None,
    window_end: Optional[datetime] = None
) -> List[Union[Event, EventOccurrence]]:
    """Replace recurring events with their occurrences inside the window.

    Without both window bounds the events are only sorted. A recurring event
    whose rule cannot be expanded is returned once, unchanged. The result is
    stably sorted by start date and the input is never modified.
    """
    if window_start is None or window_end is None:
        return sorted(events, key=lambda event: event.startDate)

    window_start = to_utc(window_start)
    window_end = to_utc(window_end)
    expanded: List[Union[Event, EventOccurrence]] = []

    for event in events:
        if not event.isRecurring or not event.recurrenceRule:
            expanded.append(event)
            continue

        try:
            rule = parse_rule(event.recurrenceRule)
            starts = occurrences_between(rule, window_start, window_end)
        except Exception as e:
            logger.warning(f"Could not expand recurring event {event.id}, returning it as stored: {str(e)}")
            expanded.append(event)
            continue

        expanded.extend(materialize(event, start) for start in starts)

    expanded.sort(key=lambda event: event.startDate)
    return expanded
