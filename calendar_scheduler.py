"""
calendar_scheduler.py
---------------------
Priority-based rescheduling of calendar events.

Events in a time range are ordered by the priority tag found in their text
and laid out back to back from the start of the range, inside working hours,
with a fixed buffer between appointments. Updates are applied one by one;
a failure part way leaves earlier moves in place.
"""

import logging
from datetime import datetime, timedelta

from dateutil import parser, tz

from calendar_handler import CalendarError

logger = logging.getLogger(__name__)

WORK_START_HOUR = 9
WORK_END_HOUR = 17
BUFFER = timedelta(minutes=15)
PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}
PRIORITY_ORDERS = ("high-to-low", "low-to-high")
TIME_RANGES = ("today", "week", "month")

TOOLS = [
    {
        "name": "rescheduleByPriority",
        "description": "Reschedule events based on priority levels",
        "parameters": {
            "type": "object",
            "properties": {
                "timeRange": {
                    "type": "string",
                    "description": "Time range (today, week, month)",
                    "enum": list(TIME_RANGES)
                },
                "priorityOrder": {
                    "type": "string",
                    "description": "Priority order (high-to-low, low-to-high)",
                    "enum": list(PRIORITY_ORDERS)
                },
                "respectWorkingHours": {
                    "type": "boolean",
                    "description": "Keep events within working hours"
                }
            },
            "required": ["timeRange"]
        }
    }
]


class SchedulingError(Exception):
    pass


def extract_priority(event):
    description = (event.get("description") or "").lower()
    summary = (event.get("summary") or "").lower()

    if "high priority" in description or "urgent" in description or "urgent" in summary:
        return "high"
    if "medium priority" in description or "important" in description:
        return "medium"
    return "low"


def get_time_range(time_range, now=None):
    now = now or datetime.now(tz.tzlocal())
    if time_range == "today":
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end = now.replace(hour=23, minute=59, second=59, microsecond=999000)
    elif time_range == "week":
        start, end = now, now + timedelta(days=7)
    elif time_range == "month":
        start, end = now, now + timedelta(days=30)
    else:
        raise ValueError(f"Unknown time range: {time_range}")
    return start, end


def adjust_to_working_hours(moment):
    if moment.hour < WORK_START_HOUR:
        return moment.replace(hour=WORK_START_HOUR, minute=0, second=0, microsecond=0)
    if moment.hour >= WORK_END_HOUR:
        next_day = moment + timedelta(days=1)
        return next_day.replace(hour=WORK_START_HOUR, minute=0, second=0, microsecond=0)
    return moment


def _event_bounds(event):
    start = parser.isoparse(event["start"]["dateTime"])
    end = parser.isoparse(event["end"]["dateTime"])
    return start, end


def reschedule_by_priority(calendar, time_range, priority_order="high-to-low",
                           respect_working_hours=True, now=None, timezone_name=None):
    """
    Reorders events in a time range by priority.

    Args:
        calendar: CalendarClient used to list and update events.
        time_range: 'today', 'week' or 'month'.
        priority_order: 'high-to-low' or 'low-to-high'.
        respect_working_hours: Keep every slot between 09:00 and 17:00.
        now: Reference time, aware datetime; defaults to the local clock.
        timezone_name: timeZone written on moved events; defaults to each
                       event's own timeZone.

    Returns:
        dict: message, rescheduled_events, total_events
    """
    if priority_order not in PRIORITY_ORDERS:
        raise ValueError(f"Unknown priority order: {priority_order}")
    start_time, end_time = get_time_range(time_range, now)

    try:
        events = calendar.list_events_raw(start_time, end_time)
    except CalendarError as e:
        raise SchedulingError(f"Failed to reschedule events: {e}") from e

    timed = [event for event in events if (event.get("start") or {}).get("dateTime")]
    if len(timed) < len(events):
        logger.info(f"Skipping {len(events) - len(timed)} all-day events")

    reverse = priority_order == "high-to-low"
    ordered = sorted(timed, key=lambda event: PRIORITY_RANK[extract_priority(event)], reverse=reverse)

    rescheduled = []
    current = start_time
    for event in ordered:
        if respect_working_hours:
            current = adjust_to_working_hours(current)

        old_start, old_end = _event_bounds(event)
        new_start = current
        new_end = new_start + (old_end - old_start)

        if new_start != old_start:
            zone = timezone_name or event["start"].get("timeZone")
            updated = dict(event)
            updated["start"] = {"dateTime": new_start.isoformat(), "timeZone": zone}
            updated["end"] = {"dateTime": new_end.isoformat(), "timeZone": zone}
            try:
                calendar.update_event(event["id"], updated)
            except CalendarError as e:
                raise SchedulingError(f"Failed to reschedule events: {e}") from e
            rescheduled.append({
                "id": event["id"],
                "summary": event.get("summary"),
                "priority": extract_priority(event),
                "old_time": event["start"]["dateTime"],
                "new_time": new_start.isoformat(),
            })

        current = new_end + BUFFER

    logger.info(f"Rescheduled {len(rescheduled)} of {len(events)} events by priority")
    return {
        "message": f"Rescheduled {len(rescheduled)} events by priority",
        "rescheduled_events": rescheduled,
        "total_events": len(events),
    }


def _as_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def execute_tool(calendar, tool, parameters):
    """Runs a scheduling tool from TOOLS by name."""
    parameters = parameters or {}
    if tool == "rescheduleByPriority":
        if "timeRange" not in parameters:
            raise ValueError("timeRange is required")
        return reschedule_by_priority(
            calendar,
            parameters["timeRange"],
            priority_order=parameters.get("priorityOrder", "high-to-low"),
            respect_working_hours=_as_bool(parameters.get("respectWorkingHours", True)),
        )
    raise ValueError(f"Unknown tool: {tool}")
