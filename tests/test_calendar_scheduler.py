from __future__ import annotations

from datetime import datetime

import pytest
from dateutil import tz

import calendar_scheduler
from calendar_handler import CalendarClient
from conftest import FakeCalendarService

KOLKATA = tz.gettz("Asia/Kolkata")
NOW = datetime(2026, 10, 19, 8, 0, tzinfo=KOLKATA)


def _event(event_id, start, end, description="", summary="Appointment"):
    return {
        "id": event_id,
        "summary": summary,
        "description": description,
        "start": {"dateTime": f"2026-10-19T{start}:00+05:30", "timeZone": "Asia/Kolkata"},
        "end": {"dateTime": f"2026-10-19T{end}:00+05:30", "timeZone": "Asia/Kolkata"},
    }


@pytest.mark.parametrize("event, expected", [
    ({"description": "High priority - chest pain."}, "high"),
    ({"summary": "URGENT review"}, "high"),
    ({"description": "Medium priority - asthma."}, "medium"),
    ({"description": "important follow-up"}, "medium"),
    ({"description": "Low priority - cold."}, "low"),
    ({}, "low"),
])
def test_extract_priority(event, expected):
    assert calendar_scheduler.extract_priority(event) == expected


def test_get_time_range():
    start, end = calendar_scheduler.get_time_range("today", NOW)
    assert (start.hour, start.minute) == (0, 0)
    assert (end.hour, end.minute) == (23, 59)

    start, end = calendar_scheduler.get_time_range("week", NOW)
    assert start == NOW
    assert (end - start).days == 7

    with pytest.raises(ValueError):
        calendar_scheduler.get_time_range("year", NOW)


def test_adjust_to_working_hours():
    early = datetime(2026, 10, 19, 7, 30)
    late = datetime(2026, 10, 19, 17, 30)
    midday = datetime(2026, 10, 19, 13, 10)
    assert calendar_scheduler.adjust_to_working_hours(early) == datetime(2026, 10, 19, 9, 0)
    assert calendar_scheduler.adjust_to_working_hours(late) == datetime(2026, 10, 20, 9, 0)
    assert calendar_scheduler.adjust_to_working_hours(midday) == midday


def test_reschedule_orders_by_priority_with_buffer():
    service = FakeCalendarService([
        _event("low", "10:00", "10:30", "Low priority - cold."),
        _event("high", "11:00", "11:30", "High priority - chest pain."),
        _event("medium", "12:00", "12:30", "Medium priority - asthma."),
    ])
    calendar = CalendarClient(service=service, calendar_id="primary")

    result = calendar_scheduler.reschedule_by_priority(calendar, "today", now=NOW)

    assert result["message"] == "Rescheduled 3 events by priority"
    assert result["total_events"] == 3
    moves = {item["id"]: item["new_time"] for item in result["rescheduled_events"]}
    assert moves == {
        "high": "2026-10-19T09:00:00+05:30",
        "medium": "2026-10-19T09:45:00+05:30",
        "low": "2026-10-19T10:30:00+05:30",
    }
    assert service.store["low"]["end"]["dateTime"] == "2026-10-19T11:00:00+05:30"
    assert service.store["low"]["start"]["timeZone"] == "Asia/Kolkata"


def test_reschedule_low_to_high():
    service = FakeCalendarService([
        _event("high", "09:00", "09:30", "High priority - chest pain."),
        _event("low", "10:00", "10:30", "Low priority - cold."),
    ])
    calendar = CalendarClient(service=service, calendar_id="primary")

    result = calendar_scheduler.reschedule_by_priority(calendar, "today", "low-to-high", now=NOW)

    assert [item["id"] for item in result["rescheduled_events"]] == ["low", "high"]
    assert result["rescheduled_events"][0]["new_time"] == "2026-10-19T09:00:00+05:30"


def test_events_already_in_place_are_not_updated():
    service = FakeCalendarService([
        _event("high", "09:00", "09:30", "High priority - chest pain."),
        {"id": "holiday", "summary": "Clinic closed", "start": {"date": "2026-10-19"}, "end": {"date": "2026-10-20"}},
    ])
    calendar = CalendarClient(service=service, calendar_id="primary")

    result = calendar_scheduler.reschedule_by_priority(calendar, "today", now=NOW)

    assert result["rescheduled_events"] == []
    assert result["total_events"] == 2
    assert service.updates == []


def test_unknown_priority_order():
    calendar = CalendarClient(service=FakeCalendarService(), calendar_id="primary")
    with pytest.raises(ValueError):
        calendar_scheduler.reschedule_by_priority(calendar, "today", "alphabetical", now=NOW)


def test_execute_tool_validation():
    calendar = CalendarClient(service=FakeCalendarService(), calendar_id="primary")
    with pytest.raises(ValueError):
        calendar_scheduler.execute_tool(calendar, "rescheduleByPriority", {})
    with pytest.raises(ValueError):
        calendar_scheduler.execute_tool(calendar, "optimizeSchedule", {"timeRange": "today"})


def test_tools_describe_reschedule():
    assert [tool["name"] for tool in calendar_scheduler.TOOLS] == ["rescheduleByPriority"]
    assert calendar_scheduler.TOOLS[0]["parameters"]["required"] == ["timeRange"]


@pytest.mark.parametrize("given, expected", [("false", False), ("True", True), (False, False), (None, False)])
def test_execute_tool_reads_working_hours_flag(monkeypatch, given, expected):
    seen = {}

    def fake_reschedule(calendar, time_range, priority_order, respect_working_hours):
        seen["respect_working_hours"] = respect_working_hours
        return {}

    monkeypatch.setattr(calendar_scheduler, "reschedule_by_priority", fake_reschedule)
    calendar_scheduler.execute_tool(None, "rescheduleByPriority", {"timeRange": "week", "respectWorkingHours": given})

    assert seen["respect_working_hours"] is expected


def test_execute_tool_respects_working_hours_by_default(monkeypatch):
    seen = {}
    monkeypatch.setattr(
        calendar_scheduler,
        "reschedule_by_priority",
        lambda calendar, time_range, **kwargs: seen.update(kwargs) or {},
    )
    calendar_scheduler.execute_tool(None, "rescheduleByPriority", {"timeRange": "today"})
    assert seen["respect_working_hours"] is True
