from dataclasses import replace
from datetime import date

import pytest

from college_attendance.academic_calendar.model import Audience, CalendarEvent
from college_attendance.core.enums import EventType, RecurrencePattern, Role
from college_attendance.core.exceptions import AuthorizationError, ValidationError

from conftest import ADMIN_ID, CE_ID


def event_data(**overrides) -> dict:
    data = {
        "title": "Diwali Break",
        "startDate": "2025-10-20",
        "endDate": "2025-10-24",
        "type": "break",
        "academicYear": "2025-2026",
    }
    data.update(overrides)
    return data


def create(calendar_service, **overrides) -> CalendarEvent:
    return calendar_service.create(current_role=Role.ADMIN, created_by=ADMIN_ID, data=event_data(**overrides))


def test_empty_audience_applies_to_everyone():
    event = CalendarEvent(
        event_id=1,
        title="Orientation",
        start_date=date(2025, 7, 21),
        end_date=date(2025, 7, 21),
        type=EventType.EVENT,
        academic_year="2025-2026",
        created_by=ADMIN_ID,
    )
    assert event.branches.is_everyone
    assert event.applies_to(CE_ID, 3)
    assert event.applies_to(999, 12)


def test_explicit_audience_restricts_each_axis():
    event = CalendarEvent(
        event_id=1,
        title="CE mid-terms",
        start_date=date(2025, 9, 15),
        end_date=date(2025, 9, 20),
        type=EventType.EXAM,
        academic_year="2025-2026",
        created_by=ADMIN_ID,
        branches=Audience.from_list([CE_ID]),
        semesters=Audience.from_list([3, 5]),
    )
    assert event.applies_to(CE_ID, 3)
    assert not event.applies_to(1, 3)
    assert not event.applies_to(CE_ID, 4)
    assert event.applies_to(CE_ID, None)
    assert Audience.from_list([]).is_everyone


def test_overlap_covers_starts_inside_ends_inside_and_spans():
    event = CalendarEvent(
        event_id=1,
        title="Exams",
        start_date=date(2025, 11, 10),
        end_date=date(2025, 11, 20),
        type=EventType.EXAM,
        academic_year="2025-2026",
        created_by=ADMIN_ID,
    )
    assert event.overlaps(date(2025, 11, 15), date(2025, 11, 30))  # ends inside
    assert event.overlaps(date(2025, 11, 1), date(2025, 11, 12))  # starts inside
    assert event.overlaps(date(2025, 11, 12), date(2025, 11, 13))  # spans the range
    assert not event.overlaps(date(2025, 11, 21), date(2025, 11, 30))
    assert event.duration_in_days == 11
    assert event.is_upcoming(date(2025, 11, 1))
    assert event.is_currently_active(date(2025, 11, 20))


def test_holiday_types():
    assert CalendarEvent(
        event_id=1, title="x", start_date=date(2025, 1, 1), end_date=date(2025, 1, 1),
        type=EventType.BREAK, academic_year="2024-2025", created_by=1,
    ).is_holiday()
    assert not CalendarEvent(
        event_id=2, title="x", start_date=date(2025, 1, 1), end_date=date(2025, 1, 1),
        type=EventType.EXAM, academic_year="2024-2025", created_by=1,
    ).is_holiday()


def test_range_queries_filter_by_audience_and_type(calendar_service):
    create(calendar_service)
    create(calendar_service, title="CSE hackathon", type="event", branches=[1], startDate="2025-10-21", endDate="2025-10-21")
    create(calendar_service, title="Sem 5 exams", type="exam", semesters=[5], startDate="2025-10-22", endDate="2025-10-23")

    titles = [e.title for e in calendar_service.get_events_for_date_range(date(2025, 10, 1), date(2025, 10, 31), CE_ID, 3)]
    assert titles == ["Diwali Break"]

    all_titles = [e.title for e in calendar_service.get_events_for_date_range(date(2025, 10, 1), date(2025, 10, 31))]
    assert all_titles == ["Diwali Break", "CSE hackathon", "Sem 5 exams"]

    holidays = calendar_service.get_holidays_for_date_range(date(2025, 10, 1), date(2025, 10, 31))
    assert [e.title for e in holidays] == ["Diwali Break"]

    assert calendar_service.is_date_holiday(date(2025, 10, 22), CE_ID, 3)
    assert not calendar_service.is_date_holiday(date(2025, 10, 25), CE_ID, 3)


def test_range_query_rejects_inverted_dates(calendar_service):
    with pytest.raises(ValidationError):
        calendar_service.get_events_for_date_range(date(2025, 10, 31), date(2025, 10, 1))


def test_upcoming_events_window(calendar_service):
    create(calendar_service, title="Ganesh Chaturthi", type="holiday", startDate="2025-09-10", endDate="2025-09-10")
    create(calendar_service)  # 2025-10-20, outside 30 days of 2025-09-03
    upcoming = calendar_service.get_upcoming_events()
    assert [e.title for e in upcoming] == ["Ganesh Chaturthi"]


def test_events_by_type_and_year(calendar_service):
    create(calendar_service, title="Mid-terms", type="exam")
    create(calendar_service, title="Old exams", type="exam", startDate="2024-10-01", endDate="2024-10-02", academicYear="2024-2025")

    assert [e.title for e in calendar_service.get_events_by_type("exam", "2025-2026")] == ["Mid-terms"]
    assert len(calendar_service.get_events_by_type(EventType.EXAM)) == 2
    with pytest.raises(ValidationError):
        calendar_service.get_events_by_type("party")


def test_create_validates_fields(calendar_service):
    with pytest.raises(ValidationError) as exc:
        create(
            calendar_service,
            title="",
            endDate="2025-10-01",
            type="festival",
            color="blue",
            notifyBefore=-1,
            isRecurring=True,
            semesters=[13],
            branches=[42],
        )
    messages = " ".join(exc.value.errors)
    assert "Event title is required" in messages
    assert "End date must be after or same as start date" in messages
    assert "Event type must be one of" in messages
    assert "hex color" in messages
    assert "cannot be negative" in messages
    assert "Recurrence pattern is required" in messages
    assert "Semester must be between 1 and 12" in messages
    assert "Branch 42 does not exist" in messages


def test_academic_year_defaults_from_start_date(calendar_service):
    event = create(calendar_service, academicYear="")
    assert event.academic_year == "2025-2026"


def test_only_admins_manage_events(calendar_service):
    with pytest.raises(AuthorizationError):
        calendar_service.create(current_role=Role.STUDENT, created_by=2, data=event_data())


def test_recurring_copies_are_shifted_and_not_recurring(calendar_service):
    source = create(
        calendar_service,
        title="Fee deadline",
        type="registration",
        startDate="2025-01-31",
        endDate="2025-01-31",
        academicYear="2024-2025",
        isRecurring=True,
        recurrencePattern="monthly",
    )

    copies = calendar_service.create_recurring_events(current_role=Role.ADMIN, event_id=source.event_id, occurrences=3)

    assert [c.start_date for c in copies] == [date(2025, 2, 28), date(2025, 3, 31), date(2025, 4, 30)]
    assert all(not c.is_recurring and c.recurrence_pattern is None for c in copies)
    assert all(c.event_id not in (0, source.event_id) for c in copies)
    assert calendar_service.get(source.event_id).is_recurring


def test_weekly_and_yearly_recurrence():
    base = CalendarEvent(
        event_id=1,
        title="Lab review",
        start_date=date(2024, 2, 29),
        end_date=date(2024, 3, 1),
        type=EventType.EVENT,
        academic_year="2023-2024",
        created_by=ADMIN_ID,
        is_recurring=True,
        recurrence_pattern=RecurrencePattern.YEARLY,
    )
    yearly = base.occurrence(1)
    assert (yearly.start_date, yearly.end_date) == (date(2025, 2, 28), date(2025, 3, 1))
    assert yearly.academic_year == "2024-2025"

    weekly = replace(base, recurrence_pattern=RecurrencePattern.WEEKLY).occurrence(2)
    assert weekly.start_date == date(2024, 3, 14)


def test_non_recurring_event_cannot_be_materialized(calendar_service):
    event = create(calendar_service)
    with pytest.raises(ValidationError):
        calendar_service.create_recurring_events(current_role=Role.ADMIN, event_id=event.event_id, occurrences=2)


def test_update_deactivate_and_delete(calendar_service):
    event = create(calendar_service)
    updated = calendar_service.update(current_role=Role.ADMIN, event_id=event.event_id, data={"location": "Campus"})
    assert updated.location == "Campus"
    assert updated.title == event.title

    calendar_service.deactivate(current_role=Role.ADMIN, event_id=event.event_id)
    assert calendar_service.get_events_for_date_range(date(2025, 10, 1), date(2025, 10, 31)) == []

    calendar_service.delete(current_role=Role.ADMIN, event_id=event.event_id)
    assert calendar_service.get_events_by_type("break") == []
