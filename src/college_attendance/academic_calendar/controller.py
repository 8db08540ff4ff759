from __future__ import annotations

from datetime import timedelta

from flask import Flask, request

from ..common.validators import require_choice
from ..common.web import admin_required, current_actor, json_body, login_required, ok, query_date, query_int
from ..container import Container
from ..core.constants import DEFAULT_UPCOMING_DAYS
from ..core.enums import EventType
from ..core.exceptions import ValidationError


def register(app: Flask, container: Container) -> None:
    service = container.calendar_service

    def _audience_filter():
        """Explicit query filters win; students default to their own branch and semester."""
        actor = current_actor()
        branch_id = query_int("branch")
        semester = query_int("semester")
        if not actor.is_admin:
            branch_id = branch_id if branch_id is not None else actor.branch_id
            semester = semester if semester is not None else actor.semester
        return branch_id, semester

    def _range():
        start = query_date("startDate") or service.today()
        end = query_date("endDate") or start + timedelta(days=DEFAULT_UPCOMING_DAYS)
        return start, end

    @app.get("/api/calendar", endpoint="calendar_list")
    @login_required
    def calendar_list():
        branch_id, semester = _audience_filter()
        start, end = _range()
        event_type = request.args.get("type") or None
        if event_type:
            event_type = require_choice(event_type, EventType, "Event type")
        events = service.get_events_for_date_range(start, end, branch_id, semester, event_type=event_type)
        return ok(service.describe(events))

    @app.get("/api/calendar/holidays", endpoint="calendar_holidays")
    @login_required
    def calendar_holidays():
        branch_id, semester = _audience_filter()
        start, end = _range()
        return ok(service.describe(service.get_holidays_for_date_range(start, end, branch_id, semester)))

    @app.get("/api/calendar/is-holiday", endpoint="calendar_is_holiday")
    @login_required
    def calendar_is_holiday():
        branch_id, semester = _audience_filter()
        day = query_date("date") or service.today()
        return ok({"date": day.isoformat(), "isHoliday": service.is_date_holiday(day, branch_id, semester)})

    @app.get("/api/calendar/upcoming", endpoint="calendar_upcoming")
    @login_required
    def calendar_upcoming():
        branch_id, semester = _audience_filter()
        days = query_int("days")
        days = DEFAULT_UPCOMING_DAYS if days is None else days
        return ok(service.describe(service.get_upcoming_events(days, branch_id, semester)))

    @app.get("/api/calendar/type/<event_type>", endpoint="calendar_by_type")
    @login_required
    def calendar_by_type(event_type: str):
        branch_id, semester = _audience_filter()
        events = service.get_events_by_type(event_type, request.args.get("academicYear") or None, branch_id, semester)
        return ok(service.describe(events))

    @app.get("/api/calendar/<int:event_id>", endpoint="calendar_get")
    @login_required
    def calendar_get(event_id: int):
        return ok(service.describe([service.get(event_id)])[0])

    @app.post("/api/calendar", endpoint="calendar_create")
    @admin_required
    def calendar_create():
        actor = current_actor()
        event = service.create(current_role=actor.role, created_by=actor.user_id, data=json_body())
        return ok(service.describe([event])[0], 201, message="Calendar event created")

    @app.put("/api/calendar/<int:event_id>", endpoint="calendar_update")
    @admin_required
    def calendar_update(event_id: int):
        event = service.update(current_role=current_actor().role, event_id=event_id, data=json_body())
        return ok(service.describe([event])[0], message="Calendar event updated")

    @app.delete("/api/calendar/<int:event_id>", endpoint="calendar_delete")
    @admin_required
    def calendar_delete(event_id: int):
        role = current_actor().role
        if request.args.get("hard", "").lower() in ("1", "true", "yes"):
            service.delete(current_role=role, event_id=event_id)
            return ok(message="Calendar event deleted")
        service.deactivate(current_role=role, event_id=event_id)
        return ok(message="Calendar event deactivated")

    @app.post("/api/calendar/<int:event_id>/occurrences", endpoint="calendar_create_occurrences")
    @admin_required
    def calendar_create_occurrences(event_id: int):
        data = json_body()
        occurrences = data.get("occurrences", 1)
        if isinstance(occurrences, bool):
            raise ValidationError("Number of occurrences must be a number")
        events = service.create_recurring_events(
            current_role=current_actor().role, event_id=event_id, occurrences=occurrences
        )
        return ok(service.describe(events), 201, message=f"Created {len(events)} recurring events")
