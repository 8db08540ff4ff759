from __future__ import annotations

from flask import Flask, request

from ..common.validators import optional_text, require_choice
from ..common.web import admin_required, current_actor, json_body, login_required, ok, query_int
from ..container import Container
from ..core.enums import Weekday


def register(app: Flask, container: Container) -> None:
    service = container.timetable_service

    @app.get("/api/timetable", endpoint="timetable_list")
    @login_required
    def timetable_list():
        day = request.args.get("day")
        day = require_choice(day, Weekday, "Day") if day else None
        timetables = service.list_timetables(
            current_actor(),
            branch=request.args.get("branch"),
            semester=query_int("semester"),
            academic_year=request.args.get("academicYear") or None,
        )
        return ok([service.to_response(t, day=day) for t in timetables])

    @app.get("/api/timetable/current", endpoint="timetable_current")
    @login_required
    def timetable_current():
        timetable = service.get_current_for(
            current_actor(), branch_id=query_int("branch"), semester=query_int("semester")
        )
        return ok(service.to_response(timetable))

    @app.get("/api/timetable/today", endpoint="timetable_today")
    @login_required
    def timetable_today():
        today = service.get_today(current_actor(), branch_id=query_int("branch"), semester=query_int("semester"))
        return ok({"day": today.day.value, "timeSlots": service.slots_response(today.slots)})

    @app.get("/api/timetable/next-class", endpoint="timetable_next_class")
    @login_required
    def timetable_next_class():
        next_class = service.get_next_class(
            current_actor(), branch_id=query_int("branch"), semester=query_int("semester")
        )
        if next_class is None:
            return ok({"nextClass": None}, message="No upcoming classes")
        return ok({"nextClass": service.next_class_response(next_class)})

    @app.get("/api/timetable/history", endpoint="timetable_history")
    @login_required
    def timetable_history():
        versions = service.history(current_actor(), branch_id=query_int("branch"), semester=query_int("semester"))
        return ok([service.to_response(t) for t in versions])

    @app.get("/api/timetable/<int:timetable_id>", endpoint="timetable_get")
    @login_required
    def timetable_get(timetable_id: int):
        return ok(service.to_response(service.get(timetable_id)))

    @app.post("/api/timetable", endpoint="timetable_create")
    @admin_required
    def timetable_create():
        timetable, created = service.create_or_merge(current_role=current_actor().role, data=json_body())
        if created:
            return ok(service.to_response(timetable), 201, message="Timetable created successfully")
        return ok(service.to_response(timetable), message="Timetable entry added successfully")

    @app.put("/api/timetable/<int:timetable_id>", endpoint="timetable_update")
    @admin_required
    def timetable_update(timetable_id: int):
        timetable = service.update(current_role=current_actor().role, timetable_id=timetable_id, data=json_body())
        return ok(service.to_response(timetable), message="Timetable updated successfully")

    @app.delete("/api/timetable/<int:timetable_id>", endpoint="timetable_delete")
    @admin_required
    def timetable_delete(timetable_id: int):
        service.delete(current_role=current_actor().role, timetable_id=timetable_id)
        return ok(message="Timetable deleted successfully")

    @app.post("/api/timetable/<int:timetable_id>/timeslot", endpoint="timetable_add_slot")
    @admin_required
    def timetable_add_slot(timetable_id: int):
        timetable = service.add_slot(current_role=current_actor().role, timetable_id=timetable_id, data=json_body())
        return ok(service.to_response(timetable), message="Time slot added successfully")

    @app.put("/api/timetable/<int:timetable_id>/timeslot/<slot_ref>", endpoint="timetable_update_slot")
    @admin_required
    def timetable_update_slot(timetable_id: int, slot_ref: str):
        timetable = service.update_slot(
            current_role=current_actor().role, timetable_id=timetable_id, slot_ref=slot_ref, data=json_body()
        )
        return ok(service.to_response(timetable), message="Time slot updated successfully")

    @app.delete("/api/timetable/<int:timetable_id>/timeslot/<slot_ref>", endpoint="timetable_delete_slot")
    @admin_required
    def timetable_delete_slot(timetable_id: int, slot_ref: str):
        timetable = service.delete_slot(current_role=current_actor().role, timetable_id=timetable_id, slot_ref=slot_ref)
        if timetable is None:
            return ok(message="Timetable deleted (was empty after removing slot)")
        return ok(service.to_response(timetable), message="Time slot deleted successfully")

    @app.put("/api/timetable/<int:timetable_id>/day/<day>/slot/<int:index>", endpoint="timetable_update_slot_at")
    @admin_required
    def timetable_update_slot_at(timetable_id: int, day: str, index: int):
        timetable = service.update_slot_at(
            current_role=current_actor().role, timetable_id=timetable_id, day=day, index=index, data=json_body()
        )
        return ok(service.to_response(timetable), message="Time slot updated successfully")

    @app.delete("/api/timetable/<int:timetable_id>/day/<day>/slot/<int:index>", endpoint="timetable_delete_slot_at")
    @admin_required
    def timetable_delete_slot_at(timetable_id: int, day: str, index: int):
        timetable = service.delete_slot_at(
            current_role=current_actor().role, timetable_id=timetable_id, day=day, index=index
        )
        if timetable is None:
            return ok(message="Timetable deleted (was empty after removing slot)")
        return ok(service.to_response(timetable), message="Time slot deleted successfully")

    @app.get("/api/timetable/<int:timetable_id>/versions", endpoint="timetable_versions")
    @login_required
    def timetable_versions(timetable_id: int):
        return ok([service.to_response(t) for t in service.list_versions(timetable_id)])

    @app.post("/api/timetable/<int:timetable_id>/versions", endpoint="timetable_new_version")
    @admin_required
    def timetable_new_version(timetable_id: int):
        data = json_body()
        effective_from = service.parse_moment(data["effectiveFrom"]) if data.get("effectiveFrom") else None
        timetable = service.create_new_version(
            current_role=current_actor().role,
            timetable_id=timetable_id,
            schedule_payload=data.get("schedule"),
            effective_from=effective_from,
            notes=optional_text(data.get("notes")),
        )
        return ok(service.to_response(timetable), 201, message="New timetable version created")

    @app.get("/api/timetable/<int:timetable_id>/weekly-count", endpoint="timetable_weekly_count")
    @login_required
    def timetable_weekly_count(timetable_id: int):
        counts = service.get_weekly_class_count(timetable_id)
        return ok({str(subject_id): n for subject_id, n in counts.items()})
