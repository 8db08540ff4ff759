from __future__ import annotations

from flask import Flask

from ..common.web import current_actor, login_required, ok, query_date, query_int
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.dashboard_service

    @app.get("/api/dashboard", endpoint="dashboard_home")
    @login_required
    def dashboard_home():
        actor = current_actor()
        if actor.is_admin:
            return ok(service.admin_view(actor, day=query_date("date")))
        return ok(service.student_view(actor))

    @app.get("/api/dashboard/attendance/summary", endpoint="dashboard_attendance_summary")
    @login_required
    def dashboard_attendance_summary():
        return ok(service.attendance_overview(current_actor(), student_id=query_int("student")))
