from __future__ import annotations

import csv
import io

from flask import Flask, request

from ..common.web import admin_required, current_actor, json_body, login_required, ok, query_date, query_int
from ..container import Container
from ..core.constants import DEFAULT_TREND_DAYS

_REPORT_FIELDS = [
    "subject_code",
    "subject_name",
    "total_classes",
    "present",
    "absent",
    "late",
    "attendance_percentage",
    "minimum_attendance",
    "below_minimum",
]


def register(app: Flask, container: Container) -> None:
    service = container.attendance_service

    def _write_report_csv(*, rows: list[dict], filename: str):
        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=_REPORT_FIELDS)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)

        csv_bytes = out.getvalue().encode("utf-8-sig")
        return app.response_class(
            csv_bytes,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    @app.post("/api/attendance", endpoint="attendance_mark")
    @login_required
    def attendance_mark():
        record = service.mark(current_actor(), json_body())
        return ok(service.describe([record])[0], 201, message="Attendance marked successfully")

    @app.get("/api/attendance", endpoint="attendance_list")
    @login_required
    def attendance_list():
        records = service.list_for_student(
            current_actor(),
            student_id=query_int("student"),
            subject_id=query_int("subject"),
            start=query_date("startDate"),
            end=query_date("endDate"),
        )
        return ok(service.describe(records))

    @app.get("/api/attendance/<int:attendance_id>", endpoint="attendance_get")
    @login_required
    def attendance_get(attendance_id: int):
        record = service.get(current_actor(), attendance_id)
        return ok(service.describe([record])[0])

    @app.put("/api/attendance/<int:attendance_id>/status", endpoint="attendance_change_status")
    @admin_required
    def attendance_change_status(attendance_id: int):
        data = json_body()
        record = service.change_status(
            current_actor(), attendance_id, status=data.get("status"), reason=data.get("reason")
        )
        return ok(service.describe([record])[0], message="Attendance updated successfully")

    @app.get("/api/attendance/summary/student", endpoint="attendance_student_summary")
    @login_required
    def attendance_student_summary():
        rows = service.student_summary(
            current_actor(),
            student_id=query_int("student"),
            subject_id=query_int("subject"),
            start=query_date("startDate"),
            end=query_date("endDate"),
        )
        return ok(rows)

    @app.get("/api/attendance/summary/subject/<int:subject_id>", endpoint="attendance_subject_summary")
    @admin_required
    def attendance_subject_summary(subject_id: int):
        rows = service.subject_summary(
            current_role=current_actor().role,
            subject_id=subject_id,
            start=query_date("startDate"),
            end=query_date("endDate"),
            order=(request.args.get("order") or "desc").lower(),
        )
        return ok(rows)

    @app.get("/api/attendance/summary/subject/<int:subject_id>/average", endpoint="attendance_subject_average")
    @admin_required
    def attendance_subject_average(subject_id: int):
        result = service.subject_average(
            current_role=current_actor().role,
            subject_id=subject_id,
            start=query_date("startDate"),
            end=query_date("endDate"),
        )
        return ok(result)

    @app.get("/api/attendance/daily", endpoint="attendance_daily")
    @admin_required
    def attendance_daily():
        return ok(service.daily_count(current_role=current_actor().role, day=query_date("date")))

    @app.get("/api/attendance/trends", endpoint="attendance_trends")
    @login_required
    def attendance_trends():
        days = query_int("days") or DEFAULT_TREND_DAYS
        return ok(service.trends(current_actor(), student_id=query_int("student"), days=days))

    @app.get("/api/attendance/report.csv", endpoint="attendance_report_csv")
    @login_required
    def attendance_report_csv():
        actor = current_actor()
        student_id = query_int("student") or actor.user_id
        rows = service.report_rows(
            actor,
            student_id=student_id,
            start=query_date("startDate"),
            end=query_date("endDate"),
        )
        return _write_report_csv(rows=rows, filename=f"attendance_summary_{student_id}.csv")
