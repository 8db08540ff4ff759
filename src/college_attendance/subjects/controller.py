from __future__ import annotations

from flask import Flask, request

from ..common.web import admin_required, current_actor, json_body, login_required, ok, query_int
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.get("/api/subjects", endpoint="subjects_list")
    @login_required
    def subjects_list():
        subjects = container.subject_service.list(branch_id=query_int("branch"), semester=query_int("semester"))
        return ok([s.to_dict() for s in subjects])

    @app.get("/api/subjects/faculty", endpoint="subjects_by_faculty")
    @login_required
    def subjects_by_faculty():
        return ok([s.to_dict() for s in container.subject_service.list_by_faculty(request.args.get("email"))])

    @app.get("/api/subjects/<int:subject_id>", endpoint="subjects_get")
    @login_required
    def subjects_get(subject_id: int):
        return ok(container.subject_service.get(subject_id).to_dict())

    @app.get("/api/subjects/<int:subject_id>/students", endpoint="subjects_students")
    @admin_required
    def subjects_students(subject_id: int):
        rows = container.attendance_service.students_with_attendance(
            current_role=current_actor().role, subject_id=subject_id
        )
        return ok(rows)

    @app.post("/api/subjects", endpoint="subjects_create")
    @admin_required
    def subjects_create():
        subject = container.subject_service.create(current_role=current_actor().role, data=json_body())
        return ok(subject.to_dict(), 201, message="Subject created")

    @app.put("/api/subjects/<int:subject_id>", endpoint="subjects_update")
    @admin_required
    def subjects_update(subject_id: int):
        subject = container.subject_service.update(
            current_role=current_actor().role, subject_id=subject_id, data=json_body()
        )
        return ok(subject.to_dict(), message="Subject updated")

    @app.delete("/api/subjects/<int:subject_id>", endpoint="subjects_deactivate")
    @admin_required
    def subjects_deactivate(subject_id: int):
        container.subject_service.deactivate(current_role=current_actor().role, subject_id=subject_id)
        return ok(message="Subject deactivated")
