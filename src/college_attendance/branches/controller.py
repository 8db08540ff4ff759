from __future__ import annotations

from flask import Flask, request

from ..common.web import admin_required, current_actor, json_body, ok
from ..container import Container


def register(app: Flask, container: Container) -> None:
    # Listing is public: the registration form needs it before login.
    @app.get("/api/branches", endpoint="branches_list")
    def branches_list():
        return ok([b.to_dict() for b in container.branch_service.list_active()])

    @app.get("/api/branches/with-counts", endpoint="branches_with_counts")
    @admin_required
    def branches_with_counts():
        return ok(container.branch_service.list_with_counts())

    @app.get("/api/branches/<int:branch_id>", endpoint="branches_get")
    def branches_get(branch_id: int):
        return ok(container.branch_service.get(branch_id).to_dict())

    @app.get("/api/branches/<int:branch_id>/students", endpoint="branches_students")
    @admin_required
    def branches_students(branch_id: int):
        students = container.branch_service.students_by_semester(
            current_role=current_actor().role, branch_id=branch_id, semester=request.args.get("semester")
        )
        return ok([s.to_dict() for s in students])

    @app.get("/api/branches/code/<code>", endpoint="branches_get_by_code")
    def branches_get_by_code(code: str):
        return ok(container.branch_service.get_by_code(code).to_dict())

    @app.post("/api/branches", endpoint="branches_create")
    @admin_required
    def branches_create():
        branch = container.branch_service.create(current_role=current_actor().role, data=json_body())
        return ok(branch.to_dict(), 201, message="Branch created")

    @app.put("/api/branches/<int:branch_id>", endpoint="branches_update")
    @admin_required
    def branches_update(branch_id: int):
        branch = container.branch_service.update(
            current_role=current_actor().role, branch_id=branch_id, data=json_body()
        )
        return ok(branch.to_dict(), message="Branch updated")

    @app.delete("/api/branches/<int:branch_id>", endpoint="branches_deactivate")
    @admin_required
    def branches_deactivate(branch_id: int):
        container.branch_service.deactivate(current_role=current_actor().role, branch_id=branch_id)
        return ok(message="Branch deactivated")
