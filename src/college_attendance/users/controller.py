from __future__ import annotations

from flask import Flask, session

from ..common.web import admin_required, current_actor, json_body, login_required, ok, query_int
from ..container import Container
from ..core.enums import Role


def register(app: Flask, container: Container) -> None:
    @app.post("/api/auth/register", endpoint="auth_register")
    def auth_register():
        current_role = Role(session["role"]) if session.get("role") else None
        user = container.auth_service.register(json_body(), current_role=current_role, today=container.clock().date())
        return ok(user.to_dict(), 201, message="User registered successfully")

    @app.post("/api/auth/login", endpoint="auth_login")
    def auth_login():
        data = json_body()
        s_user = container.auth_service.authenticate(
            str(data.get("email") or ""),
            str(data.get("password") or ""),
            now=container.clock(),
        )

        session.clear()
        session.permanent = bool(data.get("rememberMe"))
        session["user_id"] = s_user.user_id
        session["name"] = s_user.name
        session["role"] = s_user.role.value
        session["branch_id"] = s_user.branch_id
        session["semester"] = s_user.semester

        return ok(container.user_service.get(s_user.user_id).to_dict(), message="Login successful")

    @app.post("/api/auth/logout", endpoint="auth_logout")
    def auth_logout():
        session.clear()
        return ok(message="User logged out successfully")

    @app.get("/api/auth/me", endpoint="auth_me")
    @login_required
    def auth_me():
        return ok(container.user_service.get(current_actor().user_id).to_dict())

    @app.put("/api/auth/updateprofile", endpoint="auth_update_profile")
    @login_required
    def auth_update_profile():
        user = container.user_service.update_profile(current_actor().user_id, json_body())
        session["name"] = user.name
        return ok(user.to_dict(), message="Profile updated successfully")

    @app.put("/api/auth/updatepassword", endpoint="auth_update_password")
    @login_required
    def auth_update_password():
        data = json_body()
        container.auth_service.change_password(
            current_actor().user_id,
            data.get("currentPassword"),
            data.get("newPassword"),
        )
        return ok(message="Password updated successfully")

    @app.get("/api/users/students", endpoint="users_students")
    @admin_required
    def users_students():
        students = container.user_service.list_students(
            current_role=current_actor().role,
            branch_id=query_int("branch"),
            semester=query_int("semester"),
        )
        return ok([s.to_dict() for s in students])
