from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, jsonify
from flask_jwt_extended import create_access_token, create_refresh_token, jwt_required
from sqlalchemy import func

from ..common.auth import current_user
from ..common.errors import APIError
from ..common.params import json_object, source_ip
from ..common.rate_limit import login_rate_limiter
from ..models import User


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _token_response(user: User) -> dict[str, Any]:
    return {
        "access_token": create_access_token(identity=str(user.id)),
        "refresh_token": create_refresh_token(identity=str(user.id)),
        "user": user.to_dict(),
    }


@auth_bp.post("/login")
def login():
    payload = json_object()
    username = str(payload.get("username") or "").strip()
    password = str(payload.get("password") or "")
    if not username or not password:
        raise APIError(400, "INVALID_CREDENTIALS", "Username and password are required.")

    remote_ip = source_ip() or "unknown"
    rate_limit_key = f"{remote_ip}:{username.lower()}"

    retry_after = login_rate_limiter.retry_after(
        rate_limit_key,
        current_app.config["LOGIN_RATE_LIMIT_WINDOW_SECONDS"],
        current_app.config["LOGIN_RATE_LIMIT_MAX_ATTEMPTS"],
    )
    if retry_after:
        current_app.logger.warning("login rate limited username=%s ip=%s", username, remote_ip)
        raise APIError(
            429,
            "RATE_LIMITED",
            "Too many login attempts. Please try again later.",
            {"retry_after_seconds": retry_after},
        )

    user = User.query.filter(func.lower(User.username) == username.lower()).one_or_none()
    if user is None or not user.is_active or not user.verify_password(password):
        login_rate_limiter.add_failure(rate_limit_key)
        current_app.logger.info("login failed username=%s ip=%s", username, remote_ip)
        raise APIError(401, "INVALID_CREDENTIALS", "Invalid username or password.")

    login_rate_limiter.clear(rate_limit_key)
    return jsonify(_token_response(user))


@auth_bp.get("/me")
@jwt_required()
def me():
    user = current_user(required=True)
    assert user is not None
    return jsonify({"user": user.to_dict()})


@auth_bp.post("/refresh")
@jwt_required(refresh=True)
def refresh():
    user = current_user(required=True)
    assert user is not None
    return jsonify({"access_token": create_access_token(identity=str(user.id))})
