from __future__ import annotations

from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..extensions import db
from ..models import User
from .errors import APIError, BatchLimitExceeded, NotFound


def current_user(required: bool = True) -> User | None:
    identity = get_jwt_identity()
    if identity is None:
        if required:
            raise APIError(401, "UNAUTHENTICATED", "Authentication required.")
        return None

    user = db.session.get(User, int(identity))
    if user is None or not user.is_active:
        if required:
            raise APIError(401, "UNAUTHENTICATED", "Invalid session.")
        return None
    return user


def optional_user_id() -> int | None:
    """Identity of the caller when a valid bearer token is present, else None."""

    verify_jwt_in_request(optional=True)
    user = current_user(required=False)
    return user.id if user is not None else None


def require_existing_users(user_ids: list[int], limit: int) -> list[int]:
    """Reject oversized batches first, then any positive id that names no user."""

    if len(user_ids) > limit:
        raise BatchLimitExceeded(limit, len(user_ids))

    wanted = {user_id for user_id in user_ids if user_id > 0}
    known = {row.id for row in User.query.filter(User.id.in_(wanted)).all()} if wanted else set()
    missing = sorted(wanted - known)
    if missing:
        raise NotFound("USER_NOT_FOUND", "One or more users were not found.", {"user_ids": missing})
    return user_ids
