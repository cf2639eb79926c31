from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from flask import request

from ..models import as_utc
from .errors import APIError


# Marks a keyword argument the caller did not supply, as opposed to an explicit None.
UNSET: Any = object()


def parse_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise APIError(400, "INVALID_PARAMETER", f"{field_name} must be an integer.")
    try:
        return int(value if value is not None else "")
    except (TypeError, ValueError) as error:
        raise APIError(400, "INVALID_PARAMETER", f"{field_name} must be an integer.") from error


def parse_nullable_int(value: Any, field_name: str) -> int | None:
    if value in (None, "", "null"):
        return None
    return parse_int(value, field_name)


def parse_id_list(value: Any, field_name: str) -> list[int]:
    if not isinstance(value, list):
        raise APIError(400, "INVALID_PARAMETER", f"{field_name} must be a list of integers.")
    return [parse_int(item, field_name) for item in value]


def parse_expiry(payload: dict[str, Any], now: datetime) -> datetime | None:
    """Read ``expires_at`` (ISO 8601) or ``expires_in_days`` from a request body."""

    raw_at = payload.get("expires_at")
    if raw_at not in (None, ""):
        if not isinstance(raw_at, str):
            raise APIError(400, "INVALID_PARAMETER", "expires_at must be an ISO 8601 timestamp.")
        try:
            parsed = datetime.fromisoformat(raw_at.strip().replace("Z", "+00:00"))
        except ValueError as error:
            raise APIError(400, "INVALID_PARAMETER", "expires_at must be an ISO 8601 timestamp.") from error
        return as_utc(parsed)

    raw_days = payload.get("expires_in_days")
    if raw_days in (None, ""):
        return None
    days = parse_int(raw_days, "expires_in_days")
    if days < 1 or days > 3650:
        raise APIError(400, "INVALID_PARAMETER", "expires_in_days must be between 1 and 3650.")
    return now + timedelta(days=days)


def json_object() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise APIError(400, "INVALID_PAYLOAD", "JSON object expected.")
    return payload


def source_ip() -> str | None:
    return (request.headers.get("X-Forwarded-For") or request.remote_addr or "").split(",")[0].strip() or None
