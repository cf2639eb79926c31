from __future__ import annotations

import os
import re
from pathlib import Path
from uuid import uuid4

from .errors import APIError


INVALID_TITLE_PATTERN = re.compile(r"[\\/\x00]")
MAX_TITLE_LENGTH = 255


def validate_title(title: object, field_name: str = "title") -> str:
    if not isinstance(title, str):
        raise APIError(400, "INVALID_TITLE", f"{field_name} is required.")
    cleaned = title.strip()
    if not cleaned:
        raise APIError(400, "INVALID_TITLE", f"{field_name} cannot be empty.")
    if len(cleaned) > MAX_TITLE_LENGTH:
        raise APIError(400, "INVALID_TITLE", f"{field_name} must be <= {MAX_TITLE_LENGTH} characters.")
    if INVALID_TITLE_PATTERN.search(cleaned):
        raise APIError(400, "INVALID_TITLE", f"{field_name} contains invalid characters.")
    if cleaned in {".", ".."}:
        raise APIError(400, "INVALID_TITLE", "Reserved title.")
    return cleaned


def _safe_resolve(storage_root: Path, relative_path: str) -> Path:
    root = storage_root.resolve()
    candidate = (root / relative_path).resolve()
    if os.path.commonpath([str(root), str(candidate)]) != str(root):
        raise APIError(400, "INVALID_PATH", "Invalid storage path.")
    return candidate


def write_content(storage_root: Path, data: bytes) -> tuple[str, int]:
    """Store ``data`` as a new blob and return its relative path and size."""

    internal_name = uuid4().hex
    relative_path = f"{internal_name[:2]}/{internal_name}"

    target_path = _safe_resolve(storage_root, relative_path)
    target_path.parent.mkdir(parents=True, exist_ok=True)
    with target_path.open("wb") as output:
        output.write(data)

    return relative_path, len(data)


def delete_storage_path(storage_root: Path, relative_path: str | None) -> None:
    if not relative_path:
        return

    target_path = _safe_resolve(storage_root, relative_path)
    if target_path.exists():
        target_path.unlink()


def resolve_storage_path(storage_root: Path, relative_path: str) -> Path:
    return _safe_resolve(storage_root, relative_path)
