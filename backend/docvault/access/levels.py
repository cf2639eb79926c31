"""
Permission levels and the effective-permission value shared by every access component.

Levels form a total order (VIEW < COMMENT < EDIT < MANAGE < FULL). The owner of a
document never has a stored grant; their access is modelled as ``EffectivePermission.owner()``
which ranks as FULL.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from ..common.errors import NotFound, PermissionDenied, ValidationFailed
from ..models import PermissionLevel


LINK_PERMISSION_CEILING = PermissionLevel.MANAGE
_LEVEL_NAMES = ", ".join(level.value for level in PermissionLevel)


def is_valid_level(value: Any) -> bool:
    if isinstance(value, PermissionLevel):
        return True
    if not isinstance(value, str):
        return False
    return value.strip().upper() in PermissionLevel.__members__


def parse_level(value: Any, field_name: str = "permission") -> PermissionLevel:
    if isinstance(value, PermissionLevel):
        return value
    if is_valid_level(value):
        return PermissionLevel(value.strip().upper())
    raise ValidationFailed("INVALID_PERMISSION", f"{field_name} must be one of: {_LEVEL_NAMES}.")


def parse_link_level(value: Any, field_name: str = "permission") -> PermissionLevel:
    level = parse_level(value, field_name)
    if not LINK_PERMISSION_CEILING.satisfies(level):
        raise ValidationFailed(
            "INVALID_PERMISSION",
            f"Share links cannot carry more than {LINK_PERMISSION_CEILING.value}.",
        )
    return level


class AccessKind(str, enum.Enum):
    OWNER = "owner"
    GRANTED = "granted"
    NONE = "none"


@dataclass(frozen=True)
class EffectivePermission:
    kind: AccessKind
    granted_level: PermissionLevel | None = None

    @classmethod
    def owner(cls) -> "EffectivePermission":
        return cls(AccessKind.OWNER)

    @classmethod
    def granted(cls, level: PermissionLevel) -> "EffectivePermission":
        return cls(AccessKind.GRANTED, level)

    @classmethod
    def none(cls) -> "EffectivePermission":
        return cls(AccessKind.NONE)

    @property
    def is_owner(self) -> bool:
        return self.kind == AccessKind.OWNER

    @property
    def has_access(self) -> bool:
        return self.kind != AccessKind.NONE

    @property
    def level(self) -> PermissionLevel | None:
        if self.kind == AccessKind.OWNER:
            return PermissionLevel.FULL
        return self.granted_level

    def satisfies(self, required: PermissionLevel) -> bool:
        level = self.level
        return level is not None and level.satisfies(required)

    def to_dict(self) -> dict[str, Any]:
        level = self.level
        return {
            "is_owner": self.is_owner,
            "has_access": self.has_access,
            "permission": level.value if level else None,
            "can_comment": self.satisfies(PermissionLevel.COMMENT),
            "can_edit": self.satisfies(PermissionLevel.EDIT),
            "can_share": self.satisfies(PermissionLevel.MANAGE),
            "can_manage": self.satisfies(PermissionLevel.MANAGE),
        }


def enforce(effective: EffectivePermission, required: PermissionLevel, not_found_code: str = "DOCUMENT_NOT_FOUND") -> None:
    """
    Raise unless ``effective`` reaches ``required``.

    A caller without any access gets NotFound so existence is never revealed; a caller
    who can already see the document gets PermissionDenied.
    """

    if not effective.has_access:
        raise NotFound(not_found_code, "Document not found.")
    if not effective.satisfies(required):
        raise PermissionDenied(
            "INSUFFICIENT_PERMISSION",
            f"{required.value} permission is required.",
            {"required": required.value, "effective": effective.level.value if effective.level else None},
        )
