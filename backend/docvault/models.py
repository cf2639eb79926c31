from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError

from .extensions import db


pwd_hasher = PasswordHasher()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    normalized = as_utc(value)
    return normalized.isoformat() if normalized else None


class DocumentType(str, enum.Enum):
    FILE = "FILE"
    FOLDER = "FOLDER"


class DocumentStatus(str, enum.Enum):
    ACTIVE = "active"
    DELETED = "deleted"


class PermissionLevel(str, enum.Enum):
    """Grant levels, declared from weakest to strongest."""

    VIEW = "VIEW"
    COMMENT = "COMMENT"
    EDIT = "EDIT"
    MANAGE = "MANAGE"
    FULL = "FULL"

    @property
    def rank(self) -> int:
        return _LEVEL_RANKS[self]

    def satisfies(self, required: "PermissionLevel") -> bool:
        return self.rank >= required.rank


_LEVEL_RANKS: dict[PermissionLevel, int] = {level: rank for rank, level in enumerate(PermissionLevel, start=1)}


class ShareType(str, enum.Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def set_password(self, password: str) -> None:
        self.password_hash = pwd_hasher.hash(password)

    def verify_password(self, password: str) -> bool:
        try:
            return pwd_hasher.verify(self.password_hash, password)
        except VerifyMismatchError:
            return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Document(db.Model):
    __tablename__ = "documents"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False, index=True)
    type = db.Column(db.Enum(DocumentType), nullable=False, default=DocumentType.FILE)
    status = db.Column(db.Enum(DocumentStatus), nullable=False, default=DocumentStatus.ACTIVE, index=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Plain id on purpose: parents are looked up through the owner's document set, never via a relationship.
    parent_id = db.Column(db.Integer, nullable=True, index=True)
    space_id = db.Column(db.Integer, nullable=True, index=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_starred = db.Column(db.Boolean, nullable=False, default=False)
    content_ref = db.Column(db.String(512), nullable=True)
    content_size = db.Column(db.BigInteger, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status == DocumentStatus.ACTIVE

    @property
    def is_folder(self) -> bool:
        return self.type == DocumentType.FOLDER

    @property
    def can_be_parent(self) -> bool:
        return self.is_folder and self.is_active

    def soft_delete(self, when: datetime) -> None:
        self.status = DocumentStatus.DELETED
        self.deleted_at = when

    def restore(self) -> None:
        self.status = DocumentStatus.ACTIVE
        self.deleted_at = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type.value,
            "status": self.status.value,
            "owner_id": self.owner_id,
            "parent_id": self.parent_id,
            "space_id": self.space_id,
            "sort_order": self.sort_order,
            "is_starred": self.is_starred,
            "content_size": self.content_size,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "deleted_at": _iso(self.deleted_at),
        }


class DocumentGrant(db.Model):
    __tablename__ = "document_grants"

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    level = db.Column(db.Enum(PermissionLevel), nullable=False)
    granted_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    granted_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    document = db.relationship("Document")
    user = db.relationship("User", foreign_keys=[user_id])

    __table_args__ = (db.UniqueConstraint("document_id", "user_id", name="uq_document_grant_document_user"),)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "permission": self.level.value,
            "granted_by_id": self.granted_by_id,
            "granted_at": _iso(self.granted_at),
            "updated_at": _iso(self.updated_at),
        }


class ShareLink(db.Model):
    __tablename__ = "share_links"

    id = db.Column(db.Integer, primary_key=True)
    token = db.Column(db.String(128), unique=True, nullable=False)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    share_type = db.Column(db.Enum(ShareType), nullable=False, default=ShareType.PUBLIC)
    permission = db.Column(db.Enum(PermissionLevel), nullable=False, default=PermissionLevel.VIEW)
    password_hash = db.Column(db.String(255), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    view_count = db.Column(db.Integer, nullable=False, default=0)
    last_access_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_access_ip = db.Column(db.String(45), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    document = db.relationship("Document")
    members = db.relationship("ShareLinkMember", back_populates="share", cascade="all, delete-orphan")

    @property
    def is_private(self) -> bool:
        return self.share_type == ShareType.PRIVATE

    @property
    def is_password_protected(self) -> bool:
        return bool(self.password_hash)

    def is_expired(self, now: datetime) -> bool:
        expires_at = as_utc(self.expires_at)
        return expires_at is not None and now > expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "token": self.token,
            "document_id": self.document_id,
            "share_type": self.share_type.value,
            "permission": self.permission.value,
            "password_protected": self.is_password_protected,
            "expires_at": _iso(self.expires_at),
            "created_by_id": self.created_by_id,
            "view_count": self.view_count,
            "last_access_at": _iso(self.last_access_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class ShareLinkMember(db.Model):
    __tablename__ = "share_link_members"

    id = db.Column(db.Integer, primary_key=True)
    share_id = db.Column(db.Integer, db.ForeignKey("share_links.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    added_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    share = db.relationship("ShareLink", back_populates="members")
    user = db.relationship("User")

    __table_args__ = (db.UniqueConstraint("share_id", "user_id", name="uq_share_link_member"),)

    def to_dict(self) -> dict[str, Any]:
        return {
            "share_id": self.share_id,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "added_at": _iso(self.added_at),
        }


class DocumentFavorite(db.Model):
    __tablename__ = "document_favorites"

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    custom_title = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utc_now)

    document = db.relationship("Document")

    __table_args__ = (db.UniqueConstraint("document_id", "user_id", name="uq_document_favorite_user"),)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "user_id": self.user_id,
            "custom_title": self.custom_title,
            "document": self.document.to_dict() if self.document else None,
            "created_at": _iso(self.created_at),
        }
