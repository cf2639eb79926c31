from __future__ import annotations

from datetime import datetime
from typing import Any

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from flask import current_app

from ..common.errors import BatchLimitExceeded, Expired, InvalidPassword, NotFound, PermissionDenied, ValidationFailed
from ..common.params import UNSET
from ..models import Document, ShareLink, ShareLinkMember, ShareType, as_utc, pwd_hasher
from .levels import parse_link_level
from .ports import Clock, DocumentStore, ShareLinkStore, TokenGenerator
from .resolver import PermissionResolver, clean_target_ids


MAX_SHARE_PASSWORD_LENGTH = 128


def _validate_password(password: Any) -> str | None:
    if password is None:
        return None
    if not isinstance(password, str):
        raise ValidationFailed("INVALID_SHARE_PASSWORD_FORMAT", "password must be a string.")
    if len(password) > MAX_SHARE_PASSWORD_LENGTH:
        raise ValidationFailed(
            "INVALID_SHARE_PASSWORD_FORMAT",
            f"password must be at most {MAX_SHARE_PASSWORD_LENGTH} characters.",
        )
    return password or None


class ShareLinkManager:
    def __init__(
        self,
        documents: DocumentStore,
        links: ShareLinkStore,
        resolver: PermissionResolver,
        clock: Clock,
        tokens: TokenGenerator,
        member_batch_limit: int = 50,
        password_hasher: PasswordHasher | None = None,
    ) -> None:
        self._documents = documents
        self._links = links
        self._resolver = resolver
        self._clock = clock
        self._tokens = tokens
        self._hasher = password_hasher or pwd_hasher
        self.member_batch_limit = member_batch_limit

    def create_link(
        self,
        actor_id: int,
        document_id: int,
        permission: Any,
        password: Any = None,
        expires_at: datetime | None = None,
        share_with_user_ids: list[Any] | None = None,
    ) -> ShareLink:
        level = parse_link_level(permission)
        raw_password = _validate_password(password)
        document = self._resolver.require_manage(actor_id, document_id)
        now = self._clock.now()
        expires_at = self._future_expiry(expires_at, now)

        members = self._member_ids(share_with_user_ids or [], actor_id, allow_empty=True)
        link = ShareLink(
            token=self._tokens.new_token(),
            document_id=document.id,
            share_type=ShareType.PRIVATE if members else ShareType.PUBLIC,
            permission=level,
            password_hash=self._hasher.hash(raw_password) if raw_password else None,
            expires_at=expires_at,
            created_by_id=actor_id,
            view_count=0,
            created_at=now,
            updated_at=now,
        )
        self._links.add(link)
        for user_id in members:
            self._links.add_member(link.id, user_id, now)

        current_app.logger.info(
            "share link created link_id=%s document_id=%s type=%s permission=%s actor=%s",
            link.id,
            document.id,
            link.share_type.value,
            level.value,
            actor_id,
        )
        return link

    def update_link(
        self,
        actor_id: int,
        link_id: int,
        permission: Any = UNSET,
        password: Any = UNSET,
        expires_at: Any = UNSET,
    ) -> ShareLink:
        """
        Apply only the supplied fields.

        ``password=""`` or ``None`` removes the password, ``expires_at=None`` removes the
        expiry. Calling with nothing supplied returns the link untouched.
        """

        link, _ = self._authorize_link_admin(actor_id, link_id)
        changed = False
        now = self._clock.now()

        if permission is not UNSET:
            link.permission = parse_link_level(permission)
            changed = True
        if password is not UNSET:
            raw_password = _validate_password(password)
            link.password_hash = self._hasher.hash(raw_password) if raw_password else None
            changed = True
        if expires_at is not UNSET:
            link.expires_at = self._future_expiry(expires_at, now)
            changed = True

        if not changed:
            return link

        link.updated_at = now
        self._links.update(link)
        current_app.logger.info("share link updated link_id=%s actor=%s", link.id, actor_id)
        return link

    def delete_link(self, actor_id: int, link_id: int) -> None:
        link, _ = self._authorize_link_admin(actor_id, link_id)
        self._links.delete(link)
        current_app.logger.info("share link deleted link_id=%s actor=%s", link_id, actor_id)

    def validate_access(self, token: str | None, password: str | None = None, user_id: int | None = None) -> ShareLink:
        """
        Redeem ``token``. Checks run in a fixed order: existence, expiry, password,
        document state, then the private whitelist.
        """

        if not token:
            raise NotFound("SHARE_NOT_FOUND", "Share link not found.")
        link = self._links.get_by_token(token)
        if link is None:
            raise NotFound("SHARE_NOT_FOUND", "Share link not found.")

        if link.is_expired(self._clock.now()):
            raise Expired("SHARE_EXPIRED", "This share link has expired.")

        if link.is_password_protected:
            if not password:
                raise InvalidPassword()
            try:
                self._hasher.verify(link.password_hash, password)
            except (VerificationError, InvalidHashError):
                raise InvalidPassword() from None

        document = self._documents.get(link.document_id)
        if document is None or not document.is_active:
            raise NotFound("SHARE_NOT_FOUND", "Share link not found.")

        if link.is_private and not self._may_redeem_private(link, document, user_id):
            raise PermissionDenied("SHARE_MEMBERS_ONLY", "This share link is restricted to invited users.")
        return link

    def record_access(self, link: ShareLink, source_ip: str | None) -> None:
        try:
            self._links.increment_view_count(link.id, source_ip, self._clock.now())
        except Exception:
            current_app.logger.warning("share access recording failed link_id=%s", link.id, exc_info=True)
            return
        current_app.logger.info("share link redeemed link_id=%s source_ip=%s", link.id, source_ip)

    def add_members(self, actor_id: int, link_id: int, user_ids: list[Any]) -> list[int]:
        link = self._private_link(actor_id, link_id)
        targets = self._member_ids(user_ids, link.created_by_id)
        now = self._clock.now()
        added = [user_id for user_id in targets if self._links.add_member(link.id, user_id, now)]
        if added:
            current_app.logger.info("share members added link_id=%s count=%s actor=%s", link.id, len(added), actor_id)
        return added

    def remove_members(self, actor_id: int, link_id: int, user_ids: list[Any]) -> list[int]:
        link = self._private_link(actor_id, link_id)
        targets = self._member_ids(user_ids, link.created_by_id)
        removed = [user_id for user_id in targets if self._links.remove_member(link.id, user_id)]
        if removed:
            current_app.logger.info(
                "share members removed link_id=%s count=%s actor=%s", link.id, len(removed), actor_id
            )
        return removed

    def list_members(self, actor_id: int, link_id: int) -> list[ShareLinkMember]:
        link = self._private_link(actor_id, link_id)
        return self._links.list_members(link.id)

    def get_link(self, actor_id: int, link_id: int) -> ShareLink:
        link, _ = self._authorize_link_admin(actor_id, link_id)
        return link

    def list_for_document(self, actor_id: int, document_id: int) -> list[ShareLink]:
        document = self._resolver.require_manage(actor_id, document_id)
        now = self._clock.now()
        return [link for link in self._links.list_for_document(document.id) if not link.is_expired(now)]

    def list_mine(self, user_id: int) -> list[ShareLink]:
        return self._visible(self._links.list_by_creator(user_id))

    def list_shared_with_me(self, user_id: int) -> list[ShareLink]:
        return [link for link in self._visible(self._links.list_for_member(user_id)) if link.created_by_id != user_id]

    def stats(self, actor_id: int, link_id: int) -> dict[str, Any]:
        link, _ = self._authorize_link_admin(actor_id, link_id)
        now = self._clock.now()
        last_access_at = as_utc(link.last_access_at)
        return {
            "share_id": link.id,
            "view_count": link.view_count,
            "last_access_at": last_access_at.isoformat() if last_access_at else None,
            "last_access_ip": link.last_access_ip,
            "member_count": len(self._links.list_members(link.id)) if link.is_private else 0,
            "is_expired": link.is_expired(now),
        }

    def _authorize_link_admin(self, actor_id: int, link_id: int) -> tuple[ShareLink, Document]:
        link = self._links.get(link_id)
        if link is None:
            raise NotFound("SHARE_NOT_FOUND", "Share link not found.")
        document = self._documents.get(link.document_id)
        if document is None or not document.is_active:
            raise NotFound("SHARE_NOT_FOUND", "Share link not found.")
        if actor_id in (link.created_by_id, document.owner_id):
            return link, document
        if not self._resolver.resolve_effective(document, actor_id).has_access:
            raise NotFound("SHARE_NOT_FOUND", "Share link not found.")
        raise PermissionDenied("SHARE_MANAGE_DENIED", "Only the link creator or the document owner can manage this link.")

    def _private_link(self, actor_id: int, link_id: int) -> ShareLink:
        link, _ = self._authorize_link_admin(actor_id, link_id)
        if not link.is_private:
            raise ValidationFailed("SHARE_NOT_PRIVATE", "Members can only be managed on private share links.")
        return link

    def _member_ids(self, user_ids: Any, *excluded: int | None, allow_empty: bool = False) -> list[int]:
        if not isinstance(user_ids, list):
            raise ValidationFailed("INVALID_BATCH", "user_ids must be a list.")
        if not user_ids and not allow_empty:
            raise ValidationFailed("INVALID_BATCH", "user_ids must not be empty.")
        if len(user_ids) > self.member_batch_limit:
            raise BatchLimitExceeded(self.member_batch_limit, len(user_ids))
        return clean_target_ids(user_ids, *excluded)

    def _may_redeem_private(self, link: ShareLink, document: Document, user_id: int | None) -> bool:
        if user_id is None:
            return False
        if user_id in (link.created_by_id, document.owner_id):
            return True
        return self._links.is_member(link.id, user_id)

    def _visible(self, links: list[ShareLink]) -> list[ShareLink]:
        now = self._clock.now()
        visible: list[ShareLink] = []
        for link in links:
            if link.is_expired(now):
                continue
            document = self._documents.get(link.document_id)
            if document is None or not document.is_active:
                continue
            visible.append(link)
        return visible

    @staticmethod
    def _future_expiry(expires_at: datetime | None, now: datetime) -> datetime | None:
        if expires_at is None:
            return None
        normalized = as_utc(expires_at)
        if normalized is None or normalized <= now:
            raise ValidationFailed("INVALID_EXPIRY", "expires_at must be in the future.")
        return normalized
