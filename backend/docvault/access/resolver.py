from __future__ import annotations

from typing import Any, Iterable

from flask import current_app

from ..common.errors import BatchLimitExceeded, Conflict, NotFound, PermissionDenied, ValidationFailed
from ..models import Document, DocumentGrant, PermissionLevel
from .levels import EffectivePermission, enforce, parse_level
from .ports import Clock, DocumentStore, GrantStore


def clean_target_ids(raw_ids: Iterable[Any], *excluded: int | None) -> list[int]:
    """Drop duplicates, non-positive ids and any of ``excluded`` while keeping input order."""

    skip = {value for value in excluded if value is not None}
    seen: set[int] = set()
    cleaned: list[int] = []
    for raw in raw_ids:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ValidationFailed("INVALID_USER_ID", "User ids must be integers.")
        if raw <= 0 or raw in skip or raw in seen:
            continue
        seen.add(raw)
        cleaned.append(raw)
    return cleaned


class PermissionResolver:
    def __init__(self, documents: DocumentStore, grants: GrantStore, clock: Clock, batch_limit: int = 100) -> None:
        self._documents = documents
        self._grants = grants
        self._clock = clock
        self.batch_limit = batch_limit

    def resolve_effective(self, document: Document, user_id: int | None) -> EffectivePermission:
        if user_id is None:
            return EffectivePermission.none()
        if document.owner_id == user_id:
            return EffectivePermission.owner()
        grant = self._grants.get(document.id, user_id)
        if grant is None:
            return EffectivePermission.none()
        return EffectivePermission.granted(grant.level)

    def check(self, document: Document, user_id: int | None, level: PermissionLevel) -> bool:
        return self.resolve_effective(document, user_id).satisfies(level)

    def require_manage(self, actor_id: int, document_id: int) -> Document:
        """Load an Active document the actor may administer, or raise NotFound / PermissionDenied."""

        document = self._documents.get(document_id)
        if document is None or not document.is_active:
            raise NotFound("DOCUMENT_NOT_FOUND", "Document not found.")
        enforce(self.resolve_effective(document, actor_id), PermissionLevel.MANAGE)
        return document

    def grant(self, actor_id: int, document_id: int, target_id: int, level: Any) -> DocumentGrant:
        parsed = parse_level(level)
        document = self.require_manage(actor_id, document_id)
        self._reject_owner_target(document, target_id)
        self._reject_self_target(actor_id, target_id)
        self._check_grantable(document, actor_id, parsed)
        grant, created = self._grants.upsert(document.id, target_id, parsed, actor_id, self._clock.now())
        current_app.logger.info(
            "permission %s document_id=%s target=%s level=%s actor=%s",
            "granted" if created else "regranted",
            document.id,
            target_id,
            parsed.value,
            actor_id,
        )
        return grant

    def revoke(self, actor_id: int, document_id: int, target_id: int) -> bool:
        document = self.require_manage(actor_id, document_id)
        self._reject_owner_target(document, target_id)
        grant = self._grants.get(document.id, target_id)
        if grant is None:
            return False
        self._grants.delete(grant)
        current_app.logger.info("permission revoked document_id=%s target=%s actor=%s", document.id, target_id, actor_id)
        return True

    def update(self, actor_id: int, document_id: int, target_id: int, level: Any) -> DocumentGrant:
        parsed = parse_level(level)
        document = self.require_manage(actor_id, document_id)
        self._reject_owner_target(document, target_id)
        self._reject_self_target(actor_id, target_id)
        self._check_grantable(document, actor_id, parsed)
        grant = self._grants.get(document.id, target_id)
        if grant is None:
            raise NotFound("GRANT_NOT_FOUND", "Permission grant not found.")
        grant.level = parsed
        grant.granted_by_id = actor_id
        grant.updated_at = self._clock.now()
        self._grants.update(grant)
        current_app.logger.info(
            "permission updated document_id=%s target=%s level=%s actor=%s",
            document.id,
            target_id,
            parsed.value,
            actor_id,
        )
        return grant

    def assign_creator_grant(self, document: Document, user_id: int, level: PermissionLevel) -> DocumentGrant | None:
        """
        Give a non-owner creator access to the document they just created in someone else's folder.

        Trusted path: the caller has already authorized the creation against the parent.
        """

        if user_id == document.owner_id:
            return None
        grant, _ = self._grants.upsert(document.id, user_id, level, user_id, self._clock.now())
        return grant

    def batch_grant(self, actor_id: int, document_id: int, target_ids: list[Any], level: Any) -> list[DocumentGrant]:
        parsed = parse_level(level)
        document = self.require_manage(actor_id, document_id)
        self._check_grantable(document, actor_id, parsed)
        targets = self._batch_targets(target_ids, actor_id, document.owner_id)
        now = self._clock.now()
        granted = [self._grants.upsert(document.id, target, parsed, actor_id, now)[0] for target in targets]
        current_app.logger.info(
            "batch grant document_id=%s count=%s level=%s actor=%s", document.id, len(granted), parsed.value, actor_id
        )
        return granted

    def batch_revoke(self, actor_id: int, document_id: int, target_ids: list[Any]) -> list[int]:
        document = self.require_manage(actor_id, document_id)
        targets = self._batch_targets(target_ids, actor_id, document.owner_id)
        revoked: list[int] = []
        for target in targets:
            grant = self._grants.get(document.id, target)
            if grant is None:
                continue
            self._grants.delete(grant)
            revoked.append(target)
        current_app.logger.info("batch revoke document_id=%s count=%s actor=%s", document.id, len(revoked), actor_id)
        return revoked

    def list_for_document(self, actor_id: int, document_id: int) -> list[DocumentGrant]:
        document = self.require_manage(actor_id, document_id)
        return self._grants.list_for_document(document.id)

    def list_for_user(self, user_id: int) -> list[DocumentGrant]:
        return self._grants.list_for_user(user_id)

    def _batch_targets(self, target_ids: Any, actor_id: int, owner_id: int) -> list[int]:
        if not isinstance(target_ids, list) or not target_ids:
            raise ValidationFailed("INVALID_BATCH", "user_ids must be a non-empty list.")
        if len(target_ids) > self.batch_limit:
            raise BatchLimitExceeded(self.batch_limit, len(target_ids))
        return clean_target_ids(target_ids, actor_id, owner_id)

    @staticmethod
    def _reject_owner_target(document: Document, target_id: int) -> None:
        if target_id == document.owner_id:
            raise Conflict("OWNER_GRANT", "The document owner always holds full access.")

    @staticmethod
    def _reject_self_target(actor_id: int, target_id: int) -> None:
        if target_id == actor_id:
            raise Conflict("SELF_GRANT", "You cannot change your own permission.")

    @staticmethod
    def _check_grantable(document: Document, actor_id: int, level: PermissionLevel) -> None:
        # FULL stays with the owner; delegated managers can hand out at most MANAGE.
        if level is PermissionLevel.FULL and document.owner_id != actor_id:
            raise PermissionDenied(
                "FULL_REQUIRES_OWNER",
                "Only the document owner can grant FULL.",
                {"required": PermissionLevel.FULL.value, "max_grantable": PermissionLevel.MANAGE.value},
            )
