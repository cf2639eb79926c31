from __future__ import annotations

from dataclasses import dataclass

from ..common.errors import NotFound, PermissionDenied
from ..models import Document, PermissionLevel, ShareLink
from .levels import EffectivePermission, enforce
from .ports import DocumentStore
from .resolver import PermissionResolver
from .share_links import ShareLinkManager


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    effective: EffectivePermission
    document: Document


@dataclass(frozen=True)
class LinkAccess:
    link: ShareLink
    document: Document

    @property
    def permission(self) -> PermissionLevel:
        return self.link.permission


class AccessGateway:
    """Answers "may this user do this to that document" for every caller."""

    def __init__(self, documents: DocumentStore, resolver: PermissionResolver, share_links: ShareLinkManager) -> None:
        self._documents = documents
        self._resolver = resolver
        self._share_links = share_links

    def check_access(self, user_id: int | None, document_id: int, required: PermissionLevel) -> AccessDecision:
        document = self._documents.get(document_id)
        if document is None or not document.is_active:
            raise NotFound("DOCUMENT_NOT_FOUND", "Document not found.")
        effective = self._resolver.resolve_effective(document, user_id)
        return AccessDecision(effective.satisfies(required), effective, document)

    def authorize(self, user_id: int | None, document_id: int, required: PermissionLevel) -> AccessDecision:
        decision = self.check_access(user_id, document_id, required)
        enforce(decision.effective, required)
        return decision

    def authorize_link(
        self,
        token: str | None,
        password: str | None,
        required: PermissionLevel,
        user_id: int | None = None,
    ) -> LinkAccess:
        link = self._share_links.validate_access(token, password, user_id)
        if not link.permission.satisfies(required):
            raise PermissionDenied(
                "SHARE_PERMISSION_CEILING",
                f"This share link does not allow {required.value} access.",
                {"required": required.value, "granted": link.permission.value},
            )
        document = self._documents.get(link.document_id)
        if document is None:
            raise NotFound("SHARE_NOT_FOUND", "Share link not found.")
        return LinkAccess(link, document)
