"""Collaborator interfaces consumed by the access core."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Protocol

from ..models import Document, DocumentGrant, PermissionLevel, ShareLink, ShareLinkMember, User, utc_now


class Clock(Protocol):
    def now(self) -> datetime: ...


class TokenGenerator(Protocol):
    def new_token(self) -> str: ...


class DocumentStore(Protocol):
    def get(self, document_id: int) -> Document | None: ...

    def add(self, document: Document) -> Document: ...

    def update(self, document: Document) -> Document: ...

    def list_by_owner(self, owner_id: int, include_deleted: bool = False, lock: bool = False) -> list[Document]: ...


class GrantStore(Protocol):
    def get(self, document_id: int, user_id: int) -> DocumentGrant | None: ...

    def upsert(
        self,
        document_id: int,
        user_id: int,
        level: PermissionLevel,
        granted_by_id: int,
        when: datetime,
    ) -> tuple[DocumentGrant, bool]: ...

    def update(self, grant: DocumentGrant) -> DocumentGrant: ...

    def delete(self, grant: DocumentGrant) -> None: ...

    def list_for_document(self, document_id: int) -> list[DocumentGrant]: ...

    def list_for_user(self, user_id: int) -> list[DocumentGrant]: ...


class ShareLinkStore(Protocol):
    def add(self, link: ShareLink) -> ShareLink: ...

    def get(self, link_id: int) -> ShareLink | None: ...

    def get_by_token(self, token: str) -> ShareLink | None: ...

    def update(self, link: ShareLink) -> ShareLink: ...

    def delete(self, link: ShareLink) -> None: ...

    def list_for_document(self, document_id: int) -> list[ShareLink]: ...

    def list_by_creator(self, user_id: int) -> list[ShareLink]: ...

    def list_for_member(self, user_id: int) -> list[ShareLink]: ...

    def add_member(self, link_id: int, user_id: int, when: datetime) -> bool: ...

    def remove_member(self, link_id: int, user_id: int) -> bool: ...

    def is_member(self, link_id: int, user_id: int) -> bool: ...

    def list_members(self, link_id: int) -> list[ShareLinkMember]: ...

    def increment_view_count(self, link_id: int, source_ip: str | None, when: datetime) -> None: ...


class UserStore(Protocol):
    def get(self, user_id: int) -> User | None: ...


class SystemClock:
    def now(self) -> datetime:
        return utc_now()


class FixedClock:
    """Clock pinned to an instant; ``advance`` moves it forward."""

    def __init__(self, instant: datetime) -> None:
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = instant

    def advance(self, **delta: float) -> datetime:
        self._instant = self._instant + timedelta(**delta)
        return self._instant


class SecretTokenGenerator:
    def __init__(self, nbytes: int = 16) -> None:
        self._nbytes = nbytes

    def new_token(self) -> str:
        return secrets.token_hex(self._nbytes)
