from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Document, DocumentGrant, DocumentStatus, PermissionLevel, ShareLink, ShareLinkMember, User


class SqlDocumentStore:
    def get(self, document_id: int) -> Document | None:
        return db.session.get(Document, document_id)

    def add(self, document: Document) -> Document:
        db.session.add(document)
        db.session.flush([document])
        return document

    def update(self, document: Document) -> Document:
        db.session.add(document)
        db.session.flush([document])
        return document

    def list_by_owner(self, owner_id: int, include_deleted: bool = False, lock: bool = False) -> list[Document]:
        query = Document.query.filter(Document.owner_id == owner_id)
        if not include_deleted:
            query = query.filter(Document.status == DocumentStatus.ACTIVE)
        if lock:
            # Serializes concurrent moves within one owner's tree on databases that support row locks.
            query = query.with_for_update()
        return query.order_by(Document.id.asc()).all()


class SqlGrantStore:
    def get(self, document_id: int, user_id: int) -> DocumentGrant | None:
        return DocumentGrant.query.filter_by(document_id=document_id, user_id=user_id).one_or_none()

    def upsert(
        self,
        document_id: int,
        user_id: int,
        level: PermissionLevel,
        granted_by_id: int,
        when: datetime,
    ) -> tuple[DocumentGrant, bool]:
        existing = self.get(document_id, user_id)
        if existing is not None:
            return self._overwrite(existing, level, granted_by_id, when), False

        grant = DocumentGrant(
            document_id=document_id,
            user_id=user_id,
            level=level,
            granted_by_id=granted_by_id,
            granted_at=when,
            updated_at=when,
        )
        try:
            with db.session.begin_nested():
                db.session.add(grant)
                db.session.flush([grant])
        except IntegrityError:
            # Lost the insert race on (document_id, user_id); the row now exists, so overwrite it.
            existing = self.get(document_id, user_id)
            if existing is None:
                raise
            return self._overwrite(existing, level, granted_by_id, when), False
        return grant, True

    def _overwrite(self, grant: DocumentGrant, level: PermissionLevel, granted_by_id: int, when: datetime) -> DocumentGrant:
        grant.level = level
        grant.granted_by_id = granted_by_id
        grant.updated_at = when
        db.session.flush([grant])
        return grant

    def update(self, grant: DocumentGrant) -> DocumentGrant:
        db.session.add(grant)
        db.session.flush([grant])
        return grant

    def delete(self, grant: DocumentGrant) -> None:
        db.session.delete(grant)
        db.session.flush()

    def list_for_document(self, document_id: int) -> list[DocumentGrant]:
        return (
            DocumentGrant.query.filter_by(document_id=document_id)
            .order_by(DocumentGrant.updated_at.desc(), DocumentGrant.id.desc())
            .all()
        )

    def list_for_user(self, user_id: int) -> list[DocumentGrant]:
        return (
            DocumentGrant.query.join(Document, Document.id == DocumentGrant.document_id)
            .filter(DocumentGrant.user_id == user_id, Document.status == DocumentStatus.ACTIVE)
            .order_by(DocumentGrant.updated_at.desc(), DocumentGrant.id.desc())
            .all()
        )


class SqlShareLinkStore:
    def add(self, link: ShareLink) -> ShareLink:
        db.session.add(link)
        db.session.flush([link])
        return link

    def get(self, link_id: int) -> ShareLink | None:
        return db.session.get(ShareLink, link_id)

    def get_by_token(self, token: str) -> ShareLink | None:
        return ShareLink.query.filter_by(token=token).one_or_none()

    def update(self, link: ShareLink) -> ShareLink:
        db.session.add(link)
        db.session.flush([link])
        return link

    def delete(self, link: ShareLink) -> None:
        db.session.delete(link)
        db.session.flush()

    def list_for_document(self, document_id: int) -> list[ShareLink]:
        return (
            ShareLink.query.filter_by(document_id=document_id)
            .order_by(ShareLink.created_at.desc(), ShareLink.id.desc())
            .all()
        )

    def list_by_creator(self, user_id: int) -> list[ShareLink]:
        return (
            ShareLink.query.filter_by(created_by_id=user_id)
            .order_by(ShareLink.created_at.desc(), ShareLink.id.desc())
            .all()
        )

    def list_for_member(self, user_id: int) -> list[ShareLink]:
        return (
            ShareLink.query.join(ShareLinkMember, ShareLinkMember.share_id == ShareLink.id)
            .filter(ShareLinkMember.user_id == user_id)
            .order_by(ShareLink.created_at.desc(), ShareLink.id.desc())
            .all()
        )

    def add_member(self, link_id: int, user_id: int, when: datetime) -> bool:
        if self.is_member(link_id, user_id):
            return False
        member = ShareLinkMember(share_id=link_id, user_id=user_id, added_at=when)
        try:
            with db.session.begin_nested():
                db.session.add(member)
                db.session.flush([member])
        except IntegrityError:
            return False
        return True

    def remove_member(self, link_id: int, user_id: int) -> bool:
        member = ShareLinkMember.query.filter_by(share_id=link_id, user_id=user_id).one_or_none()
        if member is None:
            return False
        db.session.delete(member)
        db.session.flush()
        return True

    def is_member(self, link_id: int, user_id: int) -> bool:
        return ShareLinkMember.query.filter_by(share_id=link_id, user_id=user_id).first() is not None

    def list_members(self, link_id: int) -> list[ShareLinkMember]:
        return (
            ShareLinkMember.query.filter_by(share_id=link_id)
            .order_by(ShareLinkMember.added_at.asc(), ShareLinkMember.id.asc())
            .all()
        )

    def increment_view_count(self, link_id: int, source_ip: str | None, when: datetime) -> None:
        with db.session.begin_nested():
            db.session.query(ShareLink).filter(ShareLink.id == link_id).update(
                {
                    ShareLink.view_count: ShareLink.view_count + 1,
                    ShareLink.last_access_at: when,
                    ShareLink.last_access_ip: source_ip,
                },
                synchronize_session="fetch",
            )


class SqlUserStore:
    def get(self, user_id: int) -> User | None:
        return db.session.get(User, user_id)
