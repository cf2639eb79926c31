"""
Document operations layered on the access core.

Every function here asks the gateway before touching a document. Structural changes
(create inside a folder, move, batch move) re-validate the hierarchy against the
owner's complete document set, loaded with row locks where the database has them.
Nothing here commits; the calling route commits once the whole request succeeded.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

from flask import current_app

from ..access.gateway import AccessDecision
from ..access.levels import EffectivePermission
from ..access.services import access_core
from ..common.errors import APIError, BatchLimitExceeded, Conflict, NotFound, ValidationFailed
from ..common.params import UNSET
from ..common.storage import delete_storage_path, resolve_storage_path, write_content
from ..models import Document, DocumentStatus, DocumentType, PermissionLevel


def _storage_root() -> Path:
    return Path(current_app.config["STORAGE_ROOT"])


def _children_index(documents: Iterable[Document]) -> dict[int | None, list[Document]]:
    children: dict[int | None, list[Document]] = {}
    for document in documents:
        children.setdefault(document.parent_id, []).append(document)
    return children


def _descendants(document: Document, snapshot: list[Document]) -> list[Document]:
    children = _children_index(snapshot)
    found: list[Document] = []
    visited = {document.id}
    pending = list(children.get(document.id, []))
    while pending:
        child = pending.pop()
        if child.id in visited:
            continue
        visited.add(child.id)
        found.append(child)
        pending.extend(children.get(child.id, []))
    return found


def create_document(
    actor_id: int,
    title: str,
    doc_type: DocumentType,
    parent_id: int | None = None,
    space_id: int | None = None,
    sort_order: int = 0,
    is_starred: bool = False,
) -> Document:
    core = access_core()
    owner_id = actor_id
    inherited: PermissionLevel | None = None

    if parent_id is not None:
        decision = core.gateway.authorize(actor_id, parent_id, PermissionLevel.EDIT)
        parent = decision.document
        if not parent.can_be_parent:
            raise ValidationFailed("INVALID_PARENT", "Only folders can contain documents.")
        owner_id = parent.owner_id
        if not decision.effective.is_owner and decision.effective.level is not None:
            level = decision.effective.level
            inherited = level if PermissionLevel.MANAGE.satisfies(level) else PermissionLevel.MANAGE

    now = core.clock.now()
    document = Document(
        title=title,
        type=doc_type,
        status=DocumentStatus.ACTIVE,
        owner_id=owner_id,
        parent_id=parent_id,
        space_id=space_id,
        sort_order=sort_order,
        is_starred=is_starred,
        content_size=0,
        created_at=now,
        updated_at=now,
    )
    if parent_id is not None:
        snapshot = core.documents.list_by_owner(owner_id, include_deleted=True, lock=True)
        core.hierarchy.validate_move(document, parent_id, snapshot)

    core.documents.add(document)
    if inherited is not None:
        core.resolver.assign_creator_grant(document, actor_id, inherited)

    current_app.logger.info(
        "document created document_id=%s type=%s parent_id=%s actor=%s",
        document.id,
        doc_type.value,
        parent_id,
        actor_id,
    )
    return document


def get_document(actor_id: int, document_id: int, required: PermissionLevel = PermissionLevel.VIEW) -> AccessDecision:
    return access_core().gateway.authorize(actor_id, document_id, required)


def update_document(
    actor_id: int,
    document_id: int,
    title: Any = UNSET,
    sort_order: Any = UNSET,
    is_starred: Any = UNSET,
    parent_id: Any = UNSET,
) -> Document:
    decision = get_document(actor_id, document_id, PermissionLevel.EDIT)
    document = decision.document

    changed = False
    if title is not UNSET and title != document.title:
        document.title = title
        changed = True
    if sort_order is not UNSET and sort_order != document.sort_order:
        document.sort_order = sort_order
        changed = True
    if is_starred is not UNSET and bool(is_starred) != document.is_starred:
        document.is_starred = bool(is_starred)
        changed = True
    if changed:
        access_core().documents.update(document)

    if parent_id is not UNSET and parent_id != document.parent_id:
        move_document(actor_id, document.id, parent_id)
    return document


def move_document(actor_id: int, document_id: int, new_parent_id: int | None) -> Document:
    core = access_core()
    document = core.gateway.authorize(actor_id, document_id, PermissionLevel.MANAGE).document
    if new_parent_id == document.parent_id:
        return document

    if new_parent_id is not None and new_parent_id != document.id:
        core.gateway.authorize(actor_id, new_parent_id, PermissionLevel.EDIT)

    snapshot = core.documents.list_by_owner(document.owner_id, include_deleted=True, lock=True)
    core.hierarchy.validate_move(document, new_parent_id, snapshot)

    previous = document.parent_id
    document.parent_id = new_parent_id
    core.documents.update(document)
    current_app.logger.info(
        "document moved document_id=%s from=%s to=%s actor=%s", document.id, previous, new_parent_id, actor_id
    )
    return document


def delete_document(actor_id: int, document_id: int) -> list[int]:
    core = access_core()
    document = core.gateway.authorize(actor_id, document_id, PermissionLevel.MANAGE).document
    now = core.clock.now()

    snapshot = core.documents.list_by_owner(document.owner_id)
    affected = [document, *_descendants(document, snapshot)]
    for item in affected:
        item.soft_delete(now)
        core.documents.update(item)

    current_app.logger.info("document deleted document_id=%s count=%s actor=%s", document.id, len(affected), actor_id)
    return [item.id for item in affected]


def restore_document(actor_id: int, document_id: int) -> Document:
    """Owner-only. Brings back the document and everything deleted together with it."""

    core = access_core()
    document = core.documents.get(document_id)
    if document is None or document.owner_id != actor_id:
        raise NotFound("DOCUMENT_NOT_FOUND", "Document not found.")
    if document.is_active:
        raise Conflict("DOCUMENT_NOT_DELETED", "Document is not deleted.")

    snapshot = core.documents.list_by_owner(document.owner_id, include_deleted=True, lock=True)
    by_id = {item.id: item for item in snapshot}
    deleted_at = document.deleted_at
    restored = [document] + [
        item for item in _descendants(document, snapshot) if not item.is_active and item.deleted_at == deleted_at
    ]
    for item in restored:
        item.restore()

    parent = by_id.get(document.parent_id) if document.parent_id is not None else None
    if document.parent_id is not None and (parent is None or not parent.can_be_parent):
        document.parent_id = None

    for item in restored:
        core.documents.update(item)
    current_app.logger.info("document restored document_id=%s count=%s actor=%s", document.id, len(restored), actor_id)
    return document


def list_children(actor_id: int, parent_id: int | None) -> list[Document]:
    core = access_core()
    if parent_id is None:
        return [item for item in core.documents.list_by_owner(actor_id) if item.parent_id is None]

    parent = get_document(actor_id, parent_id).document
    return [
        item
        for item in core.documents.list_by_owner(parent.owner_id)
        if item.parent_id == parent.id and core.resolver.check(item, actor_id, PermissionLevel.VIEW)
    ]


def document_tree(actor_id: int) -> list[dict[str, Any]]:
    documents = access_core().documents.list_by_owner(actor_id)
    known = {item.id for item in documents}
    children = _children_index(documents)

    def build(node: Document, seen: set[int]) -> dict[str, Any]:
        seen.add(node.id)
        payload = node.to_dict()
        payload["children"] = [
            build(child, seen)
            for child in sorted(children.get(node.id, []), key=lambda item: (item.sort_order, item.id))
            if child.id not in seen
        ]
        return payload

    roots = [item for item in documents if item.parent_id is None or item.parent_id not in known]
    seen: set[int] = set()
    return [build(root, seen) for root in sorted(roots, key=lambda item: (item.sort_order, item.id))]


def breadcrumb(actor_id: int, document_id: int) -> list[Document]:
    core = access_core()
    document = get_document(actor_id, document_id).document
    ancestors = core.hierarchy.ancestors(document, core.documents.list_by_owner(document.owner_id))
    visible = [item for item in ancestors if core.resolver.check(item, actor_id, PermissionLevel.VIEW)]
    return [*visible, document]


def search_documents(
    actor_id: int,
    keyword: str,
    doc_type: DocumentType | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Document]:
    cleaned = keyword.strip()
    if not cleaned:
        return []
    pattern = f"%{cleaned}%"
    query = Document.query.filter(
        Document.owner_id == actor_id,
        Document.status == DocumentStatus.ACTIVE,
        Document.title.ilike(pattern),
    )
    if doc_type is not None:
        query = query.filter(Document.type == doc_type)
    return query.order_by(Document.updated_at.desc(), Document.id.desc()).offset(offset).limit(limit).all()


def starred_documents(actor_id: int) -> list[Document]:
    return [item for item in access_core().documents.list_by_owner(actor_id) if item.is_starred]


def recent_documents(actor_id: int, limit: int = 20) -> list[Document]:
    return (
        Document.query.filter(Document.owner_id == actor_id, Document.status == DocumentStatus.ACTIVE)
        .order_by(Document.updated_at.desc(), Document.id.desc())
        .limit(limit)
        .all()
    )


def toggle_star(actor_id: int, document_id: int) -> Document:
    document = get_document(actor_id, document_id, PermissionLevel.EDIT).document
    document.is_starred = not document.is_starred
    access_core().documents.update(document)
    return document


def duplicate_document(actor_id: int, document_id: int, title: str | None = None) -> Document:
    core = access_core()
    original = get_document(actor_id, document_id).document

    parent_id = original.parent_id
    if parent_id is not None:
        parent = core.documents.get(parent_id)
        if parent is None or not parent.can_be_parent or not core.resolver.check(parent, actor_id, PermissionLevel.EDIT):
            parent_id = None

    copy = create_document(
        actor_id,
        title or f"{original.title} (copy)",
        original.type,
        parent_id=parent_id,
        space_id=original.space_id,
    )
    if original.content_ref:
        store_content(copy, read_content_bytes(original))
    return copy


def content_path(document: Document) -> Path | None:
    if document.is_folder:
        raise ValidationFailed("NOT_A_FILE", "Folders have no content.")
    if not document.content_ref:
        return None
    path = resolve_storage_path(_storage_root(), document.content_ref)
    if not path.exists():
        raise NotFound("CONTENT_NOT_FOUND", "Document content is missing on disk.")
    return path


def read_content_bytes(document: Document) -> bytes:
    path = content_path(document)
    return path.read_bytes() if path is not None else b""


def store_content(document: Document, data: bytes) -> str | None:
    """
    Write new content for a file and point the document at it.

    Returns the replaced blob path. The caller removes it with ``discard_content`` once the
    transaction has committed, so a failed commit still finds the old content on disk.
    """

    if document.is_folder:
        raise ValidationFailed("NOT_A_FILE", "Folders have no content.")
    limit = int(current_app.config["MAX_CONTENT_BYTES"])
    if len(data) > limit:
        raise APIError(413, "CONTENT_TOO_LARGE", f"Content must be <= {limit} bytes.", {"limit": limit})

    previous = document.content_ref
    relative_path, size = write_content(_storage_root(), data)
    document.content_ref = relative_path
    document.content_size = size
    access_core().documents.update(document)
    return previous


def discard_content(relative_path: str | None) -> None:
    delete_storage_path(_storage_root(), relative_path)


def batch_document_ids(raw_ids: Any) -> list[int]:
    limit = int(current_app.config["DOCUMENT_BATCH_LIMIT"])
    if not isinstance(raw_ids, list) or not raw_ids:
        raise ValidationFailed("INVALID_BATCH", "document_ids must be a non-empty list.")
    if len(raw_ids) > limit:
        raise BatchLimitExceeded(limit, len(raw_ids))

    seen: set[int] = set()
    for raw in raw_ids:
        if isinstance(raw, bool) or not isinstance(raw, int) or raw <= 0:
            raise ValidationFailed("INVALID_DOCUMENT_ID", "document_ids must be positive integers.")
        if raw in seen:
            raise ValidationFailed("DUPLICATE_DOCUMENT_ID", "document_ids must not contain duplicates.", {"id": raw})
        seen.add(raw)
    return list(raw_ids)


def batch_delete(actor_id: int, raw_ids: Any) -> list[int]:
    ids = batch_document_ids(raw_ids)
    removed: set[int] = set()
    for document_id in ids:
        if document_id in removed:
            # Already removed together with a folder earlier in this batch.
            continue
        removed.update(delete_document(actor_id, document_id))
    return ids


def batch_move(actor_id: int, raw_ids: Any, new_parent_id: int | None) -> list[int]:
    ids = batch_document_ids(raw_ids)
    for document_id in ids:
        move_document(actor_id, document_id, new_parent_id)
    return ids


def effective_access(actor_id: int, document_id: int) -> EffectivePermission:
    return get_document(actor_id, document_id).effective
