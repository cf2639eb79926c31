from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request, send_file
from flask_jwt_extended import jwt_required

from ..access.levels import EffectivePermission
from ..common.auth import current_user
from ..common.errors import APIError
from ..common.params import json_object, parse_int, parse_nullable_int
from ..common.storage import validate_title
from ..extensions import db
from ..models import Document, DocumentType, PermissionLevel, User
from . import service


documents_bp = Blueprint("documents", __name__, url_prefix="/documents")


def _actor() -> User:
    user = current_user(required=True)
    assert user is not None
    return user


def _parse_type(value: Any) -> DocumentType:
    normalized = str(value or DocumentType.FILE.value).strip().upper()
    try:
        return DocumentType(normalized)
    except ValueError as error:
        raise APIError(400, "INVALID_DOCUMENT_TYPE", "type must be FILE or FOLDER.") from error


def _document_payload(document: Document, effective: EffectivePermission | None = None) -> dict[str, Any]:
    payload = document.to_dict()
    if effective is not None:
        payload["access"] = effective.to_dict()
    return payload


def _items(documents: list[Document]) -> dict[str, Any]:
    return {"items": [document.to_dict() for document in documents]}


@documents_bp.post("")
@jwt_required()
def create_document():
    actor = _actor()
    payload = json_object()

    document = service.create_document(
        actor.id,
        validate_title(payload.get("title")),
        _parse_type(payload.get("type")),
        parent_id=parse_nullable_int(payload.get("parent_id"), "parent_id"),
        space_id=parse_nullable_int(payload.get("space_id"), "space_id"),
        sort_order=parse_int(payload.get("sort_order", 0), "sort_order"),
        is_starred=bool(payload.get("is_starred", False)),
    )
    db.session.commit()
    return jsonify({"item": document.to_dict()}), 201


@documents_bp.get("")
@jwt_required()
def list_documents():
    actor = _actor()
    parent_id = parse_nullable_int(request.args.get("parent_id"), "parent_id")
    children = service.list_children(actor.id, parent_id)
    return jsonify(_items(sorted(children, key=lambda item: (item.sort_order, item.id))))


@documents_bp.get("/tree")
@jwt_required()
def document_tree():
    actor = _actor()
    return jsonify({"items": service.document_tree(actor.id)})


@documents_bp.get("/search")
@jwt_required()
def search_documents():
    actor = _actor()
    raw_type = request.args.get("type")
    limit = parse_int(request.args.get("limit", 50), "limit")
    offset = parse_int(request.args.get("offset", 0), "offset")
    results = service.search_documents(
        actor.id,
        request.args.get("q", ""),
        _parse_type(raw_type) if raw_type else None,
        limit=max(1, min(limit, 200)),
        offset=max(0, offset),
    )
    return jsonify(_items(results))


@documents_bp.get("/starred")
@jwt_required()
def starred_documents():
    actor = _actor()
    return jsonify(_items(service.starred_documents(actor.id)))


@documents_bp.get("/recent")
@jwt_required()
def recent_documents():
    actor = _actor()
    limit = parse_int(request.args.get("limit", 20), "limit")
    return jsonify(_items(service.recent_documents(actor.id, max(1, min(limit, 100)))))


@documents_bp.get("/<int:document_id>")
@jwt_required()
def get_document(document_id: int):
    actor = _actor()
    decision = service.get_document(actor.id, document_id)
    return jsonify({"item": _document_payload(decision.document, decision.effective)})


@documents_bp.patch("/<int:document_id>")
@jwt_required()
def update_document(document_id: int):
    actor = _actor()
    payload = json_object()

    changes: dict[str, Any] = {}
    if "title" in payload:
        changes["title"] = validate_title(payload.get("title"))
    if "sort_order" in payload:
        changes["sort_order"] = parse_int(payload.get("sort_order"), "sort_order")
    if "is_starred" in payload:
        changes["is_starred"] = bool(payload.get("is_starred"))
    if "parent_id" in payload:
        changes["parent_id"] = parse_nullable_int(payload.get("parent_id"), "parent_id")

    document = service.update_document(actor.id, document_id, **changes)
    db.session.commit()
    return jsonify({"item": document.to_dict()})


@documents_bp.post("/<int:document_id>/move")
@jwt_required()
def move_document(document_id: int):
    actor = _actor()
    payload = json_object()
    document = service.move_document(actor.id, document_id, parse_nullable_int(payload.get("parent_id"), "parent_id"))
    db.session.commit()
    return jsonify({"item": document.to_dict()})


@documents_bp.delete("/<int:document_id>")
@jwt_required()
def delete_document(document_id: int):
    actor = _actor()
    deleted_ids = service.delete_document(actor.id, document_id)
    db.session.commit()
    return jsonify({"deleted_ids": deleted_ids})


@documents_bp.post("/<int:document_id>/restore")
@jwt_required()
def restore_document(document_id: int):
    actor = _actor()
    document = service.restore_document(actor.id, document_id)
    db.session.commit()
    return jsonify({"item": document.to_dict()})


@documents_bp.post("/<int:document_id>/star")
@jwt_required()
def toggle_star(document_id: int):
    actor = _actor()
    document = service.toggle_star(actor.id, document_id)
    db.session.commit()
    return jsonify({"item": document.to_dict(), "is_starred": document.is_starred})


@documents_bp.post("/<int:document_id>/duplicate")
@jwt_required()
def duplicate_document(document_id: int):
    actor = _actor()
    payload = json_object()
    raw_title = payload.get("title")
    title = validate_title(raw_title) if raw_title not in (None, "") else None
    copy = service.duplicate_document(actor.id, document_id, title)
    db.session.commit()
    return jsonify({"item": copy.to_dict()}), 201


@documents_bp.get("/<int:document_id>/breadcrumb")
@jwt_required()
def breadcrumb(document_id: int):
    actor = _actor()
    return jsonify(_items(service.breadcrumb(actor.id, document_id)))


@documents_bp.get("/<int:document_id>/access")
@jwt_required()
def document_access(document_id: int):
    actor = _actor()
    effective = service.effective_access(actor.id, document_id)
    return jsonify({"document_id": document_id, "access": effective.to_dict()})


@documents_bp.get("/<int:document_id>/content")
@jwt_required()
def get_content(document_id: int):
    actor = _actor()
    document = service.get_document(actor.id, document_id).document
    path = service.content_path(document)
    if path is None:
        return "", 204
    return send_file(path, mimetype="application/octet-stream", download_name=document.title, as_attachment=True)


@documents_bp.put("/<int:document_id>/content")
@jwt_required()
def put_content(document_id: int):
    actor = _actor()
    document = service.get_document(actor.id, document_id, PermissionLevel.EDIT).document
    replaced = service.store_content(document, request.get_data(cache=False))
    db.session.commit()
    service.discard_content(replaced)
    return jsonify({"item": document.to_dict()})


@documents_bp.post("/batch-delete")
@jwt_required()
def batch_delete():
    actor = _actor()
    payload = json_object()
    ids = service.batch_delete(actor.id, payload.get("document_ids"))
    db.session.commit()
    return jsonify({"document_ids": ids})


@documents_bp.post("/batch-move")
@jwt_required()
def batch_move():
    actor = _actor()
    payload = json_object()
    parent_id = parse_nullable_int(payload.get("parent_id"), "parent_id")
    ids = service.batch_move(actor.id, payload.get("document_ids"), parent_id)
    db.session.commit()
    return jsonify({"document_ids": ids, "parent_id": parent_id})
