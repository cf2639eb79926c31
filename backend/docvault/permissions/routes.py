from __future__ import annotations

from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from ..access.services import access_core
from ..common.auth import current_user, require_existing_users
from ..common.errors import NotFound
from ..common.params import json_object, parse_id_list, parse_int
from ..extensions import db
from ..models import User


permissions_bp = Blueprint("permissions", __name__)


def _actor() -> User:
    user = current_user(required=True)
    assert user is not None
    return user


def _target_user_id(payload: dict) -> int:
    if payload.get("user_id") not in (None, ""):
        user_id = parse_int(payload.get("user_id"), "user_id")
        if access_core().users.get(user_id) is None:
            raise NotFound("USER_NOT_FOUND", "User not found.")
        return user_id

    username = str(payload.get("username") or "").strip()
    if not username:
        raise NotFound("USER_NOT_FOUND", "User not found.")
    user = User.query.filter_by(username=username).one_or_none()
    if user is None:
        raise NotFound("USER_NOT_FOUND", "User not found.")
    return user.id


def _batch_user_ids(payload: dict) -> list[int]:
    ids = parse_id_list(payload.get("user_ids"), "user_ids")
    return require_existing_users(ids, access_core().resolver.batch_limit)


@permissions_bp.get("/documents/<int:document_id>/permissions")
@jwt_required()
def list_permissions(document_id: int):
    actor = _actor()
    grants = access_core().resolver.list_for_document(actor.id, document_id)
    return jsonify({"items": [grant.to_dict() for grant in grants]})


@permissions_bp.post("/documents/<int:document_id>/permissions")
@jwt_required()
def grant_permission(document_id: int):
    actor = _actor()
    payload = json_object()
    resolver = access_core().resolver

    resolver.require_manage(actor.id, document_id)
    target_id = _target_user_id(payload)
    grant = resolver.grant(actor.id, document_id, target_id, payload.get("permission"))
    db.session.commit()
    return jsonify({"item": grant.to_dict()}), 201


@permissions_bp.patch("/documents/<int:document_id>/permissions/<int:user_id>")
@jwt_required()
def update_permission(document_id: int, user_id: int):
    actor = _actor()
    payload = json_object()
    grant = access_core().resolver.update(actor.id, document_id, user_id, payload.get("permission"))
    db.session.commit()
    return jsonify({"item": grant.to_dict()})


@permissions_bp.delete("/documents/<int:document_id>/permissions/<int:user_id>")
@jwt_required()
def revoke_permission(document_id: int, user_id: int):
    actor = _actor()
    revoked = access_core().resolver.revoke(actor.id, document_id, user_id)
    db.session.commit()
    return jsonify({"revoked": revoked})


@permissions_bp.post("/documents/<int:document_id>/permissions/batch-grant")
@jwt_required()
def batch_grant(document_id: int):
    actor = _actor()
    payload = json_object()
    resolver = access_core().resolver

    resolver.require_manage(actor.id, document_id)
    grants = resolver.batch_grant(actor.id, document_id, _batch_user_ids(payload), payload.get("permission"))
    db.session.commit()
    return jsonify({"items": [grant.to_dict() for grant in grants]})


@permissions_bp.post("/documents/<int:document_id>/permissions/batch-revoke")
@jwt_required()
def batch_revoke(document_id: int):
    actor = _actor()
    payload = json_object()
    resolver = access_core().resolver

    resolver.require_manage(actor.id, document_id)
    revoked = resolver.batch_revoke(actor.id, document_id, _batch_user_ids(payload))
    db.session.commit()
    return jsonify({"revoked_user_ids": revoked})


@permissions_bp.get("/permissions/shared-with-me")
@jwt_required()
def shared_with_me():
    actor = _actor()
    items = []
    for grant in access_core().resolver.list_for_user(actor.id):
        payload = grant.to_dict()
        payload["document"] = grant.document.to_dict() if grant.document else None
        items.append(payload)
    return jsonify({"items": items})
