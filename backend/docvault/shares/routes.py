from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request, send_file
from flask_jwt_extended import jwt_required

from ..access.gateway import LinkAccess
from ..access.services import access_core
from ..common.auth import current_user, optional_user_id, require_existing_users
from ..common.params import json_object, parse_expiry, parse_id_list, source_ip
from ..documents import service as documents
from ..extensions import db
from ..models import PermissionLevel, ShareLink, User


shares_bp = Blueprint("shares", __name__)
public_shares_bp = Blueprint("public_shares", __name__, url_prefix="/public/shares")

PASSWORD_HEADER = "X-Share-Password"


def _actor() -> User:
    user = current_user(required=True)
    assert user is not None
    return user


def _public_url_for_token(token: str) -> str:
    return f"{request.host_url.rstrip('/')}/public/shares/{token}"


def _share_link_payload(link: ShareLink) -> dict[str, Any]:
    payload = link.to_dict()
    payload["public_url"] = _public_url_for_token(link.token)
    payload["document"] = link.document.to_dict() if link.document else None
    return payload


def _member_ids(payload: dict[str, Any], field_name: str) -> list[int]:
    raw = payload.get(field_name)
    if raw in (None, ""):
        return []
    ids = parse_id_list(raw, field_name)
    return require_existing_users(ids, access_core().share_links.member_batch_limit)


@shares_bp.post("/documents/<int:document_id>/shares")
@jwt_required()
def create_share_link(document_id: int):
    actor = _actor()
    payload = json_object()
    core = access_core()

    core.resolver.require_manage(actor.id, document_id)
    link = core.share_links.create_link(
        actor.id,
        document_id,
        payload.get("permission", PermissionLevel.VIEW.value),
        password=payload.get("password"),
        expires_at=parse_expiry(payload, core.clock.now()),
        share_with_user_ids=_member_ids(payload, "share_with_user_ids"),
    )
    db.session.commit()
    return jsonify({"item": _share_link_payload(link)}), 201


@shares_bp.get("/documents/<int:document_id>/shares")
@jwt_required()
def list_document_share_links(document_id: int):
    actor = _actor()
    links = access_core().share_links.list_for_document(actor.id, document_id)
    return jsonify({"items": [_share_link_payload(link) for link in links]})


@shares_bp.get("/shares/mine")
@jwt_required()
def list_my_share_links():
    actor = _actor()
    links = access_core().share_links.list_mine(actor.id)
    return jsonify({"items": [_share_link_payload(link) for link in links]})


@shares_bp.get("/shares/shared-with-me")
@jwt_required()
def list_share_links_shared_with_me():
    actor = _actor()
    links = access_core().share_links.list_shared_with_me(actor.id)
    return jsonify({"items": [_share_link_payload(link) for link in links]})


@shares_bp.get("/shares/<int:link_id>")
@jwt_required()
def get_share_link(link_id: int):
    actor = _actor()
    link = access_core().share_links.get_link(actor.id, link_id)
    return jsonify({"item": _share_link_payload(link)})


@shares_bp.patch("/shares/<int:link_id>")
@jwt_required()
def update_share_link(link_id: int):
    actor = _actor()
    payload = json_object()
    core = access_core()

    changes: dict[str, Any] = {}
    if "permission" in payload:
        changes["permission"] = payload.get("permission")
    if "password" in payload:
        changes["password"] = payload.get("password")
    if "expires_at" in payload or "expires_in_days" in payload:
        changes["expires_at"] = parse_expiry(payload, core.clock.now())

    link = core.share_links.update_link(actor.id, link_id, **changes)
    db.session.commit()
    return jsonify({"item": _share_link_payload(link)})


@shares_bp.delete("/shares/<int:link_id>")
@jwt_required()
def delete_share_link(link_id: int):
    actor = _actor()
    access_core().share_links.delete_link(actor.id, link_id)
    db.session.commit()
    return jsonify({"deleted": True})


@shares_bp.get("/shares/<int:link_id>/stats")
@jwt_required()
def share_link_stats(link_id: int):
    actor = _actor()
    return jsonify({"stats": access_core().share_links.stats(actor.id, link_id)})


@shares_bp.get("/shares/<int:link_id>/members")
@jwt_required()
def list_share_link_members(link_id: int):
    actor = _actor()
    members = access_core().share_links.list_members(actor.id, link_id)
    return jsonify({"items": [member.to_dict() for member in members]})


@shares_bp.post("/shares/<int:link_id>/members")
@jwt_required()
def add_share_link_members(link_id: int):
    actor = _actor()
    payload = json_object()
    share_links = access_core().share_links

    share_links.get_link(actor.id, link_id)
    added = share_links.add_members(actor.id, link_id, _member_ids(payload, "user_ids"))
    db.session.commit()
    return jsonify({"added_user_ids": added})


@shares_bp.delete("/shares/<int:link_id>/members")
@jwt_required()
def remove_share_link_members(link_id: int):
    actor = _actor()
    payload = json_object()
    share_links = access_core().share_links

    share_links.get_link(actor.id, link_id)
    removed = share_links.remove_members(actor.id, link_id, parse_id_list(payload.get("user_ids"), "user_ids"))
    db.session.commit()
    return jsonify({"removed_user_ids": removed})


def _redeem(token: str, required: PermissionLevel) -> LinkAccess:
    core = access_core()
    access = core.gateway.authorize_link(
        token,
        request.headers.get(PASSWORD_HEADER),
        required,
        user_id=optional_user_id(),
    )
    core.share_links.record_access(access.link, source_ip())
    return access


@public_shares_bp.get("/<token>")
def public_share_view(token: str):
    access = _redeem(token, PermissionLevel.VIEW)
    db.session.commit()
    link = access.link
    return jsonify(
        {
            "share": {
                "share_type": link.share_type.value,
                "permission": link.permission.value,
                "expires_at": link.to_dict()["expires_at"],
                "password_protected": link.is_password_protected,
            },
            "document": access.document.to_dict(),
        }
    )


@public_shares_bp.get("/<token>/content")
def public_share_content(token: str):
    access = _redeem(token, PermissionLevel.VIEW)
    db.session.commit()
    path = documents.content_path(access.document)
    if path is None:
        return "", 204
    return send_file(path, mimetype="application/octet-stream", download_name=access.document.title, as_attachment=True)


@public_shares_bp.put("/<token>/content")
def public_share_write_content(token: str):
    access = _redeem(token, PermissionLevel.EDIT)
    replaced = documents.store_content(access.document, request.get_data(cache=False))
    db.session.commit()
    documents.discard_content(replaced)
    return jsonify({"item": access.document.to_dict()})
