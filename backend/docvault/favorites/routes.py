from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from flask_jwt_extended import jwt_required

from ..access.services import access_core
from ..common.auth import current_user
from ..common.errors import NotFound, ValidationFailed
from ..common.params import json_object
from ..common.storage import MAX_TITLE_LENGTH
from ..extensions import db
from ..models import Document, DocumentFavorite, DocumentStatus, PermissionLevel, User


favorites_bp = Blueprint("favorites", __name__)


def _actor() -> User:
    user = current_user(required=True)
    assert user is not None
    return user


def _favorite(document_id: int, user_id: int) -> DocumentFavorite | None:
    return DocumentFavorite.query.filter_by(document_id=document_id, user_id=user_id).one_or_none()


def _require_favorite(document_id: int, user_id: int) -> DocumentFavorite:
    favorite = _favorite(document_id, user_id)
    if favorite is None:
        raise NotFound("FAVORITE_NOT_FOUND", "Document is not in your favorites.")
    return favorite


@favorites_bp.get("/favorites")
@jwt_required()
def list_favorites():
    actor = _actor()
    resolver = access_core().resolver
    favorites = (
        DocumentFavorite.query.join(Document, Document.id == DocumentFavorite.document_id)
        .filter(DocumentFavorite.user_id == actor.id, Document.status == DocumentStatus.ACTIVE)
        .order_by(DocumentFavorite.created_at.desc(), DocumentFavorite.id.desc())
        .all()
    )
    # Rows outlive revoked grants; only documents the user can still view are listed.
    visible = [favorite for favorite in favorites if resolver.check(favorite.document, actor.id, PermissionLevel.VIEW)]
    return jsonify({"items": [favorite.to_dict() for favorite in visible]})


@favorites_bp.get("/documents/<int:document_id>/favorite")
@jwt_required()
def favorite_status(document_id: int):
    actor = _actor()
    access_core().gateway.authorize(actor.id, document_id, PermissionLevel.VIEW)
    favorite = _favorite(document_id, actor.id)
    return jsonify({"is_favorite": favorite is not None, "item": favorite.to_dict() if favorite else None})


@favorites_bp.post("/documents/<int:document_id>/favorite")
@jwt_required()
def toggle_favorite(document_id: int):
    actor = _actor()
    core = access_core()
    core.gateway.authorize(actor.id, document_id, PermissionLevel.VIEW)

    favorite = _favorite(document_id, actor.id)
    if favorite is not None:
        db.session.delete(favorite)
        db.session.commit()
        return jsonify({"is_favorite": False, "item": None})

    favorite = DocumentFavorite(document_id=document_id, user_id=actor.id, created_at=core.clock.now())
    db.session.add(favorite)
    db.session.commit()
    current_app.logger.debug("favorite added document_id=%s user=%s", document_id, actor.id)
    return jsonify({"is_favorite": True, "item": favorite.to_dict()})


@favorites_bp.put("/documents/<int:document_id>/favorite")
@jwt_required()
def set_favorite_title(document_id: int):
    actor = _actor()
    access_core().gateway.authorize(actor.id, document_id, PermissionLevel.VIEW)
    payload = json_object()
    favorite = _require_favorite(document_id, actor.id)

    raw_title = payload.get("custom_title")
    if raw_title is not None and not isinstance(raw_title, str):
        raise ValidationFailed("INVALID_TITLE", "custom_title must be a string.")
    title = (raw_title or "").strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationFailed("INVALID_TITLE", f"custom_title must be <= {MAX_TITLE_LENGTH} characters.")

    favorite.custom_title = title or None
    db.session.commit()
    return jsonify({"item": favorite.to_dict()})


@favorites_bp.delete("/documents/<int:document_id>/favorite")
@jwt_required()
def remove_favorite(document_id: int):
    actor = _actor()
    access_core().gateway.authorize(actor.id, document_id, PermissionLevel.VIEW)
    favorite = _require_favorite(document_id, actor.id)
    db.session.delete(favorite)
    db.session.commit()
    return jsonify({"is_favorite": False})
