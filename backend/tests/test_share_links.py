from __future__ import annotations

from datetime import timedelta

import pytest

from docvault.access.services import access_core
from docvault.common.errors import (
    BatchLimitExceeded,
    Expired,
    InvalidPassword,
    NotFound,
    PermissionDenied,
    ValidationFailed,
)
from docvault.extensions import db
from docvault.models import DocumentType, PermissionLevel, ShareLink, ShareType


def test_public_link_redeems_for_anyone(app, users, make_document):
    with app.app_context():
        manager = access_core().share_links
        document = make_document(users["alice"], "Handbook", DocumentType.FILE)
        link = manager.create_link(users["alice"], document.id, "view")

        assert link.share_type is ShareType.PUBLIC
        assert link.permission is PermissionLevel.VIEW
        assert len(link.token) == 32
        assert manager.validate_access(link.token).id == link.id
        assert manager.validate_access(link.token, user_id=users["carol"]).id == link.id


def test_unknown_or_empty_token_is_not_found(app):
    with app.app_context():
        manager = access_core().share_links
        for token in (None, "", "deadbeef"):
            with pytest.raises(NotFound) as error:
                manager.validate_access(token)
            assert error.value.code == "SHARE_NOT_FOUND"


def test_expiry_boundary_is_inclusive(app, users, make_document, clock):
    with app.app_context():
        manager = access_core().share_links
        document = make_document(users["alice"], "Quarterly", DocumentType.FILE)
        link = manager.create_link(users["alice"], document.id, "VIEW", expires_at=clock.now() + timedelta(hours=1))

        clock.advance(hours=1)
        manager.validate_access(link.token)

        clock.advance(seconds=1)
        with pytest.raises(Expired) as error:
            manager.validate_access(link.token)
        assert error.value.status_code == 410


def test_expiry_must_lie_in_the_future(app, users, make_document, clock):
    with app.app_context():
        manager = access_core().share_links
        document = make_document(users["alice"], "Past", DocumentType.FILE)
        with pytest.raises(ValidationFailed) as error:
            manager.create_link(users["alice"], document.id, "VIEW", expires_at=clock.now() - timedelta(seconds=1))
        assert error.value.code == "INVALID_EXPIRY"
        assert ShareLink.query.count() == 0


def test_full_cannot_be_carried_by_a_link(app, users, make_document):
    with app.app_context():
        document = make_document(users["alice"], "Capped", DocumentType.FILE)
        with pytest.raises(ValidationFailed):
            access_core().share_links.create_link(users["alice"], document.id, "FULL")


def test_password_protected_link(app, users, make_document):
    with app.app_context():
        manager = access_core().share_links
        document = make_document(users["alice"], "Locked", DocumentType.FILE)
        link = manager.create_link(users["alice"], document.id, "VIEW", password="s3cret")

        assert link.password_hash and link.password_hash != "s3cret"
        for attempt in (None, "", "wrong"):
            with pytest.raises(InvalidPassword):
                manager.validate_access(link.token, attempt)
        assert manager.validate_access(link.token, "s3cret").id == link.id


def test_clearing_the_password_with_an_empty_string(app, users, make_document):
    with app.app_context():
        manager = access_core().share_links
        document = make_document(users["alice"], "Temp", DocumentType.FILE)
        link = manager.create_link(users["alice"], document.id, "VIEW", password="s3cret")

        manager.update_link(users["alice"], link.id, password="")
        assert not link.is_password_protected
        manager.validate_access(link.token)


def test_update_without_fields_is_a_no_op(app, users, make_document, clock):
    with app.app_context():
        manager = access_core().share_links
        document = make_document(users["alice"], "Stable", DocumentType.FILE)
        link = manager.create_link(users["alice"], document.id, "COMMENT")
        before = link.updated_at

        clock.advance(minutes=5)
        updated = manager.update_link(users["alice"], link.id)
        assert updated.permission is PermissionLevel.COMMENT
        assert updated.updated_at == before

        manager.update_link(users["alice"], link.id, permission="EDIT")
        assert link.permission is PermissionLevel.EDIT


def test_link_management_hides_or_denies_by_access(app, users, make_document):
    with app.app_context():
        core = access_core()
        document = make_document(users["alice"], "Guarded", DocumentType.FILE)
        link = core.share_links.create_link(users["alice"], document.id, "VIEW")
        core.resolver.grant(users["alice"], document.id, users["bob"], "VIEW")

        with pytest.raises(NotFound):
            core.share_links.update_link(users["carol"], link.id, permission="EDIT")
        with pytest.raises(PermissionDenied) as error:
            core.share_links.delete_link(users["bob"], link.id)
        assert error.value.code == "SHARE_MANAGE_DENIED"

        core.share_links.delete_link(users["alice"], link.id)
        assert ShareLink.query.count() == 0


def test_creating_a_link_requires_manage(app, users, make_document):
    with app.app_context():
        core = access_core()
        document = make_document(users["alice"], "Team notes", DocumentType.FILE)
        core.resolver.grant(users["alice"], document.id, users["bob"], "EDIT")

        with pytest.raises(PermissionDenied):
            core.share_links.create_link(users["bob"], document.id, "VIEW")
        with pytest.raises(NotFound):
            core.share_links.create_link(users["carol"], document.id, "VIEW")

        core.resolver.update(users["alice"], document.id, users["bob"], "MANAGE")
        link = core.share_links.create_link(users["bob"], document.id, "VIEW")
        core.share_links.delete_link(users["bob"], link.id)


def test_deleted_document_makes_its_links_unredeemable(app, users, make_document, clock):
    with app.app_context():
        manager = access_core().share_links
        document = make_document(users["alice"], "Retired", DocumentType.FILE)
        link = manager.create_link(users["alice"], document.id, "VIEW")

        document.soft_delete(clock.now())
        db.session.flush()
        with pytest.raises(NotFound):
            manager.validate_access(link.token)


def test_private_link_admits_members_creator_and_owner(app, users, make_document):
    with app.app_context():
        core = access_core()
        document = make_document(users["alice"], "Board", DocumentType.FILE)
        core.resolver.grant(users["alice"], document.id, users["carol"], "MANAGE")
        link = core.share_links.create_link(users["carol"], document.id, "VIEW", share_with_user_ids=[users["bob"]])

        assert link.share_type is ShareType.PRIVATE
        for user_id in (users["bob"], users["carol"], users["alice"]):
            core.share_links.validate_access(link.token, user_id=user_id)

        with pytest.raises(PermissionDenied) as error:
            core.share_links.validate_access(link.token)
        assert error.value.code == "SHARE_MEMBERS_ONLY"

        core.share_links.remove_members(users["carol"], link.id, [users["bob"]])
        with pytest.raises(PermissionDenied):
            core.share_links.validate_access(link.token, user_id=users["bob"])


def test_member_additions_are_idempotent_and_capped(app, users, make_document):
    with app.app_context():
        manager = access_core().share_links
        document = make_document(users["alice"], "Members", DocumentType.FILE)
        link = manager.create_link(users["alice"], document.id, "VIEW", share_with_user_ids=[users["bob"]])

        assert manager.add_members(users["alice"], link.id, [users["bob"], users["carol"], users["carol"]]) == [
            users["carol"]
        ]
        assert sorted(member.user_id for member in manager.list_members(users["alice"], link.id)) == sorted(
            [users["bob"], users["carol"]]
        )

        with pytest.raises(BatchLimitExceeded):
            manager.add_members(users["alice"], link.id, list(range(1000, 1051)))
        assert len(manager.list_members(users["alice"], link.id)) == 2


def test_member_operations_need_a_private_link(app, users, make_document):
    with app.app_context():
        manager = access_core().share_links
        document = make_document(users["alice"], "Open", DocumentType.FILE)
        link = manager.create_link(users["alice"], document.id, "VIEW")

        with pytest.raises(ValidationFailed) as error:
            manager.add_members(users["alice"], link.id, [users["bob"]])
        assert error.value.code == "SHARE_NOT_PRIVATE"


def test_record_access_updates_stats(app, users, make_document, clock):
    with app.app_context():
        manager = access_core().share_links
        document = make_document(users["alice"], "Counted", DocumentType.FILE)
        link = manager.create_link(users["alice"], document.id, "VIEW")

        manager.record_access(link, "10.0.0.7")
        manager.record_access(link, "10.0.0.8")

        stats = manager.stats(users["alice"], link.id)
        assert stats["view_count"] == 2
        assert stats["last_access_ip"] == "10.0.0.8"
        assert stats["last_access_at"] == clock.now().isoformat()
        assert stats["is_expired"] is False


def test_record_access_failures_do_not_propagate(app, users, make_document, monkeypatch):
    with app.app_context():
        manager = access_core().share_links
        document = make_document(users["alice"], "Flaky", DocumentType.FILE)
        link = manager.create_link(users["alice"], document.id, "VIEW")

        def broken(*_args, **_kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr(manager._links, "increment_view_count", broken)
        manager.record_access(link, "10.0.0.9")
        assert link.view_count == 0


def test_shared_with_me_lists_live_private_links(app, users, make_document, clock):
    with app.app_context():
        manager = access_core().share_links
        live = make_document(users["alice"], "Live", DocumentType.FILE)
        short = make_document(users["alice"], "Short", DocumentType.FILE)
        kept = manager.create_link(users["alice"], live.id, "VIEW", share_with_user_ids=[users["bob"]])
        manager.create_link(
            users["alice"],
            short.id,
            "VIEW",
            expires_at=clock.now() + timedelta(minutes=1),
            share_with_user_ids=[users["bob"]],
        )

        clock.advance(minutes=2)
        assert [link.id for link in manager.list_shared_with_me(users["bob"])] == [kept.id]
        assert [link.id for link in manager.list_mine(users["alice"])] == [kept.id]
