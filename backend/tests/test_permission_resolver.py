from __future__ import annotations

import pytest

from docvault.access.services import access_core
from docvault.common.errors import BatchLimitExceeded, Conflict, NotFound, PermissionDenied, ValidationFailed
from docvault.extensions import db
from docvault.models import DocumentGrant, DocumentStatus, PermissionLevel


def _grant_rows(document_id: int) -> list[DocumentGrant]:
    return DocumentGrant.query.filter_by(document_id=document_id).all()


def test_owner_resolves_to_full_even_with_a_stray_grant_row(app, users, make_document, clock):
    with app.app_context():
        document = make_document(users["alice"], "Reports")
        db.session.add(
            DocumentGrant(
                document_id=document.id,
                user_id=users["alice"],
                level=PermissionLevel.VIEW,
                granted_by_id=users["alice"],
                granted_at=clock.now(),
                updated_at=clock.now(),
            )
        )
        db.session.flush()

        effective = access_core().resolver.resolve_effective(document, users["alice"])
        assert effective.is_owner
        assert effective.level is PermissionLevel.FULL
        assert access_core().resolver.check(document, users["alice"], PermissionLevel.FULL)


def test_grant_is_an_idempotent_upsert(app, users, make_document):
    with app.app_context():
        resolver = access_core().resolver
        document = make_document(users["alice"], "Plans")

        resolver.grant(users["alice"], document.id, users["bob"], "EDIT")
        resolver.grant(users["alice"], document.id, users["bob"], "EDIT")

        rows = _grant_rows(document.id)
        assert len(rows) == 1
        assert rows[0].level is PermissionLevel.EDIT

        resolver.grant(users["alice"], document.id, users["bob"], "COMMENT")
        rows = _grant_rows(document.id)
        assert len(rows) == 1
        assert rows[0].level is PermissionLevel.COMMENT


def test_check_is_monotonic_for_a_stored_grant(app, users, make_document):
    with app.app_context():
        resolver = access_core().resolver
        document = make_document(users["alice"], "Budget")
        resolver.grant(users["alice"], document.id, users["bob"], "EDIT")

        results = [resolver.check(document, users["bob"], level) for level in PermissionLevel]
        assert results == [True, True, True, False, False]
        assert not resolver.check(document, users["carol"], PermissionLevel.VIEW)


def test_revoking_a_missing_grant_is_a_silent_no_op(app, users, make_document):
    with app.app_context():
        resolver = access_core().resolver
        document = make_document(users["alice"], "Drafts")

        assert resolver.revoke(users["alice"], document.id, users["bob"]) is False
        assert _grant_rows(document.id) == []

        resolver.grant(users["alice"], document.id, users["bob"], "VIEW")
        assert resolver.revoke(users["alice"], document.id, users["bob"]) is True
        assert resolver.revoke(users["alice"], document.id, users["bob"]) is False
        assert _grant_rows(document.id) == []


def test_owner_cannot_be_granted_or_revoked(app, users, make_document):
    with app.app_context():
        resolver = access_core().resolver
        document = make_document(users["alice"], "Owned")

        with pytest.raises(Conflict):
            resolver.grant(users["alice"], document.id, users["alice"], "VIEW")
        with pytest.raises(Conflict):
            resolver.revoke(users["alice"], document.id, users["alice"])


def test_update_requires_an_existing_grant(app, users, make_document):
    with app.app_context():
        resolver = access_core().resolver
        document = make_document(users["alice"], "Specs")

        with pytest.raises(NotFound) as error:
            resolver.update(users["alice"], document.id, users["bob"], "EDIT")
        assert error.value.code == "GRANT_NOT_FOUND"
        assert _grant_rows(document.id) == []

        resolver.grant(users["alice"], document.id, users["bob"], "VIEW")
        grant = resolver.update(users["alice"], document.id, users["bob"], "MANAGE")
        assert grant.level is PermissionLevel.MANAGE


def test_management_requires_manage_and_hides_existence_from_strangers(app, users, make_document):
    with app.app_context():
        resolver = access_core().resolver
        document = make_document(users["alice"], "Secret")
        resolver.grant(users["alice"], document.id, users["bob"], "EDIT")

        with pytest.raises(NotFound):
            resolver.grant(users["carol"], document.id, users["bob"], "VIEW")
        with pytest.raises(PermissionDenied):
            resolver.grant(users["bob"], document.id, users["carol"], "VIEW")

        resolver.update(users["alice"], document.id, users["bob"], "MANAGE")
        resolver.grant(users["bob"], document.id, users["carol"], "MANAGE")
        assert resolver.check(document, users["carol"], PermissionLevel.MANAGE)


def test_only_the_owner_can_grant_full(app, users, make_document):
    with app.app_context():
        resolver = access_core().resolver
        document = make_document(users["alice"], "Crown")
        resolver.grant(users["alice"], document.id, users["bob"], "MANAGE")
        resolver.grant(users["alice"], document.id, users["carol"], "VIEW")

        with pytest.raises(PermissionDenied) as error:
            resolver.grant(users["bob"], document.id, users["carol"], "FULL")
        assert error.value.code == "FULL_REQUIRES_OWNER"
        with pytest.raises(PermissionDenied):
            resolver.update(users["bob"], document.id, users["carol"], "FULL")
        with pytest.raises(PermissionDenied):
            resolver.batch_grant(users["bob"], document.id, [users["carol"]], "FULL")
        assert not resolver.check(document, users["carol"], PermissionLevel.EDIT)

        resolver.update(users["alice"], document.id, users["carol"], "FULL")
        assert resolver.check(document, users["carol"], PermissionLevel.FULL)


def test_managers_cannot_change_their_own_grant(app, users, make_document):
    with app.app_context():
        resolver = access_core().resolver
        document = make_document(users["alice"], "Ladder")
        resolver.grant(users["alice"], document.id, users["bob"], "MANAGE")

        with pytest.raises(Conflict) as error:
            resolver.grant(users["bob"], document.id, users["bob"], "FULL")
        assert error.value.code == "SELF_GRANT"
        with pytest.raises(Conflict):
            resolver.update(users["bob"], document.id, users["bob"], "MANAGE")

        effective = resolver.resolve_effective(document, users["bob"])
        assert effective.level is PermissionLevel.MANAGE


def test_invalid_level_is_rejected_before_any_write(app, users, make_document):
    with app.app_context():
        document = make_document(users["alice"], "Notes")
        with pytest.raises(ValidationFailed):
            access_core().resolver.grant(users["alice"], document.id, users["bob"], "SUPERUSER")
        assert _grant_rows(document.id) == []


def test_mutations_on_deleted_documents_are_not_found(app, users, make_document):
    with app.app_context():
        document = make_document(users["alice"], "Gone", status=DocumentStatus.DELETED)
        with pytest.raises(NotFound):
            access_core().resolver.grant(users["alice"], document.id, users["bob"], "VIEW")


def test_batch_grant_over_the_cap_performs_zero_writes(app, users, make_document):
    with app.app_context():
        resolver = access_core().resolver
        document = make_document(users["alice"], "Crowd")

        with pytest.raises(BatchLimitExceeded) as error:
            resolver.batch_grant(users["alice"], document.id, list(range(1, 102)), "VIEW")
        assert error.value.details == {"limit": 100, "size": 101}
        assert _grant_rows(document.id) == []


def test_batch_grant_drops_duplicates_actor_and_owner(app, users, make_document):
    with app.app_context():
        resolver = access_core().resolver
        document = make_document(users["alice"], "Team")
        resolver.grant(users["alice"], document.id, users["bob"], "MANAGE")

        grants = resolver.batch_grant(
            users["bob"],
            document.id,
            [users["carol"], users["carol"], users["bob"], users["alice"], 0, -4],
            "COMMENT",
        )
        assert [grant.user_id for grant in grants] == [users["carol"]]
        assert resolver.check(document, users["bob"], PermissionLevel.MANAGE)

        with pytest.raises(ValidationFailed):
            resolver.batch_grant(users["alice"], document.id, [], "VIEW")


def test_batch_revoke_reports_only_removed_grants(app, users, make_document):
    with app.app_context():
        resolver = access_core().resolver
        document = make_document(users["alice"], "Shared")
        resolver.grant(users["alice"], document.id, users["bob"], "VIEW")

        revoked = resolver.batch_revoke(users["alice"], document.id, [users["bob"], users["carol"], users["alice"]])
        assert revoked == [users["bob"]]
        assert _grant_rows(document.id) == []


def test_list_for_user_skips_deleted_documents(app, users, make_document, clock):
    with app.app_context():
        resolver = access_core().resolver
        kept = make_document(users["alice"], "Kept")
        dropped = make_document(users["alice"], "Dropped")
        resolver.grant(users["alice"], kept.id, users["bob"], "VIEW")
        resolver.grant(users["alice"], dropped.id, users["bob"], "VIEW")
        dropped.soft_delete(clock.now())
        db.session.flush()

        assert [grant.document_id for grant in resolver.list_for_user(users["bob"])] == [kept.id]
        with pytest.raises(NotFound):
            resolver.list_for_document(users["carol"], kept.id)
