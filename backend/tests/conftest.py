from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from docvault import create_app
from docvault.access.ports import FixedClock
from docvault.common.rate_limit import login_rate_limiter
from docvault.extensions import db
from docvault.models import Document, DocumentStatus, DocumentType, User


PASSWORDS = {
    "alice": "alicepass",
    "bob": "bobpass123",
    "carol": "carolpass123",
}


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def app(tmp_path: Path, clock: FixedClock):
    db_path = tmp_path / "test.db"
    storage_path = tmp_path / "storage"

    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "STORAGE_ROOT": str(storage_path),
            "JWT_SECRET_KEY": "test-secret-key-at-least-32-bytes-long",
            "MAX_CONTENT_BYTES": 1024 * 1024,
            "ACCESS_CLOCK": clock,
        }
    )
    login_rate_limiter.reset()

    with app.app_context():
        db.create_all()
        for username, password in PASSWORDS.items():
            user = User(username=username, is_active=True)
            user.set_password(password)
            db.session.add(user)
        db.session.commit()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(app) -> dict[str, int]:
    with app.app_context():
        return {user.username: user.id for user in User.query.all()}


@pytest.fixture
def auth_headers(client):
    def build(username: str) -> dict[str, str]:
        response = client.post("/auth/login", json={"username": username, "password": PASSWORDS[username]})
        assert response.status_code == 200
        return {"Authorization": f"Bearer {response.get_json()['access_token']}"}

    return build


def _make_document(
    owner_id: int,
    title: str,
    doc_type: DocumentType = DocumentType.FOLDER,
    parent_id: int | None = None,
    status: DocumentStatus = DocumentStatus.ACTIVE,
) -> Document:
    """Insert a document directly, bypassing the access checks. Needs an app context."""

    document = Document(
        title=title,
        type=doc_type,
        status=status,
        owner_id=owner_id,
        parent_id=parent_id,
        sort_order=0,
        is_starred=False,
        content_size=0,
    )
    db.session.add(document)
    db.session.flush()
    return document


@pytest.fixture
def make_document():
    return _make_document
