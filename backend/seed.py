from __future__ import annotations

import os
import sys
from getpass import getpass

from docvault import create_app
from docvault.extensions import db
from docvault.models import User


def main(argv: list[str]) -> None:
    app = create_app()

    with app.app_context():
        db.create_all()

        username = argv[1] if len(argv) > 1 else os.getenv("SEED_USERNAME", "admin")
        password = os.getenv("SEED_PASSWORD")
        if not password:
            password = getpass(f"Password for {username}: ")
        if not password:
            raise SystemExit("A password is required.")

        user = User.query.filter_by(username=username).one_or_none()
        created = False
        if user is None:
            user = User(username=username, is_active=True)
            created = True

        user.set_password(password)
        db.session.add(user)
        db.session.commit()

        print(f"{'Created' if created else 'Updated'} user: {username}")


if __name__ == "__main__":
    main(sys.argv)
