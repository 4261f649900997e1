# manage_reset.py
from __future__ import annotations

import os
import sys
from sqlalchemy import text, inspect
from sqlalchemy.exc import SQLAlchemyError
from flask_migrate import upgrade

from dotenv import load_dotenv

load_dotenv()

from app import create_app
from app.extensions import db


def _drop_everything(engine):
    if engine.dialect.name == "postgresql":
        print("[reset] Dropping schema 'public' (CASCADE)…")
        db.session.execute(text("DROP SCHEMA IF EXISTS public CASCADE;"))
        db.session.execute(text("CREATE SCHEMA public;"))
        db.session.execute(text("GRANT ALL ON SCHEMA public TO public;"))
        db.session.commit()
        print("[reset] Schema 'public' recreated.")
    else:
        print(f"[reset] Dropping all tables on {engine.dialect.name}…")
        db.drop_all()
        db.session.execute(text("DROP TABLE IF EXISTS alembic_version"))
        db.session.commit()


def main():
    """Drops every table, then replays the migrations from scratch."""

    if not os.getenv("DATABASE_URL"):
        print("[reset] ERROR: DATABASE_URL not found. Ensure .env file is correct.", file=sys.stderr)
        sys.exit(1)

    app = create_app()
    with app.app_context():
        engine = db.engine

        try:
            before_tables = inspect(engine).get_table_names()
            print(f"[reset] Tables before reset ({len(before_tables)}): {before_tables}")

            _drop_everything(engine)

            print("[reset] Running migrations…")
            upgrade()
            print("[reset] Migrations complete.")

            after_tables = inspect(engine).get_table_names()
            print(f"[reset] Tables after reset ({len(after_tables)}): {after_tables}")

            missing = sorted(set(db.metadata.tables) - set(after_tables))
            if missing:
                print(f"[reset] CRITICAL WARNING: tables missing after upgrade: {missing}", file=sys.stderr)
                sys.exit(1)

            print("[reset] Done ✅")

        except SQLAlchemyError as e:
            db.session.rollback()
            print(f"[reset] ERROR during DB operation: {e}", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    main()
