"""
Database Initializer.

Run this script to create the interview tables in the database configured
by DATABASE_URL.

Usage:
    python -m governance_interview.scripts.db_init

Optionally pass --purge-abandoned to delete snapshots of abandoned sessions
left over from before PURGE_ABANDONED_SESSIONS was enabled.
"""

import argparse

from sqlmodel import Session, select

from governance_interview.config import settings
from governance_interview.infrastructure.database.connection import engine, init_db
from governance_interview.infrastructure.database.tables import SessionDBModel
from governance_interview.state.sessions import SessionStatus


def purge_abandoned() -> int:
    with Session(engine) as session:
        statement = select(SessionDBModel).where(SessionDBModel.status == SessionStatus.ABANDONED.value)
        rows = session.exec(statement).all()
        for row in rows:
            session.delete(row)
        session.commit()
        return len(rows)


def main():
    parser = argparse.ArgumentParser(description="Create the governance interview tables.")
    parser.add_argument("--purge-abandoned", action="store_true", help="delete abandoned session snapshots")
    args = parser.parse_args()

    print(f"Initializing database at {engine.url.render_as_string(hide_password=True)}...")
    init_db()
    print("Tables ready.")

    if args.purge_abandoned:
        print(f"Purged {purge_abandoned()} abandoned sessions.")
    elif settings.PURGE_ABANDONED_SESSIONS:
        print("PURGE_ABANDONED_SESSIONS is set; run with --purge-abandoned to clear older snapshots.")


if __name__ == "__main__":
    main()
