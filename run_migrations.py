#!/usr/bin/env python
"""
Schema migration helper for the quota drug database.

Usage:
    python run_migrations.py create "migration message"  # Autogenerate a migration from the models
    python run_migrations.py upgrade [revision]          # Apply migrations (default: head)
    python run_migrations.py downgrade [revision]        # Roll back (default: one step)
    python run_migrations.py stamp [revision]            # Mark a database created with create_all
    python run_migrations.py current                     # Show the applied revision
    python run_migrations.py history                     # Show migration history

The target database is taken from DATABASE_URL (see quota_drugs.config).
"""
from alembic.config import Config
from alembic import command
import os
import sys


alembic_cfg = Config(os.path.join(os.path.dirname(__file__), "alembic.ini"))


def create_migration(message: str):
    """Autogenerate a migration from the difference between models and schema."""
    try:
        command.revision(alembic_cfg, message=message, autogenerate=True)
        print(f"Migration '{message}' created")
        print("   Review it under migrations/versions, then run 'upgrade'")
    except Exception as e:
        print(f"Error creating migration: {str(e)}")
        sys.exit(1)


def upgrade_migrations(revision: str = "head"):
    try:
        print(f"Upgrading quota drug database to: {revision}")
        command.upgrade(alembic_cfg, revision)
        print("Database upgraded")
    except Exception as e:
        print(f"Error upgrading database: {str(e)}")
        sys.exit(1)


def downgrade_migrations(revision: str = "-1"):
    try:
        print(f"Downgrading quota drug database to: {revision}")
        command.downgrade(alembic_cfg, revision)
        print("Database downgraded")
    except Exception as e:
        print(f"Error downgrading database: {str(e)}")
        sys.exit(1)


def stamp_revision(revision: str = "head"):
    """Record a revision without running it, for tables made by AUTO_CREATE_TABLES."""
    try:
        command.stamp(alembic_cfg, revision)
        print(f"Database stamped at: {revision}")
    except Exception as e:
        print(f"Error stamping database: {str(e)}")
        sys.exit(1)


def show_current():
    try:
        command.current(alembic_cfg, verbose=True)
    except Exception as e:
        print(f"Error showing current revision: {str(e)}")
        sys.exit(1)


def show_history():
    try:
        command.history(alembic_cfg)
    except Exception as e:
        print(f"Error showing history: {str(e)}")
        sys.exit(1)


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    action = sys.argv[1].lower()
    argument = sys.argv[2] if len(sys.argv) > 2 else None

    if action == "create":
        if not argument:
            print("Error: Migration message required")
            print("   Usage: python run_migrations.py create 'migration message'")
            sys.exit(1)
        create_migration(argument)

    elif action == "upgrade":
        upgrade_migrations(argument or "head")

    elif action == "downgrade":
        downgrade_migrations(argument or "-1")

    elif action == "stamp":
        stamp_revision(argument or "head")

    elif action == "current":
        show_current()

    elif action == "history":
        show_history()

    else:
        print(f"Unknown action: {action}")
        print(__doc__)
        sys.exit(1)


if __name__ == "__main__":
    main()
