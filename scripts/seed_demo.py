#!/usr/bin/env python3
"""Seed demo data: departments, one admin, member accounts and sample notices.

Usage:
    python scripts/seed_demo.py          # uses DATABASE_URL from env / .env
    DATABASE_URL=... python scripts/seed_demo.py

Refuses to run when APP_ENV=production.  Safe to re-run: existing
usernames are skipped.
"""
from __future__ import annotations

import os
import sys
from datetime import date, timedelta

from sqlalchemy.orm import Session

# Ensure project root is on sys.path
sys.path.insert(0, ".")

from noticeboard.core.policies import Identity, Role
from noticeboard.core.settings import get_settings
from noticeboard.db.base import Base
from noticeboard.db.repositories import UserRepository
from noticeboard.db.session import create_db_engine
from noticeboard.directory.service import DirectoryService
from noticeboard.notices.dispatch import NoticeDispatcher
from noticeboard.notices.status import StatusTracker
from noticeboard.storage.blob import get_storage

DEMO_DEPARTMENTS = [
    # (name, category)
    ("Revenue Department", "Finance"),
    ("Health Department", "Welfare"),
    ("Education Department", "Welfare"),
    ("Transport Department", "Infrastructure"),
    ("Public Works Department", "Infrastructure"),
]

DEMO_MEMBERS = [
    # (username, department index)
    ("dept_revenue", 0),
    ("dept_health", 1),
    ("dept_edu", 2),
    ("dept_transport", 3),
    ("dept_pwd", 4),
]


def seed(session: Session) -> None:
    """Insert demo departments, accounts and three notices in mixed states."""
    directory = DirectoryService(session)
    users = UserRepository(session)

    if users.get_by_username("admin") is not None:
        print("Demo data already present; nothing to do.")
        return

    admin_password = os.environ.get("SEED_ADMIN_PASSWORD", "Admin@Portal2024!")
    member_password = os.environ.get("SEED_MEMBER_PASSWORD", "Member@2024")

    departments = [directory.create_department(name, category=category) for name, category in DEMO_DEPARTMENTS]

    admin_user = users.create(
        username="admin",
        password_hash=directory.hasher.hash(admin_password),
        role=Role.ADMIN.value,
        department_id=None,
        is_active=True,
    )
    admin = Identity(id=admin_user.id, role=Role.ADMIN, username=admin_user.username)

    members = [
        directory.create_user(
            admin,
            username=username,
            password=member_password,
            role=Role.MEMBER.value,
            department_id=departments[index].id,
        )
        for username, index in DEMO_MEMBERS
    ]
    identities = [Identity(id=m.id, role=Role.MEMBER, username=m.username) for m in members]
    revenue, health, edu, transport, _pwd = identities

    storage = get_storage()
    dispatcher = NoticeDispatcher(session, storage)
    tracker = StatusTracker(session, storage)
    today = date.today()

    dispatcher.create_notice(
        revenue,
        title="Quarterly revenue returns",
        body="Submit the quarterly revenue return for your department.",
        priority="High",
        deadline=(today + timedelta(days=7)).isoformat(),
        broadcast=True,
    )
    audit_id = dispatcher.create_notice(
        health,
        title="Vaccination drive logistics",
        body="Confirm cold-chain availability for the district vaccination drive.",
        priority="Normal",
        deadline=(today - timedelta(days=3)).isoformat(),
        recipient_ids=[edu.id, transport.id],
    )
    tracker.update_status(edu, audit_id, "Completed", "Cold-chain confirmed for all schools.")
    tracker.update_status(transport, audit_id, "Noted", "Vehicle roster under review.")
    dispatcher.create_notice(
        transport,
        title="Road safety week",
        body="Nominate a coordinator for road safety week.",
        priority="Low",
        deadline=(today + timedelta(days=14)).isoformat(),
        recipient_ids=[revenue.id, edu.id],
    )

    session.commit()
    print(f"Seeded {len(departments)} departments, {len(members) + 1} users, 3 notices.")


def main() -> None:
    settings = get_settings()
    if settings.app_env == "production":
        print("ABORT: seed_demo.py must not be run in production.")
        sys.exit(1)
    engine = create_db_engine(settings.database_url)
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        seed(session)


if __name__ == "__main__":
    main()
