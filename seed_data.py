#!/usr/bin/env python3
"""
Seed Data Script for Partner Onboarding

Creates a demo scenario with:
- Staff users: Admin, Grants Manager, Chief Operations Officer
- One partner organization (with its partner user) at each onboarding stage
- Organizations waiting in both review queues at different ages, so the
  aging summary shows normal, aging and urgent items

Every seeded partner and reviewer uses the password "onboarding-demo".

Run with: python seed_data.py
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from partner_onboarding.core.database import close_db, get_session_context, init_db
from partner_onboarding.core.security import hash_password
from partner_onboarding.models import (
    AuditAction,
    AuditLog,
    Organization,
    OrgStatus,
    Role,
    User,
)

DEMO_PASSWORD = "onboarding-demo"

# (name, status, days waiting, sector, country)
PARTNERS = [
    ("Sahel Water Collective", OrgStatus.EMAIL_PENDING, 0, "Water", "Mali"),
    ("Lakeside Literacy Trust", OrgStatus.A_PENDING, 1, "Education", "Uganda"),
    ("Green Hills Clinics", OrgStatus.B_PENDING, 2, "Health", "Rwanda"),
    ("Coastal Fisheries Alliance", OrgStatus.C_PENDING, 2, "Livelihoods", "Kenya"),
    ("Hope Maternal Care", OrgStatus.UNDER_REVIEW_GM, 1, "Health", "Ghana"),
    ("Bright Futures Schools", OrgStatus.UNDER_REVIEW_GM, 4, "Education", "Nigeria"),
    ("Clean Wells Initiative", OrgStatus.UNDER_REVIEW_GM, 9, "Water", "Niger"),
    ("Harvest Cooperative", OrgStatus.UNDER_REVIEW_GM, 16, None, "Malawi"),
    ("Mountain Health Network", OrgStatus.UNDER_REVIEW_COO, 3, "Health", "Ethiopia"),
    ("Delta Youth Works", OrgStatus.UNDER_REVIEW_COO, 8, "Livelihoods", "Nigeria"),
    ("Riverbank Learning Centre", OrgStatus.CHANGES_REQUESTED, 5, "Education", "Zambia"),
    ("Savanna Solar Project", OrgStatus.REJECTED, 20, "Energy", "Tanzania"),
    ("Unity Community Health", OrgStatus.FINALIZED, 30, "Health", "Senegal"),
]

STAFF = [
    ("admin@onboarding.demo", "Ada", "Admin", Role.ADMIN),
    ("gm@onboarding.demo", "Grace", "Mensah", Role.GRANTS_MANAGER),
    ("coo@onboarding.demo", "Omar", "Diallo", Role.CHIEF_OPERATIONS_OFFICER),
]


def slugify(name: str) -> str:
    return "".join(c if c.isalnum() else "-" for c in name.lower()).strip("-")


async def seed_database():
    """Main seeding function."""

    await init_db()

    async with get_session_context() as session:
        print("🌱 Starting database seed...")

        # Check if data already exists
        result = await session.execute(select(func.count()).select_from(Organization))
        count = result.scalar()
        if count and count > 0:
            print("⚠️  Database already has data. Clearing existing data...")
            await clear_database(session)

        now = datetime.now(timezone.utc)
        password_hash = hash_password(DEMO_PASSWORD)

        # =================================================================
        # CREATE STAFF
        # =================================================================
        print("\n👥 Creating staff users...")

        for email, first_name, last_name, role in STAFF:
            session.add(
                User(
                    email=email,
                    first_name=first_name,
                    last_name=last_name,
                    password_hash=password_hash,
                    role=role,
                    email_verified_at=now,
                )
            )
            print(f"   ✓ {first_name} {last_name} ({role.value})")

        # =================================================================
        # CREATE PARTNER ORGANIZATIONS
        # =================================================================
        print("\n📦 Creating partner organizations...")

        audit_entries = 0
        for name, status, days, sector, country in PARTNERS:
            created_at = now - timedelta(days=days)
            email = f"lead@{slugify(name)}.org"

            org = Organization(
                name=name,
                status=status,
                owner_email=email,
                owner_first_name="Partner",
                owner_last_name="Lead",
                sector=sector,
                country=country,
                document_count=0 if status == OrgStatus.EMAIL_PENDING else 3,
                created_at=created_at,
                updated_at=created_at,
            )
            session.add(org)
            await session.flush()

            user = User(
                email=email,
                first_name="Partner",
                last_name="Lead",
                password_hash=password_hash,
                role=Role.PARTNER_USER,
                organization_id=org.id,
                email_verified_at=None if status == OrgStatus.EMAIL_PENDING else created_at,
                created_at=created_at,
            )
            session.add(user)
            await session.flush()

            session.add(
                AuditLog(
                    organization_id=org.id,
                    actor_user_id=user.id,
                    actor_role=Role.PARTNER_USER.value,
                    action=AuditAction.REGISTER,
                    previous_status=None,
                    new_status=OrgStatus.EMAIL_PENDING.value,
                    details={"seeded": True},
                    created_at=created_at,
                )
            )
            audit_entries += 1

            if status != OrgStatus.EMAIL_PENDING:
                session.add(
                    AuditLog(
                        organization_id=org.id,
                        actor_user_id=None,
                        actor_role=None,
                        action=AuditAction.STATUS_CHANGE,
                        previous_status=OrgStatus.EMAIL_PENDING.value,
                        new_status=status.value,
                        details={"seeded": True},
                        created_at=created_at,
                    )
                )
                audit_entries += 1

            print(f"   ✓ {name} [{status.value}, {days}d] -> {email}")

        # =================================================================
        # COMMIT ALL CHANGES
        # =================================================================
        await session.commit()

    await close_db()

    gm_waiting = sum(1 for p in PARTNERS if p[1] == OrgStatus.UNDER_REVIEW_GM)
    coo_waiting = sum(1 for p in PARTNERS if p[1] == OrgStatus.UNDER_REVIEW_COO)

    print("\n" + "=" * 60)
    print("✅ DATABASE SEEDED SUCCESSFULLY!")
    print("=" * 60)
    print(f"""
📊 Summary:
   • {len(STAFF)} staff users: Admin, Grants Manager, COO
   • {len(PARTNERS)} partner organizations, one partner user each
   • {audit_entries} audit log entries
   • Grants Manager queue: {gm_waiting} waiting
   • COO queue: {coo_waiting} waiting

🧪 What you can test:
   1. Log in as gm@onboarding.demo and open GET /api/v1/queue/gm
   2. Approve an organization and watch it move to the COO queue
   3. Log in as a partner and call POST /api/v1/session/access
   4. Restart Riverbank Learning Centre after changes were requested

🔑 Password for every account: {DEMO_PASSWORD}
""")


async def clear_database(session: AsyncSession):
    """Clear all data from the database (in correct order for FK constraints)."""
    tables = [
        "audit_log",
        "notification_log",
        "users",
        "organizations",
    ]

    for table in tables:
        try:
            await session.execute(text(f"DELETE FROM {table}"))
        except SQLAlchemyError as e:
            print(f"   Warning: Could not clear {table}: {e}")

    await session.commit()
    print("   ✓ Cleared existing data")


if __name__ == "__main__":
    asyncio.run(seed_database())
