#!/usr/bin/env python
"""Seed a demo tenant with customers, referral codes and stamp cards for local development."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from random import choice, randint, random, sample

# Add project root and backend app to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "apps" / "backend"))

from dotenv import load_dotenv

load_dotenv()

from faker import Faker
from sqlalchemy import select

from app.core.security import hash_password
from app.db.session import sync_session_factory
from app.models import Customer, CustomerStamp, ReferralCode, Tenant, User

fake = Faker()

SOURCES = ["booking", "contact", "subscriber"]
TAGS = ["vip", "regular", "newsletter", "walk-in", "instagram"]
DEMO_SLUG = "demo-salon"


def seed_tenant(session) -> Tenant:
    tenant = session.execute(
        select(Tenant).where(Tenant.slug == DEMO_SLUG)
    ).scalar_one_or_none()
    if tenant is not None:
        return tenant

    tenant = Tenant(
        name="Demo Salon",
        slug=DEMO_SLUG,
        display_name="Demo Salon",
        review_url="https://example.com/reviews/demo-salon",
        is_active=True,
    )
    session.add(tenant)
    session.flush()

    session.add(
        User(
            tenant_id=tenant.id,
            email="owner@folio.local",
            hashed_password=hash_password("password123"),
        )
    )
    return tenant


def seed_customers(session, tenant: Tenant, count: int) -> list[Customer]:
    now = datetime.now(timezone.utc)
    customers = []
    for _ in range(count):
        first_seen = now - timedelta(days=randint(0, 400))
        last_seen = first_seen + timedelta(days=randint(0, (now - first_seen).days))
        customer = Customer(
            tenant_id=tenant.id,
            name=fake.name(),
            email=fake.unique.email() if random() < 0.85 else None,
            phone=fake.phone_number()[:50] if random() < 0.5 else None,
            line_user_id=f"U{fake.hexify('^' * 32)}" if random() < 0.3 else None,
            total_bookings=choice([0, 0, 1, 1, 2, 3, 4, 6, 10]),
            total_messages=randint(0, 8),
            tags=sample(TAGS, randint(0, 2)),
            source=",".join(sample(SOURCES, randint(1, 2))),
            first_seen_at=first_seen,
            last_seen_at=last_seen,
        )
        customers.append(customer)
    session.add_all(customers)
    session.flush()
    return customers


def seed_extras(session, tenant: Tenant, customers: list[Customer]) -> None:
    for customer in sample(customers, len(customers) // 5):
        session.add(
            ReferralCode(
                tenant_id=tenant.id,
                customer_id=customer.id,
                code=fake.unique.bothify("REF-????-####").upper(),
                referral_count=randint(0, 4),
            )
        )
    for customer in sample(customers, len(customers) // 3):
        session.add(CustomerStamp(customer_id=customer.id, current_stamps=randint(0, 9)))


def main(count: int) -> None:
    session = sync_session_factory()
    try:
        tenant = seed_tenant(session)
        customers = seed_customers(session, tenant, count)
        seed_extras(session, tenant, customers)
        session.commit()
        print(f"Seeded tenant {tenant.slug} ({tenant.id}) with {len(customers)} customers.")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Seed demo customers")
    parser.add_argument("--count", type=int, default=200, help="Customers to create")
    args = parser.parse_args()

    main(args.count)
