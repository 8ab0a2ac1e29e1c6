"""
Seed the local database with default accounts and a few sample contracts.

Usage:
  python scripts/seed_test_data.py [--skip-contracts]

This script is idempotent: users are matched by username and sample contracts
by (customer_name, project_title), so running it twice creates nothing new.
"""
import argparse
import os
import sys
from datetime import date

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from dotenv import load_dotenv

load_dotenv()

from ims.db import SessionLocal, Base, engine
from ims.main import seed_default_users
from ims.models.models import Contract
from ims.schemas.contracts import ContractIn
from ims.services.contracts import create_contract


SAMPLE_CONTRACTS = [
    {
        "customer_name": "Korea Electronics",
        "project_title": "2025 Integrated Security Maintenance",
        "project_type": "maintenance",
        "start_date": date(2025, 1, 1),
        "end_date": date(2025, 12, 31),
        "notes": "Monthly on-site inspection",
        "items": [
            {
                "category": "HW",
                "item": "Firewall",
                "product": "AXGATE 1300S",
                "qty": 2,
                "cycle": "month",
                "scope": "HW replacement included",
                "company": "E-Tech Systems",
                "engineer": {"main": {"name": "Lee Bokhan", "phone": "010-0000-0000"}},
                "details": [{"content": "Power supply", "qty": "2", "unit": "ea"}],
            },
            {
                "category": "SW",
                "item": "SIEM",
                "product": "Log Analyzer 7",
                "qty": 1,
                "cycle": "quarter",
            },
        ],
    },
    {
        "customer_name": "Hanbit Finance",
        "project_title": "Network Infrastructure Build-out",
        "project_type": "construction",
        "start_date": date(2025, 3, 1),
        "end_date": date(2026, 2, 28),
        "items": [
            {"category": "HW", "item": "L3 Switch", "product": "C9300-48P", "qty": 4, "cycle": "half-year"},
        ],
    },
]


def main():
    parser = argparse.ArgumentParser(description="Seed IMS sample data")
    parser.add_argument("--skip-contracts", action="store_true", help="Only create the default accounts")
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)
    created_users = seed_default_users()
    print(f"Users created: {created_users}")

    if args.skip_contracts:
        return

    session = SessionLocal()
    try:
        created = 0
        for sample in SAMPLE_CONTRACTS:
            exists = (
                session.query(Contract)
                .filter(
                    Contract.customer_name == sample["customer_name"],
                    Contract.project_title == sample["project_title"],
                )
                .first()
            )
            if exists:
                continue
            create_contract(session, ContractIn.model_validate(sample), created_by="seed")
            created += 1
        print(f"Seed completed: {created} contracts created.")
    finally:
        session.close()


if __name__ == "__main__":
    main()
