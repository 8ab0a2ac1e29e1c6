"""
Sync national public holidays into additional_holidays.

Usage:
    python scripts/sync_holidays.py [--years 2025 2026] [--country KR]
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from dotenv import load_dotenv

load_dotenv()

from ims.db import SessionLocal
from ims.logging import setup_logging
from ims.services.holidays import HolidayClient, default_sync_years, sync_national_holidays


def main():
    parser = argparse.ArgumentParser(description="Sync national holidays from the public holiday API")
    parser.add_argument("--years", type=int, nargs="*", help="Years to sync (default: current and next year)")
    parser.add_argument("--country", default=None, help="ISO country code (default: HOLIDAY_COUNTRY)")
    args = parser.parse_args()

    setup_logging()
    years = args.years or default_sync_years()
    session = SessionLocal()
    try:
        inserted = sync_national_holidays(session, years=years, client=HolidayClient(country=args.country))
        print(f"Synced {inserted} national holidays for {', '.join(str(y) for y in years)}")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
