"""
Script: set_agency_seats.py
Set the plan and seat count of an agency directly in the database.
Usage:
    python scripts/set_agency_seats.py <agency_id> --plan professional --seats 15

Useful for support cases where the Stripe webhook could not be delivered.
Run from repository root.
"""

import argparse
import os
import sys

# Ensure project root is importable
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from src.agency_crm import models
from src.agency_crm.core.database import SessionLocal
from src.agency_crm.services.seat_limit import get_seat_usage


def set_seats(agency_id: str, plan: str = None, seats: int = None) -> bool:
    db = SessionLocal()
    try:
        agency = db.query(models.Agency).filter(models.Agency.id == agency_id).first()
        if not agency:
            print(f"Agency {agency_id} not found. Aborting.")
            return False

        print(f"Found agency id={agency.id} name={agency.name} plan={agency.plan} seats={agency.seats}")
        if plan:
            agency.plan = plan
        if seats is not None:
            agency.seats = seats
        db.commit()
        db.refresh(agency)

        usage = get_seat_usage(db, agency)
        print(f"Updated agency {agency.id}: plan={agency.plan} seats={agency.seats}")
        print(usage.usage_details(0))
        return True
    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    p = argparse.ArgumentParser()
    p.add_argument("agency_id", help="Agency to update")
    p.add_argument("--plan", default=None, help="Plan name (free, starter, professional, enterprise)")
    p.add_argument("--seats", type=int, default=None, help="Seat count")
    args = p.parse_args()
    if args.seats is not None and args.seats < 1:
        p.error("--seats must be at least 1")
    sys.exit(0 if set_seats(args.agency_id, args.plan, args.seats) else 1)
