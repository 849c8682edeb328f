#!/usr/bin/env python3
"""
Fill payment_period / period_end_date on payments recorded before billing
periods existed.

Usage:
    python -m clinic.scripts.backfill_payment_periods
    python -m clinic.scripts.backfill_payment_periods --period quarterly --end-date 2024-12-31
    python -m clinic.scripts.backfill_payment_periods --dry-run
"""
import argparse
import sys
from datetime import date
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.config.database import SessionLocal
from clinic.models.payment import Payment, PaymentPeriod
from clinic.services.payments.period_calculator import end_of_day
from clinic.utils.my_logging import setup_logging

DRY_RUN_PREVIEW = 5


def find_payments_to_backfill(db: Session) -> List[Payment]:
    return db.query(Payment).filter(
        Payment.is_deleted.is_(False),
        or_(Payment.payment_period.is_(None), Payment.period_end_date.is_(None)),
    ).order_by(Payment.payment_date.asc()).all()


def backfill_payment_periods(
        db: Session,
        period: PaymentPeriod,
        end_date: date,
        dry_run: bool = False
) -> int:
    """Returns the number of payments that were (or would be) updated."""
    period_end = end_of_day(end_date)
    payments = find_payments_to_backfill(db)

    print(f"Period: {period.value}")
    print(f"Period end: {period_end.date().isoformat()}")
    print(f"Dry run: {'yes (nothing is written)' if dry_run else 'no'}")
    print(f"\n{len(payments)} payments need a billing period.")

    if not payments:
        return 0

    if dry_run:
        print(f"\nFirst {min(DRY_RUN_PREVIEW, len(payments))} affected payments:")
        for payment in payments[:DRY_RUN_PREVIEW]:
            print(
                f"  - {payment.id}: {payment.payment_amount} on {payment.payment_date.date().isoformat()} "
                f"(period: {payment.payment_period or '-'}, "
                f"ends: {payment.period_end_date.date().isoformat() if payment.period_end_date else '-'})"
            )
        return len(payments)

    for payment in payments:
        payment.payment_period = period.value
        payment.period_end_date = period_end
    db.commit()

    print(f"\nUpdated {len(payments)} payments.")
    return len(payments)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Backfill billing periods on old payments")
    parser.add_argument(
        "--period",
        type=PaymentPeriod,
        choices=list(PaymentPeriod),
        default=PaymentPeriod.MONTHLY,
        help="Period to assign (default: monthly)",
    )
    parser.add_argument(
        "--end-date",
        type=date.fromisoformat,
        default=date(2025, 4, 30),
        help="Period end as YYYY-MM-DD, stored as end of that day (default: 2025-04-30)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only list the affected payments",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(verbose=False)
    db: Session = SessionLocal()

    try:
        return backfill_payment_periods(db, args.period, args.end_date, args.dry_run)
    except SQLAlchemyError as e:
        db.rollback()
        print(f"\nError backfilling payment periods: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
