#!/usr/bin/env python3
"""
Re-derive appointment_date of every calendar appointment from its week,
day_index and time_index.

Usage:
    python -m clinic.scripts.fix_appointment_dates [--dry-run]
"""
import argparse
import sys
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic.config.database import SessionLocal
from clinic.models.calendar_appointment import CalendarAppointment
from clinic.services.scheduling.week_grid import day_in_week, slot_datetime
from clinic.utils.my_logging import setup_logging

DRY_RUN_PREVIEW = 5


def expected_appointment_date(appointment: CalendarAppointment) -> datetime:
    day = day_in_week(appointment.appointment_date.date(), appointment.day_index)
    return slot_datetime(day, appointment.time_index)


def find_misplaced(db: Session) -> List[Tuple[CalendarAppointment, datetime]]:
    misplaced = []
    appointments = db.query(CalendarAppointment).filter(
        CalendarAppointment.day_index.isnot(None),
        CalendarAppointment.time_index.isnot(None),
    ).all()
    for appointment in appointments:
        expected = expected_appointment_date(appointment)
        if appointment.appointment_date != expected:
            misplaced.append((appointment, expected))
    return misplaced


def fix_appointment_dates(db: Session, dry_run: bool = False) -> int:
    misplaced = find_misplaced(db)
    print(f"{len(misplaced)} appointments have a date that does not match their slot.")

    if not misplaced:
        return 0

    if dry_run:
        print(f"\nFirst {min(DRY_RUN_PREVIEW, len(misplaced))}:")
        for appointment, expected in misplaced[:DRY_RUN_PREVIEW]:
            print(
                f"  - {appointment.id} (day {appointment.day_index}, slot {appointment.time_index}): "
                f"{appointment.appointment_date.isoformat()} -> {expected.isoformat()}"
            )
        return len(misplaced)

    for appointment, expected in misplaced:
        appointment.appointment_date = expected
    db.commit()

    print(f"\nFixed {len(misplaced)} appointments.")
    return len(misplaced)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Align appointment dates with their calendar slot")
    parser.add_argument("--dry-run", action="store_true", help="Only list what would change")
    args = parser.parse_args(argv)

    setup_logging(verbose=False)
    db: Session = SessionLocal()

    try:
        return fix_appointment_dates(db, dry_run=args.dry_run)
    except SQLAlchemyError as e:
        db.rollback()
        print(f"\nError fixing appointment dates: {e}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
