"""
Installment Schedule Generator

Derives a loan's due dates from its start date, cadence and installment
count. Schedules are never persisted; they are rebuilt on every read.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import List, Optional
import logging

from .cadence import interval_days


logger = logging.getLogger("somiti.schedule")


class InstallmentStatus(Enum):
    """Status of a scheduled installment relative to an as-of date"""
    PAID = "paid"
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"
    UPCOMING = "upcoming"


@dataclass
class Installment:
    """One scheduled installment; ephemeral, recomputed per request"""
    sequence_number: int
    due_date: date
    status: InstallmentStatus = InstallmentStatus.UPCOMING

    def to_dict(self) -> dict:
        return {
            "installment_no": self.sequence_number,
            "due_date": self.due_date.isoformat(),
            "status": self.status.value,
        }


def generate_schedule(start_date: date, installment_type, installment_count: int) -> List[Installment]:
    """
    Generate the ordered installment schedule for a loan.

    Args:
        start_date: Local calendar date the loan was issued; the first
            installment falls due on this date
        installment_type: Cadence label or InstallmentType
        installment_count: Number of contracted installments

    Returns:
        ``installment_count`` installments with strictly increasing due
        dates, or an empty list when the cadence is unrecognized or the
        count is not positive. A schedule whose last due date would pass
        year 9999 is empty as well
    """
    interval = interval_days(installment_type)
    if interval == 0 or not installment_count or installment_count < 0:
        return []
    if last_due_date(start_date, installment_type, installment_count) is None:
        logger.warning("Schedule of %s %s installments from %s runs past the calendar, not generated",
                       installment_count, installment_type, start_date)
        return []

    return [
        Installment(sequence_number=i + 1, due_date=start_date + timedelta(days=i * interval))
        for i in range(int(installment_count))
    ]


def last_due_date(start_date: date, installment_type, installment_count: int) -> Optional[date]:
    """Due date of the final installment, or None when it falls outside ``date``'s range"""
    interval = interval_days(installment_type)
    if interval == 0 or not installment_count or installment_count < 1:
        return start_date
    try:
        return start_date + timedelta(days=(int(installment_count) - 1) * interval)
    except OverflowError:
        return None
