"""
Arrears Evaluator

Classifies a loan's scheduled installments against its recorded collections
as of a given date and exposes the outstanding balance.

By default an installment counts as paid when some collection was recorded on
its exact due date. That heuristic misreads a payment made a day late, and
two collections on one day still settle only the installment due that day.
Matching on an explicit installment number is available as an opt-in
(``PaymentMatching.INSTALLMENT_NUMBER``); it changes which installments show
as overdue, so it is not the default.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, List, Set

from .schedule import Installment, InstallmentStatus, generate_schedule

if TYPE_CHECKING:
    from .loans import Loan


class PaymentMatching(Enum):
    """How a recorded collection is tied to a scheduled installment"""
    DATE = "date"
    INSTALLMENT_NUMBER = "installment_number"


@dataclass
class ArrearsReport:
    """Result of evaluating one loan as of a date"""
    loan_id: str
    as_of_date: date
    schedule: List[Installment] = field(default_factory=list)
    due_today: List[Installment] = field(default_factory=list)
    overdue: List[Installment] = field(default_factory=list)
    paid: List[Installment] = field(default_factory=list)
    outstanding_balance: Decimal = Decimal("0.00")

    @property
    def has_schedule(self) -> bool:
        return bool(self.schedule)

    @property
    def overdue_count(self) -> int:
        return len(self.overdue)


def _paid_dates(loan: 'Loan') -> Set[date]:
    return {collection.collection_date for collection in loan.collections}


def _paid_numbers(loan: 'Loan') -> Set[int]:
    return {
        collection.installment_number
        for collection in loan.collections
        if collection.installment_number is not None
    }


def evaluate(loan: 'Loan', as_of_date: date,
             matching: PaymentMatching = PaymentMatching.DATE) -> ArrearsReport:
    """
    Evaluate a loan's schedule against its collections.

    Installments due on or before ``as_of_date`` are marked paid, due today
    or overdue; later ones stay upcoming. ``overdue`` holds every unpaid
    installment due on or before ``as_of_date``, so today's unpaid
    installment appears in both ``due_today`` and ``overdue``; its status is
    DUE_TODAY. The balance is the loan's stored ``total_loan``.

    Calling this twice with the same inputs yields equal reports; nothing on
    the loan is modified.
    """
    schedule = generate_schedule(loan.start_date, loan.installment_type, loan.installment_count)
    report = ArrearsReport(
        loan_id=loan.id,
        as_of_date=as_of_date,
        schedule=schedule,
        outstanding_balance=loan.total_loan,
    )

    if matching is PaymentMatching.INSTALLMENT_NUMBER:
        settled = _paid_numbers(loan)

        def is_paid(installment: Installment) -> bool:
            return installment.sequence_number in settled
    else:
        settled_dates = _paid_dates(loan)

        def is_paid(installment: Installment) -> bool:
            return installment.due_date in settled_dates

    for installment in schedule:
        # Schedule is in due-date order; everything after this point is upcoming
        if installment.due_date > as_of_date:
            break

        if is_paid(installment):
            installment.status = InstallmentStatus.PAID
            report.paid.append(installment)
            continue

        if installment.due_date == as_of_date:
            installment.status = InstallmentStatus.DUE_TODAY
            report.due_today.append(installment)
        else:
            installment.status = InstallmentStatus.OVERDUE
        report.overdue.append(installment)

    return report
