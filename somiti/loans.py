"""
Loan Module

Handles loan issuance (flat dividend amortization), edits to loan terms,
installment collection and closing a member's loans. The read-side views
are today's due installments, overdue installments across all loans, and a
member's full schedule.

Schedules are never stored. Every view rebuilds them from the loan's start
date, cadence and installment count plus its collection list.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional
from enum import Enum
import logging
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .arrears import ArrearsReport, PaymentMatching, evaluate
from .cadence import InstallmentType, require_installment_type
from .dates import DateLike, parse_date
from .errors import NotFoundError, ValidationError
from .members import Member, MemberManager
from .money import ZERO, floor_at_zero, format_amount, round_money, to_decimal, total
from .notifications import NotificationService, render_message
from .schedule import last_due_date


logger = logging.getLogger("somiti.loans")


class DividendType(Enum):
    """How the dividend (the cooperative's charge) is expressed"""
    PERCENT = "%"
    FLAT = "flat"

    @classmethod
    def parse(cls, value) -> 'DividendType':
        """Only "%" (or "percent") means a rate; anything else is a flat amount"""
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value.strip().lower() in ("%", "percent"):
            return cls.PERCENT
        return cls.FLAT


@dataclass
class Collection:
    """One installment payment recorded against a loan"""
    amount: Decimal
    collection_date: date
    description: Optional[str] = None
    send_sms: bool = False
    installment_number: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'amount': str(self.amount),
            'collection_date': self.collection_date.isoformat(),
            'description': self.description,
            'send_sms': self.send_sms,
            'installment_number': self.installment_number,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Collection':
        return cls(
            amount=Decimal(data['amount']),
            collection_date=date.fromisoformat(data['collection_date']),
            description=data.get('description'),
            send_sms=data.get('send_sms', False),
            installment_number=data.get('installment_number'),
        )


@dataclass
class Loan(StorageRecord):
    """A member's loan with its terms and collection history"""
    member_id: str
    member_name: str
    start_date: date
    installment_type: str
    installment_count: int
    installment_amount: Decimal
    principal: Decimal
    dividend: Decimal
    dividend_type: DividendType
    total_payable: Decimal             # principal + dividend
    total_loan: Decimal                # outstanding, floored at zero
    description: Optional[str] = None
    send_sms: bool = False
    collections: List[Collection] = field(default_factory=list)

    @property
    def total_paid(self) -> Decimal:
        return total(c.amount for c in self.collections)

    @property
    def is_paid_off(self) -> bool:
        return self.total_loan <= ZERO

    def expected_balance(self) -> Decimal:
        """Outstanding balance recomputed from the collection list"""
        return floor_at_zero(self.total_payable - self.total_paid)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['start_date'] = self.start_date.isoformat()
        result['dividend_type'] = self.dividend_type.value
        result['collections'] = [c.to_dict() for c in self.collections]
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        data = cls.parse_timestamps(data)
        data['start_date'] = date.fromisoformat(data['start_date'])
        data['dividend_type'] = DividendType(data['dividend_type'])
        data['collections'] = [Collection.from_dict(c) for c in data.get('collections', [])]
        for key in ('installment_amount', 'principal', 'dividend', 'total_payable', 'total_loan'):
            data[key] = Decimal(data[key])
        return cls(**data)


@dataclass
class LoanTotals:
    total_loan: Decimal
    installment_amount: Decimal


@dataclass
class LoanInstallment:
    """One row of an installment view, joined with loan and member details"""
    loan_id: str
    member_id: str
    member_name: Optional[str]
    mobile_number: Optional[str]
    installment_no: int
    installment_amount: Decimal
    due_date: date
    installment_type: str
    total_loan: Decimal
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'loan_id': self.loan_id,
            'member_id': self.member_id,
            'member_name': self.member_name,
            'mobile_number': self.mobile_number,
            'installment_no': self.installment_no,
            'installment_amount': format_amount(self.installment_amount),
            'due_date': self.due_date.isoformat(),
            'installment_type': self.installment_type,
            'total_loan': format_amount(self.total_loan),
            'status': self.status,
        }


DueInstallment = LoanInstallment
OverdueInstallment = LoanInstallment
MemberInstallment = LoanInstallment


def calculate_loan_totals(principal, dividend, dividend_type, installment_count: int) -> LoanTotals:
    """
    Flat amortization: the whole dividend is added up front and the total is
    spread evenly over the installments.

    A percentage dividend is ``principal * dividend / 100``; any other
    dividend type is an absolute amount. Zero installments give an
    installment amount of zero rather than an error.
    """
    principal = to_decimal(principal, "principal")
    dividend = to_decimal(dividend if dividend not in (None, "") else 0, "dividend")

    if DividendType.parse(dividend_type) is DividendType.PERCENT:
        total_loan = principal + principal * dividend / Decimal("100")
    else:
        total_loan = principal + dividend

    installment_amount = total_loan / Decimal(installment_count) if installment_count else ZERO
    return LoanTotals(
        total_loan=round_money(total_loan),
        installment_amount=round_money(installment_amount),
    )


def apply_collection(
    loan: Loan,
    amount,
    collection_date: date,
    description: Optional[str] = None,
    send_sms: bool = False,
    installment_number: Optional[int] = None
) -> Loan:
    """
    Return a copy of ``loan`` with the collection appended and the
    outstanding balance reduced by ``amount``, never below zero.
    """
    amount = round_money(to_decimal(amount, "collection amount"))
    if amount <= ZERO:
        raise ValidationError("Collection amount must be positive")
    if installment_number is not None and not 1 <= installment_number <= loan.installment_count:
        raise ValidationError(
            f"Installment number must be between 1 and {loan.installment_count}"
        )

    collection = Collection(
        amount=amount,
        collection_date=collection_date,
        description=description,
        send_sms=send_sms,
        installment_number=installment_number,
    )
    return replace(
        loan,
        collections=loan.collections + [collection],
        total_loan=floor_at_zero(loan.total_loan - amount),
        updated_at=datetime.now(timezone.utc),
    )


_EDITABLE_LOAN_FIELDS = {
    "start_date", "installment_type", "installment_count",
    "principal", "dividend", "dividend_type", "description", "send_sms",
}


def _parse_principal(principal) -> Decimal:
    if principal is None or principal == "":
        raise ValidationError("principal is required")
    amount = round_money(to_decimal(principal, "principal"))
    if amount <= ZERO:
        raise ValidationError("principal must be positive")
    return amount


def _parse_count(installment_count) -> int:
    if installment_count is None or installment_count == "":
        raise ValidationError("installment_count is required")
    count = to_decimal(installment_count, "installment_count")
    if count < 0 or count != count.to_integral_value():
        raise ValidationError("installment_count must be a non-negative whole number")
    return int(count)


def _parse_dividend(dividend) -> Decimal:
    amount = round_money(to_decimal(dividend if dividend not in (None, "") else 0, "dividend"))
    if amount < ZERO:
        raise ValidationError("dividend cannot be negative")
    return amount


def _check_schedule_range(start_date: date, cadence: InstallmentType, count: int) -> None:
    if last_due_date(start_date, cadence, count) is None:
        raise ValidationError(
            f"{count} {cadence.value} installments from {start_date.isoformat()} "
            "run past the supported date range"
        )


class LoanManager:
    """
    Issues loans, records collections and builds installment views
    """

    def __init__(
        self,
        storage: StorageInterface,
        member_manager: MemberManager,
        audit_trail: AuditTrail,
        notifier: Optional[NotificationService] = None,
        matching: PaymentMatching = PaymentMatching.DATE
    ):
        self.storage = storage
        self.member_manager = member_manager
        self.audit_trail = audit_trail
        self.notifier = notifier
        self.matching = matching

        self.loans_table = "loans"

    def issue_loan(
        self,
        member_id: str,
        principal,
        dividend,
        dividend_type,
        installment_type: str,
        installment_count,
        start_date: Optional[DateLike] = None,
        description: Optional[str] = None,
        send_sms: bool = False
    ) -> Loan:
        """
        Issue a new loan to a member

        Args:
            member_id: Cooperative member ID of the borrower
            principal: Amount lent
            dividend: Charge, a percentage or flat amount per ``dividend_type``
            dividend_type: "%" for a percentage, anything else for a flat amount
            installment_type: Cadence label from the cadence table
            installment_count: Number of installments
            start_date: Issue date and first due date (defaults to today, local)
            description: Free-text note
            send_sms: Notify the member by SMS after the loan is saved

        Returns:
            The saved Loan

        Raises:
            NotFoundError: member does not exist
            InvalidCadenceError: installment type is not in the cadence table
            ValidationError: principal or installment count missing or invalid,
                or a last due date past the supported date range
        """
        principal_amount = _parse_principal(principal)
        count = _parse_count(installment_count)
        cadence = require_installment_type(installment_type)
        loan_start = parse_date(start_date)
        _check_schedule_range(loan_start, cadence, count)
        member = self.member_manager.get_member(member_id)

        dividend_amount = _parse_dividend(dividend)
        totals = calculate_loan_totals(principal_amount, dividend_amount, dividend_type, count)
        now = datetime.now(timezone.utc)
        loan = Loan(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            member_id=member.member_id,
            member_name=member.name,
            start_date=loan_start,
            installment_type=cadence.value,
            installment_count=count,
            installment_amount=totals.installment_amount,
            principal=principal_amount,
            dividend=dividend_amount,
            dividend_type=DividendType.parse(dividend_type),
            total_payable=totals.total_loan,
            total_loan=totals.total_loan,
            description=description,
            send_sms=send_sms,
        )
        self._save_loan(loan)

        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_ISSUED,
            entity_type="loan",
            entity_id=loan.id,
            metadata={
                "member_id": loan.member_id,
                "principal": loan.principal,
                "total_loan": loan.total_loan,
                "installment_type": loan.installment_type,
                "installment_count": loan.installment_count,
                "start_date": loan.start_date,
            }
        )
        logger.info("Issued loan %s to member %s", loan.id, loan.member_id,
                    extra={"action": "loan_issued", "resource": loan.id})

        if send_sms:
            self._notify(member, "loan_issued", loan, amount=format_amount(loan.total_loan))

        return loan

    def record_collection(
        self,
        loan_id: str,
        amount,
        collection_date: Optional[DateLike] = None,
        description: Optional[str] = None,
        send_sms: bool = False,
        installment_number: Optional[int] = None
    ) -> Loan:
        """
        Record an installment payment and reduce the outstanding balance

        Raises:
            NotFoundError: loan does not exist
            ValidationError: amount missing, not positive, or installment
                number outside the schedule
        """
        loan = self.get_loan(loan_id)
        was_paid_off = loan.is_paid_off
        updated = apply_collection(
            loan,
            amount,
            parse_date(collection_date),
            description=description,
            send_sms=send_sms,
            installment_number=installment_number,
        )
        self._save_loan(updated)

        collection = updated.collections[-1]
        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_COLLECTION_RECORDED,
            entity_type="loan",
            entity_id=updated.id,
            metadata={
                "amount": collection.amount,
                "collection_date": collection.collection_date,
                "installment_number": collection.installment_number,
                "total_loan": updated.total_loan,
            }
        )
        if updated.is_paid_off and not was_paid_off:
            self.audit_trail.log_event(
                event_type=AuditEventType.LOAN_PAID_OFF,
                entity_type="loan",
                entity_id=updated.id,
                metadata={"total_paid": updated.total_paid}
            )

        if send_sms:
            member = self.member_manager.find_member(updated.member_id)
            if member:
                self._notify(member, "loan_collection", updated, amount=format_amount(collection.amount))

        return updated

    def update_loan(self, loan_id: str, **changes: Any) -> Loan:
        """
        Edit a loan's terms and recompute its totals

        The schedule fields (start date, installment type and count) and the
        amount fields (principal, dividend, dividend type) are validated as
        at issuance. The payable total and installment amount are
        recalculated, and the outstanding balance becomes the new payable
        total less everything already collected, floored at zero.

        Raises:
            NotFoundError: loan does not exist
            ValidationError: unknown field, invalid terms, or a collection
                tagged with an installment number the new count no longer has
            InvalidCadenceError: installment type is not in the cadence table
        """
        unknown = set(changes) - _EDITABLE_LOAN_FIELDS
        if unknown:
            raise ValidationError(f"Unknown loan fields: {', '.join(sorted(unknown))}")

        loan = self.get_loan(loan_id)

        principal_amount = _parse_principal(changes.get("principal", loan.principal))
        count = _parse_count(changes.get("installment_count", loan.installment_count))
        cadence = require_installment_type(changes.get("installment_type", loan.installment_type))
        loan_start = parse_date(changes["start_date"]) if changes.get("start_date") else loan.start_date
        _check_schedule_range(loan_start, cadence, count)
        dividend_amount = _parse_dividend(changes.get("dividend", loan.dividend))
        dividend_type = DividendType.parse(changes.get("dividend_type", loan.dividend_type))

        tagged = [c.installment_number for c in loan.collections if c.installment_number]
        if tagged and max(tagged) > count:
            raise ValidationError(
                f"Collections already recorded against installment {max(tagged)}; "
                f"installment_count cannot drop to {count}"
            )

        totals = calculate_loan_totals(principal_amount, dividend_amount, dividend_type, count)
        updated = replace(
            loan,
            start_date=loan_start,
            installment_type=cadence.value,
            installment_count=count,
            installment_amount=totals.installment_amount,
            principal=principal_amount,
            dividend=dividend_amount,
            dividend_type=dividend_type,
            total_payable=totals.total_loan,
            total_loan=floor_at_zero(totals.total_loan - loan.total_paid),
            description=changes.get("description", loan.description),
            send_sms=bool(changes.get("send_sms", loan.send_sms)),
            updated_at=datetime.now(timezone.utc),
        )
        self._save_loan(updated)

        self.audit_trail.log_event(
            event_type=AuditEventType.LOAN_UPDATED,
            entity_type="loan",
            entity_id=updated.id,
            metadata={
                "fields": sorted(changes),
                "total_payable": updated.total_payable,
                "total_loan": updated.total_loan,
            }
        )
        logger.info("Updated loan %s (%s)", updated.id, ", ".join(sorted(changes)),
                    extra={"action": "loan_updated", "resource": updated.id})
        return updated

    def close_member_loans(self, member_id: str) -> List[Loan]:
        """
        Close a member's loans by removing them from the ledger

        Each removed loan is audited with its outstanding balance at the time
        of closing, so the audit trail keeps the record the store drops.

        Returns:
            The loans that were closed, empty when the member had none

        Raises:
            NotFoundError: member does not exist
        """
        member = self.member_manager.get_member(member_id)
        closed = []
        for loan in self.list_loans(member.member_id):
            if not self.storage.delete(self.loans_table, loan.id):
                continue
            self.audit_trail.log_event(
                event_type=AuditEventType.LOAN_CLOSED,
                entity_type="loan",
                entity_id=loan.id,
                metadata={
                    "member_id": loan.member_id,
                    "total_payable": loan.total_payable,
                    "total_paid": loan.total_paid,
                    "total_loan": loan.total_loan,
                }
            )
            closed.append(loan)

        logger.info("Closed %d loan(s) of member %s", len(closed), member.member_id,
                    extra={"action": "loans_closed", "resource": member.member_id})
        return closed

    def get_loan(self, loan_id: str) -> Loan:
        """
        Load a loan, raising NotFoundError

        A stored balance that disagrees with the collection list is replaced
        by the recomputed value.
        """
        data = self.storage.load(self.loans_table, loan_id)
        if not data:
            raise NotFoundError("loan", loan_id)
        return self._reconcile(Loan.from_dict(data))

    def list_loans(self, member_id: Optional[str] = None) -> List[Loan]:
        """All loans (or one member's), newest start date first"""
        if member_id:
            rows = self.storage.find(self.loans_table, {"member_id": member_id})
        else:
            rows = self.storage.load_all(self.loans_table)
        loans = [self._reconcile(Loan.from_dict(data)) for data in rows]
        loans.sort(key=lambda loan: loan.start_date, reverse=True)
        return loans

    def evaluate_loan(self, loan_id: str, as_of_date: Optional[DateLike] = None) -> ArrearsReport:
        return evaluate(self.get_loan(loan_id), parse_date(as_of_date), self.matching)

    def get_due_today(self, as_of_date: Optional[DateLike] = None) -> List[DueInstallment]:
        """
        Unpaid installments falling due on ``as_of_date`` across all loans

        Loans whose cadence is not in the cadence table have no schedule and
        are left out.
        """
        as_of = parse_date(as_of_date)
        rows = []
        for loan, member, report in self._evaluate_all(as_of):
            for installment in report.due_today:
                rows.append(self._row(loan, member, installment))
        return rows

    def get_overdue(self, as_of_date: Optional[DateLike] = None) -> List[OverdueInstallment]:
        """
        Unpaid installments due on or before ``as_of_date`` across all loans

        Loans whose cadence is not in the cadence table are left out.
        """
        as_of = parse_date(as_of_date)
        rows = []
        for loan, member, report in self._evaluate_all(as_of):
            for installment in report.overdue:
                rows.append(self._row(loan, member, installment))
        return rows

    def get_member_installments(self, member_id: str,
                                as_of_date: Optional[DateLike] = None) -> List[MemberInstallment]:
        """
        Full schedule, past and future, for every loan of one member

        Each row carries its status as of ``as_of_date`` (default today):
        paid, due today, overdue or upcoming.
        """
        as_of = parse_date(as_of_date)
        member = self.member_manager.find_member(member_id)
        rows = []
        for loan in self.list_loans(member_id):
            for installment in evaluate(loan, as_of, self.matching).schedule:
                rows.append(self._row(loan, member, installment))
        return rows

    def _evaluate_all(self, as_of: date):
        members = {m.member_id: m for m in self.member_manager.list_members()}
        for loan in self.list_loans():
            report = evaluate(loan, as_of, self.matching)
            if not report.has_schedule:
                if loan.installment_count and last_due_date(
                        loan.start_date, loan.installment_type, loan.installment_count) is None:
                    logger.warning("Loan %s schedule runs past the supported date range, skipped",
                                   loan.id, extra={"action": "loan_skipped", "resource": loan.id})
                else:
                    logger.debug("Loan %s has no schedule (installment type %r), skipped",
                                 loan.id, loan.installment_type)
                continue
            yield loan, members.get(loan.member_id), report

    @staticmethod
    def _row(loan: Loan, member: Optional[Member], installment) -> LoanInstallment:
        return LoanInstallment(
            loan_id=loan.id,
            member_id=loan.member_id,
            member_name=member.name if member else loan.member_name,
            mobile_number=member.mobile_number if member else None,
            installment_no=installment.sequence_number,
            installment_amount=loan.installment_amount,
            due_date=installment.due_date,
            installment_type=loan.installment_type,
            total_loan=loan.total_loan,
            status=installment.status.value,
        )

    def _reconcile(self, loan: Loan) -> Loan:
        expected = loan.expected_balance()
        if loan.total_loan != expected:
            logger.warning(
                "Loan %s stored balance %s disagrees with collections (%s); using recomputed value",
                loan.id, loan.total_loan, expected,
                extra={"action": "loan_balance_reconciled", "resource": loan.id}
            )
            loan = replace(loan, total_loan=expected)
        return loan

    def _save_loan(self, loan: Loan) -> None:
        self.storage.save(self.loans_table, loan.id, loan.to_dict())

    def _notify(self, member: Member, template: str, loan: Loan, **values) -> None:
        if not self.notifier:
            return
        message = render_message(template, name=member.name, **values)
        self.notifier.notify(
            member.mobile_number,
            message,
            context={"entity_type": "loan", "entity_id": loan.id, "template": template}
        )
