"""
Reporting Engine Module

Read-side summaries over loans and DPS settings: outstanding balances per
member, collections within a date range, and DPS progress per setting.
Reports are plain dictionaries ready for JSON; amounts are two-decimal
strings.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from .dates import DateLike, add_months, months_between, parse_date
from .deposits import DpsManager
from .errors import ValidationError
from .loans import LoanManager
from .members import MemberManager
from .money import ZERO, floor_at_zero, format_amount, total


logger = logging.getLogger("somiti.reporting")


class ReportingEngine:
    """Builds summary reports from the loan and DPS managers"""

    def __init__(self, member_manager: MemberManager, loan_manager: LoanManager,
                 dps_manager: DpsManager):
        self.member_manager = member_manager
        self.loan_manager = loan_manager
        self.dps_manager = dps_manager

    def loan_balances(self) -> Dict[str, Any]:
        """
        Loan totals per member

        Each row sums every loan the member holds: the amount payable
        (principal plus dividend), what has been collected, and what is
        still due.
        """
        members = {m.member_id: m for m in self.member_manager.list_members()}
        by_member: Dict[str, Dict[str, Decimal]] = {}
        for loan in self.loan_manager.list_loans():
            row = by_member.setdefault(loan.member_id, {
                "loan_count": 0, "total_payable": ZERO, "total_paid": ZERO, "total_due": ZERO,
            })
            row["loan_count"] += 1
            row["total_payable"] += loan.total_payable
            row["total_paid"] += loan.total_paid
            row["total_due"] += loan.total_loan

        rows = []
        for member_id in sorted(by_member):
            sums = by_member[member_id]
            member = members.get(member_id)
            rows.append({
                "member_id": member_id,
                "member_name": member.name if member else None,
                "mobile_number": member.mobile_number if member else None,
                "loan_count": sums["loan_count"],
                "total_payable": format_amount(sums["total_payable"]),
                "total_paid": format_amount(sums["total_paid"]),
                "total_due": format_amount(sums["total_due"]),
            })

        return {
            "members": rows,
            "totals": {
                "total_payable": format_amount(total(r["total_payable"] for r in by_member.values())),
                "total_paid": format_amount(total(r["total_paid"] for r in by_member.values())),
                "total_due": format_amount(total(r["total_due"] for r in by_member.values())),
            },
        }

    def collection_report(self, start_date: Optional[DateLike] = None,
                          end_date: Optional[DateLike] = None) -> Dict[str, Any]:
        """
        Loan and DPS collections dated within [start_date, end_date]

        Both bounds default to today's local date.
        """
        start = parse_date(start_date)
        end = parse_date(end_date)
        if start > end:
            raise ValidationError("start date must not be after end date")

        loan_rows = []
        for loan in self.loan_manager.list_loans():
            for collection in loan.collections:
                if start <= collection.collection_date <= end:
                    loan_rows.append({
                        "loan_id": loan.id,
                        "member_id": loan.member_id,
                        "member_name": loan.member_name,
                        "amount": collection.amount,
                        "collection_date": collection.collection_date,
                        "description": collection.description,
                    })

        dps_rows = []
        for setting in self.dps_manager.list_settings():
            for collection in setting.collections:
                if start <= collection.collection_date <= end:
                    dps_rows.append({
                        "setting_id": setting.id,
                        "member_id": setting.member_id,
                        "amount": collection.collected_amount,
                        "collection_date": collection.collection_date,
                        "description": collection.description,
                    })

        loan_total = total(r["amount"] for r in loan_rows)
        dps_total = total(r["amount"] for r in dps_rows)
        logger.debug("Collection report %s..%s: %d loan, %d DPS rows",
                     start, end, len(loan_rows), len(dps_rows))

        return {
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "loan_collections": _sorted_rows(loan_rows),
            "dps_collections": _sorted_rows(dps_rows),
            "loan_total": format_amount(loan_total),
            "dps_total": format_amount(dps_total),
            "grand_total": format_amount(loan_total + dps_total),
        }

    def dps_report(self, as_of_date: Optional[DateLike] = None) -> List[Dict[str, Any]]:
        """Per-setting DPS progress: collected so far against the target"""
        as_of = parse_date(as_of_date)
        members = {m.member_id: m for m in self.member_manager.list_members()}
        schemes = {s.id: s for s in self.dps_manager.list_schemes()}
        rows = []
        for setting in self.dps_manager.list_settings():
            member = members.get(setting.member_id)
            scheme = schemes.get(setting.scheme_id)
            collected = setting.total_collected
            rows.append({
                "setting_id": setting.id,
                "member_id": setting.member_id,
                "member_name": member.name if member else None,
                "scheme_name": scheme.scheme_name if scheme else None,
                "start_date": setting.start_date.isoformat(),
                "monthly_amount": format_amount(setting.monthly_amount),
                "months_collected": len(setting.collections),
                "months_elapsed": _months_elapsed(setting.start_date, as_of, setting.duration_months),
                "total_collected": format_amount(collected),
                "target_amount": format_amount(setting.target_amount),
                "remaining": format_amount(floor_at_zero(setting.target_amount - collected)),
                "status": setting.status.value,
            })
        return rows


def _months_elapsed(start: date, as_of: date, duration_months: int) -> int:
    """Installments that have fallen due by as_of, capped at the term"""
    if as_of < start:
        return 0
    months = months_between(start, as_of)
    if add_months(start, months) > as_of:
        months -= 1
    return min(months + 1, duration_months)


def _sorted_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    rows.sort(key=lambda r: r["collection_date"])
    return [
        dict(r, amount=format_amount(r["amount"]), collection_date=r["collection_date"].isoformat())
        for r in rows
    ]
