"""
Loan endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .dependencies import SomitiSystem, get_somiti_system, http_error
from .schemas import IssueLoanRequest, LoanCollectionRequest, UpdateLoanRequest
from ..errors import SomitiError
from ..loans import Loan
from ..money import format_amount


router = APIRouter()


def loan_response(loan: Loan) -> dict:
    return {
        "loan_id": loan.id,
        "member_id": loan.member_id,
        "member_name": loan.member_name,
        "start_date": loan.start_date.isoformat(),
        "installment_type": loan.installment_type,
        "installment_count": loan.installment_count,
        "installment_amount": format_amount(loan.installment_amount),
        "principal": format_amount(loan.principal),
        "dividend": str(loan.dividend),
        "dividend_type": loan.dividend_type.value,
        "total_payable": format_amount(loan.total_payable),
        "total_paid": format_amount(loan.total_paid),
        "total_loan": format_amount(loan.total_loan),
        "description": loan.description,
        "collections": [
            {
                "amount": format_amount(c.amount),
                "collection_date": c.collection_date.isoformat(),
                "description": c.description,
                "installment_number": c.installment_number,
            }
            for c in loan.collections
        ],
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def issue_loan(
    request: IssueLoanRequest,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Issue a new loan"""
    try:
        loan = system.loan_manager.issue_loan(
            member_id=request.member_id,
            principal=request.principal,
            dividend=request.dividend,
            dividend_type=request.dividend_type,
            installment_type=request.installment_type,
            installment_count=request.installment_count,
            start_date=request.start_date,
            description=request.description,
            send_sms=request.send_sms
        )
    except SomitiError as e:
        raise http_error(e)

    return {
        "loan_id": loan.id,
        "total_loan": format_amount(loan.total_loan),
        "installment_amount": format_amount(loan.installment_amount),
        "message": "Loan issued successfully"
    }


@router.get("")
async def list_loans(
    member_id: Optional[str] = None,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """List loans, newest first"""
    loans = system.loan_manager.list_loans(member_id=member_id)
    return {"loans": [loan_response(loan) for loan in loans]}


@router.post("/collection")
async def record_collection(
    request: LoanCollectionRequest,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Record an installment collection"""
    try:
        loan = system.loan_manager.record_collection(
            loan_id=request.loan_id,
            amount=request.amount,
            collection_date=request.collection_date,
            description=request.description,
            send_sms=request.send_sms,
            installment_number=request.installment_number
        )
    except SomitiError as e:
        raise http_error(e)

    return {
        "loan_id": loan.id,
        "total_loan": format_amount(loan.total_loan),
        "paid_off": loan.is_paid_off,
        "message": "Collection recorded successfully"
    }


@router.get("/{loan_id}")
async def get_loan(
    loan_id: str,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Get loan details"""
    try:
        loan = system.loan_manager.get_loan(loan_id)
    except SomitiError as e:
        raise http_error(e)
    return loan_response(loan)


@router.patch("/{loan_id}")
async def update_loan(
    loan_id: str,
    request: UpdateLoanRequest,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Edit a loan's terms; totals and balance are recalculated"""
    try:
        loan = system.loan_manager.update_loan(loan_id, **request.model_dump(exclude_unset=True))
    except SomitiError as e:
        raise http_error(e)
    return loan_response(loan)


@router.delete("/member/{member_id}")
async def close_member_loans(
    member_id: str,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Close every loan a member holds"""
    try:
        closed = system.loan_manager.close_member_loans(member_id)
    except SomitiError as e:
        raise http_error(e)

    return {
        "member_id": member_id,
        "closed_loans": [loan.id for loan in closed],
        "message": "Member loans closed successfully"
    }


@router.get("/{loan_id}/arrears")
async def get_loan_arrears(
    loan_id: str,
    as_of: Optional[str] = None,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Classify a loan's installments as of a date (default today)"""
    try:
        report = system.loan_manager.evaluate_loan(loan_id, as_of)
    except SomitiError as e:
        raise http_error(e)

    return {
        "loan_id": report.loan_id,
        "as_of_date": report.as_of_date.isoformat(),
        "outstanding_balance": format_amount(report.outstanding_balance),
        "overdue_count": report.overdue_count,
        "due_today": [i.to_dict() for i in report.due_today],
        "overdue": [i.to_dict() for i in report.overdue],
        "paid": [i.to_dict() for i in report.paid],
        "schedule": [i.to_dict() for i in report.schedule],
    }
