"""
Installment view endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends

from .dependencies import SomitiSystem, get_somiti_system, http_error
from ..errors import SomitiError


router = APIRouter()


@router.get("/today")
async def get_due_today(
    as_of: Optional[str] = None,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Unpaid installments falling due on the given date (default today)"""
    try:
        rows = system.loan_manager.get_due_today(as_of)
    except SomitiError as e:
        raise http_error(e)
    return {"installments": [row.to_dict() for row in rows]}


@router.get("/overdue")
async def get_overdue(
    as_of: Optional[str] = None,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Unpaid installments due on or before the given date"""
    try:
        rows = system.loan_manager.get_overdue(as_of)
    except SomitiError as e:
        raise http_error(e)
    return {"installments": [row.to_dict() for row in rows]}


@router.get("/member/{member_id}")
async def get_member_installments(
    member_id: str,
    as_of: Optional[str] = None,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Every scheduled installment of a member's loans, with its status as of the given date"""
    try:
        rows = system.loan_manager.get_member_installments(member_id, as_of)
    except SomitiError as e:
        raise http_error(e)
    return {"member_id": member_id, "installments": [row.to_dict() for row in rows]}
