"""
Reporting endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends

from .dependencies import SomitiSystem, get_somiti_system, http_error
from ..errors import SomitiError


router = APIRouter()


@router.get("/loan-balances")
async def loan_balances(system: SomitiSystem = Depends(get_somiti_system)):
    """Payable, paid and due totals per member"""
    return system.reporting_engine.loan_balances()


@router.get("/collections")
async def collection_report(
    start: Optional[str] = None,
    end: Optional[str] = None,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Loan and DPS collections within an inclusive date range"""
    try:
        return system.reporting_engine.collection_report(start, end)
    except SomitiError as e:
        raise http_error(e)


@router.get("/dps")
async def dps_report(
    as_of: Optional[str] = None,
    system: SomitiSystem = Depends(get_somiti_system)
):
    try:
        return {"settings": system.reporting_engine.dps_report(as_of)}
    except SomitiError as e:
        raise http_error(e)
