"""
DPS endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .dependencies import SomitiSystem, get_somiti_system, http_error
from .schemas import CreateDpsSchemeRequest, EnrollDpsRequest, DpsCollectionRequest
from ..deposits import DpsScheme, DpsSetting, generate_dps_schedule
from ..errors import SomitiError
from ..money import format_amount


router = APIRouter()


def scheme_response(scheme: DpsScheme) -> dict:
    return {
        "scheme_id": scheme.id,
        "scheme_name": scheme.scheme_name,
        "duration_months": scheme.duration_months,
        "monthly_amount": format_amount(scheme.monthly_amount),
        "dps_type": scheme.dps_type.value,
        "interest_rate": str(scheme.interest_rate),
        "target_amount": format_amount(scheme.target_amount),
        "status": scheme.status.value,
    }


def setting_response(setting: DpsSetting) -> dict:
    return {
        "setting_id": setting.id,
        "member_id": setting.member_id,
        "scheme_id": setting.scheme_id,
        "start_date": setting.start_date.isoformat(),
        "duration_months": setting.duration_months,
        "monthly_amount": format_amount(setting.monthly_amount),
        "target_amount": format_amount(setting.target_amount),
        "total_collected": format_amount(setting.total_collected),
        "status": setting.status.value,
        "collections": [c.to_dict() for c in setting.collections],
    }


@router.post("/schemes", status_code=status.HTTP_201_CREATED)
async def create_scheme(
    request: CreateDpsSchemeRequest,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Create a DPS scheme"""
    try:
        scheme = system.dps_manager.create_scheme(
            duration_months=request.duration_months,
            monthly_amount=request.monthly_amount,
            dps_type=request.dps_type,
            interest_rate=request.interest_rate,
            scheme_name=request.scheme_name
        )
    except SomitiError as e:
        raise http_error(e)
    return scheme_response(scheme)


@router.get("/schemes")
async def list_schemes(
    active_only: bool = False,
    system: SomitiSystem = Depends(get_somiti_system)
):
    schemes = system.dps_manager.list_schemes(active_only=active_only)
    return {"schemes": [scheme_response(s) for s in schemes]}


@router.post("/settings", status_code=status.HTTP_201_CREATED)
async def enroll_member(
    request: EnrollDpsRequest,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Enroll a member in a DPS scheme"""
    try:
        setting = system.dps_manager.enroll_member(
            member_id=request.member_id,
            scheme_id=request.scheme_id,
            start_date=request.start_date,
            description=request.description
        )
    except SomitiError as e:
        raise http_error(e)
    return setting_response(setting)


@router.get("/settings/member/{member_id}")
async def get_member_settings(
    member_id: str,
    system: SomitiSystem = Depends(get_somiti_system)
):
    settings = system.dps_manager.get_member_settings(member_id)
    return {"member_id": member_id, "settings": [setting_response(s) for s in settings]}


@router.get("/settings/{setting_id}/schedule")
async def get_setting_schedule(
    setting_id: str,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Monthly due dates over a DPS setting's term"""
    try:
        setting = system.dps_manager.get_setting(setting_id)
    except SomitiError as e:
        raise http_error(e)

    due_dates = generate_dps_schedule(setting.start_date, setting.duration_months)
    return {
        "setting_id": setting.id,
        "member_id": setting.member_id,
        "monthly_amount": format_amount(setting.monthly_amount),
        "schedule": [
            {"month": i + 1, "due_date": due.isoformat()}
            for i, due in enumerate(due_dates)
        ],
    }


@router.post("/collections")
async def record_collection(
    request: DpsCollectionRequest,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Record a monthly DPS collection"""
    try:
        setting = system.dps_manager.record_collection(
            member_id=request.member_id,
            scheme_id=request.scheme_id,
            amount=request.amount,
            collection_date=request.collection_date,
            description=request.description,
            send_sms=request.send_sms
        )
    except SomitiError as e:
        raise http_error(e)

    return {
        "setting_id": setting.id,
        "balance": format_amount(setting.collections[-1].balance),
        "message": "DPS collection recorded successfully"
    }


@router.get("/today")
async def get_todays_dps(
    as_of: Optional[str] = None,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """DPS settings with a monthly installment due on the given date"""
    try:
        rows = system.dps_manager.get_todays_dps(as_of)
    except SomitiError as e:
        raise http_error(e)
    return {"settings": rows}
