"""
Member endpoints
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, status

from .dependencies import SomitiSystem, get_somiti_system, http_error
from .schemas import RegisterMemberRequest, UpdateMemberRequest
from ..errors import SomitiError
from ..members import Member, MemberRole


router = APIRouter()


def member_response(member: Member) -> dict:
    data = member.to_dict()
    data.pop("id")
    return data


@router.post("", status_code=status.HTTP_201_CREATED)
async def register_member(
    request: RegisterMemberRequest,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Register a member or agent"""
    profile = request.model_dump(exclude={"member_id", "name", "mobile_number", "role"}, exclude_none=True)
    try:
        member = system.member_manager.register_member(
            member_id=request.member_id,
            name=request.name,
            mobile_number=request.mobile_number,
            role=request.role,
            **profile
        )
    except SomitiError as e:
        raise http_error(e)

    return {
        "member_id": member.member_id,
        "message": "Member registered successfully"
    }


@router.get("")
async def list_members(
    role: Optional[str] = None,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """List members, optionally only one role"""
    try:
        member_role = MemberRole(role) if role else None
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown member role: {role}")

    members = system.member_manager.list_members(role=member_role)
    return {"members": [member_response(m) for m in members]}


@router.get("/{member_id}")
async def get_member(
    member_id: str,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Get member details"""
    try:
        member = system.member_manager.get_member(member_id)
    except SomitiError as e:
        raise http_error(e)
    return member_response(member)


@router.put("/{member_id}")
async def update_member(
    member_id: str,
    request: UpdateMemberRequest,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Update a member's details; fields left out are unchanged"""
    try:
        member = system.member_manager.update_member(
            member_id, **request.model_dump(exclude_unset=True)
        )
    except SomitiError as e:
        raise http_error(e)
    return member_response(member)
