"""
Notification endpoints
"""

from fastapi import APIRouter, HTTPException, Depends

from .dependencies import SomitiSystem, get_somiti_system
from .schemas import SendSmsRequest


router = APIRouter()


@router.post("/sms")
async def send_sms(
    request: SendSmsRequest,
    system: SomitiSystem = Depends(get_somiti_system)
):
    """Send one SMS synchronously and report the gateway's answer"""
    if not request.mobile_number.strip() or not request.message.strip():
        raise HTTPException(status_code=400, detail="mobile_number and message are required")

    result = system.notifier.send_now(request.mobile_number, request.message)
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error)

    return {"success": True, "response": result.response}
