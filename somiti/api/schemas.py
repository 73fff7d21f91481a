"""
Pydantic schemas for API requests
"""

from typing import Optional
from pydantic import BaseModel, Field


# Member schemas
class RegisterMemberRequest(BaseModel):
    member_id: str
    name: str
    mobile_number: str
    role: str = Field("member", description="member or agent")
    address: Optional[str] = None
    nid_number: Optional[str] = None
    father_or_husband: Optional[str] = None
    mother_name: Optional[str] = None
    nominee_name: Optional[str] = None
    nominee_relation: Optional[str] = None
    nominee_mobile: Optional[str] = None
    guarantor_name: Optional[str] = None
    guarantor_mobile: Optional[str] = None


class UpdateMemberRequest(BaseModel):
    name: Optional[str] = None
    mobile_number: Optional[str] = None
    role: Optional[str] = None
    status: Optional[str] = Field(None, description="active or inactive")
    address: Optional[str] = None
    nid_number: Optional[str] = None
    father_or_husband: Optional[str] = None
    mother_name: Optional[str] = None
    nominee_name: Optional[str] = None
    nominee_relation: Optional[str] = None
    nominee_mobile: Optional[str] = None
    guarantor_name: Optional[str] = None
    guarantor_mobile: Optional[str] = None


# Loan schemas
class IssueLoanRequest(BaseModel):
    member_id: str
    principal: str = Field(..., description="Decimal amount as string")
    dividend: str = Field("0", description="Percentage or flat amount as string")
    dividend_type: str = Field("%", description="'%' for a percentage, anything else is flat")
    installment_type: str = Field(..., description="daily, weekly, biweekly, monthly or semiannual")
    installment_count: int
    start_date: Optional[str] = None  # ISO date string
    description: Optional[str] = None
    send_sms: bool = False


class UpdateLoanRequest(BaseModel):
    start_date: Optional[str] = None
    installment_type: Optional[str] = None
    installment_count: Optional[int] = None
    principal: Optional[str] = None
    dividend: Optional[str] = None
    dividend_type: Optional[str] = None
    description: Optional[str] = None
    send_sms: Optional[bool] = None


class LoanCollectionRequest(BaseModel):
    loan_id: str
    amount: str = Field(..., description="Decimal amount as string")
    collection_date: Optional[str] = None  # ISO date string
    description: Optional[str] = None
    send_sms: bool = False
    installment_number: Optional[int] = None


# DPS schemas
class CreateDpsSchemeRequest(BaseModel):
    duration_months: int
    monthly_amount: str = Field(..., description="Decimal amount as string")
    dps_type: str = Field("profit", description="profit or non_profit")
    interest_rate: str = "0"
    scheme_name: Optional[str] = None


class EnrollDpsRequest(BaseModel):
    member_id: str
    scheme_id: str
    start_date: Optional[str] = None
    description: Optional[str] = None


class DpsCollectionRequest(BaseModel):
    member_id: str
    scheme_id: str
    amount: str = Field(..., description="Decimal amount as string")
    collection_date: Optional[str] = None
    description: Optional[str] = None
    send_sms: bool = False


# Notification schemas
class SendSmsRequest(BaseModel):
    mobile_number: str
    message: str
