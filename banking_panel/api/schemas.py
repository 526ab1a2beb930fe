"""
Pydantic schemas for API requests
"""

from decimal import Decimal
from typing import Optional
from pydantic import AliasChoices, BaseModel, Field


# Staff provisioning schemas
class CreateStaffRequest(BaseModel):
    """Fields are optional here so missing ones get the provisioning error message"""
    email: Optional[str] = None
    password: Optional[str] = None
    full_name: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("fullName", "full_name", "name"),
        description="Display name; accepted as fullName, full_name or name"
    )
    role: Optional[str] = Field(None, description="Ignored; provisioned users are always staff")


# Session schemas
class LoginRequest(BaseModel):
    email: str
    password: str


# Bank detail schemas
class CreateBankDetailRequest(BaseModel):
    ac_holder_name: str
    bank_name: str
    acc_number: str
    mobile_number: str
    merchant_name: str = Field(..., description="googlepay, bharatpe, pinelab or axis")
    status: str = Field("active", description="active or inactive")
    freeze_reason: Optional[str] = None
    freeze_balance: Decimal = Field(Decimal("0"), description="Non-negative amount")


class UpdateBankDetailRequest(BaseModel):
    ac_holder_name: Optional[str] = None
    bank_name: Optional[str] = None
    acc_number: Optional[str] = None
    mobile_number: Optional[str] = None
    merchant_name: Optional[str] = None
    status: Optional[str] = None
    freeze_reason: Optional[str] = None
    freeze_balance: Optional[Decimal] = None
