from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from coinapi.models.account import AccountStatus


class AccountResponse(BaseModel):
    wallet_address: str
    referrer_address: Optional[str] = None
    status: AccountStatus
    last_active_at: Optional[datetime] = None
    left_node: int = 0
    right_node: int = 0
    total_eq: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AccountRegisterRequest(BaseModel):
    referrer_address: Optional[str] = Field(None, description="추천인 지갑 주소")


class AccountStatusUpdateRequest(BaseModel):
    status: AccountStatus


class EquilibriumNodesRequest(BaseModel):
    left_node: int = Field(..., ge=0)
    right_node: int = Field(..., ge=0)
    total_eq: int = Field(..., ge=0)


class StaminaResponse(BaseModel):
    wallet_address: str
    account_age_days: int
    total_eq: int
    is_banned: bool
    stamina: int
