from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class EqLevelCreateRequest(BaseModel):
    """레벨 구간 생성 요청 (운영자)"""

    min_eq: int = Field(..., ge=0, description="구간 최솟값 (포함)")
    max_eq: int = Field(..., ge=0, description="구간 최댓값 (포함)")
    level_value: int = Field(..., ge=0)
    description: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def validate_range(self) -> "EqLevelCreateRequest":
        if self.min_eq > self.max_eq:
            raise ValueError("min_eq must be <= max_eq")
        return self


class EqLevelUpdateRequest(BaseModel):
    """레벨 구간 수정 요청 - 지정한 필드만 변경"""

    min_eq: Optional[int] = Field(None, ge=0)
    max_eq: Optional[int] = Field(None, ge=0)
    level_value: Optional[int] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=255)


class EqLevelResponse(BaseModel):
    id: int
    min_eq: int
    max_eq: int
    level_value: int
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WalletLevelResponse(BaseModel):
    wallet_address: str
    total_eq: int
    level: Optional[EqLevelResponse] = None


class EqLevelStats(BaseModel):
    level: EqLevelResponse
    account_count: int


class EqLevelStatsResponse(BaseModel):
    total_levels: int
    total_accounts: int
    levels: List[EqLevelStats] = Field(default_factory=list)
