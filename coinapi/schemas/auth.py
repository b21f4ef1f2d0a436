from typing import Optional

from pydantic import BaseModel, Field


class TokenPayload(BaseModel):
    sub: str = Field(..., description="지갑 주소")
    role: Optional[str] = None


class WalletIdentity(BaseModel):
    """인증 서비스가 검증한 호출자 식별 정보"""

    wallet_address: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
