from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
from pydantic import ValidationError as PydanticValidationError

from coinapi.config import settings
from coinapi.core.exceptions import AuthenticationError
from coinapi.schemas.auth import TokenPayload, WalletIdentity


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """토큰 발급 (운영 환경에서는 외부 인증 서비스가 발급, 로컬/테스트용)"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> WalletIdentity:
    """JWT 토큰을 검증하고 지갑 식별 정보를 반환합니다."""
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
        token_data = TokenPayload.model_validate(payload)
    except (JWTError, PydanticValidationError):
        raise AuthenticationError("Invalid authentication credentials")

    return WalletIdentity(
        wallet_address=token_data.sub, role=token_data.role or "user"
    )
