from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from coinapi.core.exceptions import AuthenticationError, AuthorizationError
from coinapi.core.security import decode_token
from coinapi.schemas.auth import WalletIdentity

# JWT Bearer 토큰 스킴
security = HTTPBearer(auto_error=False)


def get_current_wallet(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> WalletIdentity:
    """필수 인증 - 서명 검증은 외부 인증 서비스가 끝낸 상태이며 여기서는 토큰만 확인"""
    if not credentials:
        raise AuthenticationError("Authentication required")
    return decode_token(credentials.credentials)


def require_admin(
    identity: WalletIdentity = Depends(get_current_wallet),
) -> WalletIdentity:
    """운영자 권한이 필요한 엔드포인트용 의존성"""
    if not identity.is_admin:
        raise AuthorizationError("Admin access required")
    return identity
