from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class BaseAPIException(HTTPException):
    """Base exception for API errors"""
    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": error_code,
                    "message": message,
                    "details": self.details
                }
            }
        )

    def __str__(self) -> str:  # Ensure str(e) returns the human message
        return self.message


class AuthenticationError(BaseAPIException):
    """Authentication related errors"""
    def __init__(self, message: str = "Authentication failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTH_001",
            message=message,
            details=details
        )


class AuthorizationError(BaseAPIException):
    """Authorization related errors"""
    def __init__(self, message: str = "Access forbidden", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="AUTH_002",
            message=message,
            details=details
        )


class ValidationError(BaseAPIException):
    """Validation errors (malformed amount, currency, wallet address ...)"""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_001",
            message=message,
            details=details
        )


class NotFoundError(BaseAPIException):
    """Resource not found errors"""
    def __init__(self, message: str = "Resource not found", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND_001",
            message=message,
            details=details
        )


class UnknownAccountError(BaseAPIException):
    """지갑 주소에 해당하는 계정이 없음"""
    def __init__(self, wallet_address: str, details: Optional[Dict] = None):
        self.wallet_address = wallet_address
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="ACCOUNT_001",
            message=f"Unknown account: {wallet_address}",
            details=details or {"wallet_address": wallet_address}
        )


class InsufficientFundsError(BaseAPIException):
    """Insufficient balance errors (sub-balance is the binding constraint)"""
    def __init__(self, message: str = "Insufficient funds", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="BALANCE_001",
            message=message,
            details=details
        )


class InvalidStateError(BaseAPIException):
    """요청한 동작이 현재 토너먼트 상태에서 허용되지 않음"""
    def __init__(self, message: str = "Invalid state for this action", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="STATE_001",
            message=message,
            details=details
        )


class AlreadyJoinedError(BaseAPIException):
    def __init__(self, message: str = "Already participating in this tournament", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="TOURNAMENT_001",
            message=message,
            details=details
        )


class AlreadySettledError(BaseAPIException):
    def __init__(self, message: str = "Tournament already settled", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="TOURNAMENT_002",
            message=message,
            details=details
        )


class BelowMinimumError(BaseAPIException):
    def __init__(self, message: str = "Amount below minimum required", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="TOURNAMENT_003",
            message=message,
            details=details
        )


class NotEligibleError(BaseAPIException):
    def __init__(self, message: str = "Not eligible", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="TOURNAMENT_004",
            message=message,
            details=details
        )


class InternalServerError(BaseAPIException):
    """Internal server errors"""
    def __init__(self, message: str = "Internal server error", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="INTERNAL_001",
            message=message,
            details=details
        )


class ServiceException(Exception):
    """Base exception for service layer errors"""
    pass


class InternalConsistencyError(ServiceException):
    """원장 불변식 위반 (Total != 하위 잔액 합계, 상금 풀 초과 지급 등)

    버그를 의미하므로 호출자에게 일반 오류로 전달되지 않습니다.
    진행 중인 트랜잭션은 커밋 전에 중단되어야 합니다.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)
