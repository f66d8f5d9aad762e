from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class BaseAPIException(HTTPException):
    """
    API 오류 베이스

    응답 본문: {"success": false, "error": {"code", "message", "details"}}
    하위 클래스는 http_status / error_code / default_message 만 바꾼다.
    """

    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_001"
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(status_code=self.http_status, detail=self.envelope())

    def envelope(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            },
        }

    def __str__(self) -> str:
        return self.message


class AuthenticationError(BaseAPIException):
    http_status = status.HTTP_401_UNAUTHORIZED
    error_code = "AUTH_001"
    default_message = "Authentication failed"


class ValidationError(BaseAPIException):
    """쓰기 전에 걸러지는 입력 오류 (계정 id, payload 등)"""

    http_status = 422
    error_code = "VALIDATION_001"
    default_message = "Validation failed"


class IdempotencyKeyError(ValidationError):
    error_code = "VALIDATION_002"
    default_message = "Malformed idempotency key"


class NotFoundError(BaseAPIException):
    http_status = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND_001"
    default_message = "Resource not found"


class InsufficientBalanceError(BaseAPIException):
    http_status = status.HTTP_400_BAD_REQUEST
    error_code = "BALANCE_001"
    default_message = "Insufficient balance"


class InternalServerError(BaseAPIException):
    pass
