import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from retroapi.config import settings
from retroapi.core.exceptions import AuthenticationError


def create_access_token(
    account_id: str,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """sub=account_id 인 액세스 토큰 발급 (로컬 개발/테스트용)"""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode: Dict[str, Any] = {**(extra_claims or {}), "sub": account_id, "exp": expire}
    if settings.JWT_ISSUER:
        to_encode.setdefault("iss", settings.JWT_ISSUER)
    if settings.JWT_AUDIENCE:
        to_encode.setdefault("aud", settings.JWT_AUDIENCE)
    return jwt.encode(
        to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )


def decode_account_id(token: str) -> str:
    """
    JWT 를 검증하고 sub(계정 UUID)를 정규화된 문자열로 반환

    Raises:
        AuthenticationError: 서명/만료/발급자/대상 검증 실패, sub 가 UUID 가 아닌 경우
    """
    if not settings.JWT_SECRET_KEY:
        raise AuthenticationError("Token verification is not configured")

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
            options={"verify_aud": bool(settings.JWT_AUDIENCE)},
        )
    except JWTError as e:
        raise AuthenticationError("Invalid authentication credentials", {"reason": str(e)})

    sub = payload.get("sub")
    try:
        return str(uuid.UUID(str(sub)))
    except (TypeError, ValueError):
        raise AuthenticationError("Token subject is not a valid account id")


# Security scheme
security = HTTPBearer(auto_error=False)


def verify_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Authorization: Bearer 토큰을 검증하고 account_id 를 반환합니다.

    검증된 account_id 는 request.state 에 남겨 접근 로그에 쓴다.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing bearer token")
    account_id = decode_account_id(credentials.credentials)
    request.state.account_id = account_id
    return account_id
