"""
지갑 API 라우터

- GET  /wallet/balance: 내 잔액/진행도 스냅샷 (정본 + legacy 병합)
- GET  /wallet/transactions: 내 원장 내역 (최신순)
- POST /wallet/reward: 이벤트 보상 지급 (Idempotency-Key 필수)

모든 엔드포인트는 Bearer 토큰 인증 필요 (sub = 계정 UUID)
"""

import json
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Response

from retroapi.config import settings
from retroapi.core.security import verify_token
from retroapi.deps import get_progression_service
from retroapi.schemas.wallet import (
    LedgerHistoryResponse,
    ProgressionResult,
    RewardRequest,
    WalletBalanceResponse,
)
from retroapi.services.progression_service import ProgressionService

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("/balance", response_model=WalletBalanceResponse)
def get_my_balance(
    response: Response,
    account_id: str = Depends(verify_token),
    service: ProgressionService = Depends(get_progression_service),
) -> WalletBalanceResponse:
    """
    내 지갑 잔액 조회

    응답 헤더:
        X-Wallet-Source: user_stats | legacy | merged | none
        X-Wallet-Drift: 정본/legacy 값이 서로 다른 필드 (있을 때만)
    """
    snapshot, drift = service.get_balance(account_id)

    response.headers["Cache-Control"] = "no-store"
    response.headers["X-Wallet-Source"] = snapshot.source
    if drift:
        response.headers["X-Wallet-Drift"] = json.dumps(drift, separators=(",", ":"))
    return WalletBalanceResponse.from_snapshot(snapshot)


@router.get("/transactions", response_model=LedgerHistoryResponse)
def get_my_transactions(
    response: Response,
    limit: int = Query(50, ge=1, le=settings.LEDGER_PAGE_MAX, description="페이지 크기"),
    offset: int = Query(0, ge=0, description="오프셋"),
    account_id: str = Depends(verify_token),
    service: ProgressionService = Depends(get_progression_service),
) -> LedgerHistoryResponse:
    response.headers["Cache-Control"] = "no-store"
    return service.get_history(account_id, limit=limit, offset=offset)


@router.post("/reward", response_model=ProgressionResult)
def grant_reward(
    request: RewardRequest,
    idempotency_key: Optional[str] = Header(
        None, alias=settings.IDEMPOTENCY_KEY_HEADER
    ),
    account_id: str = Depends(verify_token),
    service: ProgressionService = Depends(get_progression_service),
) -> ProgressionResult:
    """이벤트 보상 지급 - 같은 Idempotency-Key 로 재요청하면 applied=false"""
    return service.grant_reward(
        account_id,
        coins=request.coins,
        exp=request.exp,
        tickets=request.tickets,
        reason=request.reason,
        idempotency_key=idempotency_key,
    )
