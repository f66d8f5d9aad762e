from typing import Optional

from fastapi import APIRouter, Depends, Header

from retroapi.config import settings
from retroapi.core.security import verify_token
from retroapi.deps import get_progression_service
from retroapi.schemas.wallet import GameFinishRequest, ProgressionResult
from retroapi.services.progression_service import ProgressionService

router = APIRouter(prefix="/games", tags=["games"])


@router.post("/finish", response_model=ProgressionResult)
def finish_game(
    request: GameFinishRequest,
    idempotency_key: Optional[str] = Header(
        None, alias=settings.IDEMPOTENCY_KEY_HEADER
    ),
    account_id: str = Depends(verify_token),
    service: ProgressionService = Depends(get_progression_service),
) -> ProgressionResult:
    """게임 한 판 종료 → 경험치/코인/티켓/플레이 횟수 반영"""
    return service.finish_game(
        account_id,
        game=request.game,
        score=request.score,
        meta=request.meta,
        idempotency_key=idempotency_key,
        run_id=request.run_id,
    )
