from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Response

from retroapi.config import settings
from retroapi.core.security import verify_token
from retroapi.deps import get_progression_service
from retroapi.schemas.shop import ShopItemListResponse
from retroapi.schemas.wallet import ProgressionResult, PurchaseRequest
from retroapi.services.progression_service import ProgressionService

router = APIRouter(prefix="/shop", tags=["shop"])


@router.get("/items", response_model=ShopItemListResponse)
def list_items(
    response: Response,
    item_type: Optional[str] = Query(
        None, alias="type", max_length=64, description="상품 종류 필터 (ticket, booster ...)"
    ),
    service: ProgressionService = Depends(get_progression_service),
) -> ShopItemListResponse:
    """진열 중인 상점 상품 목록 (인증 불필요)"""
    items = service.list_shop_items(item_type)
    response.headers["Cache-Control"] = "no-store"
    return ShopItemListResponse.of(items)


@router.post("/purchase", response_model=ProgressionResult)
def purchase_item(
    request: PurchaseRequest,
    idempotency_key: Optional[str] = Header(
        None, alias=settings.IDEMPOTENCY_KEY_HEADER
    ),
    account_id: str = Depends(verify_token),
    service: ProgressionService = Depends(get_progression_service),
) -> ProgressionResult:
    """
    상점 상품 구매

    결제 수단: payWith > 상품 price_type > 가격 값으로 추론
    잔액 부족 시 400 (BALANCE_001), 아무것도 기록되지 않음
    """
    return service.purchase_item(
        account_id,
        item_key=request.item_key,
        pay_with=request.pay_with,
        idempotency_key=idempotency_key,
    )
