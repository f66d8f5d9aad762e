import json
import logging
import uuid

import pytest
from fastapi.testclient import TestClient
from unittest.mock import Mock

from retroapi.core import logging_middleware
from retroapi.core.exceptions import InsufficientBalanceError, ValidationError
from retroapi.core.security import create_access_token, verify_token
from retroapi.deps import get_progression_service
from retroapi.main import create_app
from retroapi.schemas.shop import ShopItemResponse
from retroapi.schemas.wallet import (
    DeltaResponse,
    LedgerEntryResponse,
    LedgerHistoryResponse,
    PaidResponse,
    ProgressionResult,
    WalletSnapshot,
)

ACCOUNT_ID = str(uuid.uuid4())


@pytest.fixture
def mock_service():
    return Mock()


@pytest.fixture
def app(mock_service):
    app = create_app()
    app.dependency_overrides[get_progression_service] = lambda: mock_service
    return app


@pytest.fixture
def client(app):
    """인증을 통과한 테스트 클라이언트"""
    app.dependency_overrides[verify_token] = lambda: ACCOUNT_ID
    return TestClient(app)


@pytest.fixture
def anonymous_client(app):
    return TestClient(app)


def _result(applied=True, paid=None):
    snapshot = WalletSnapshot(coins=15, exp=1500, tickets=1, games_played=1, level=2, xp_cap=2000)
    return ProgressionResult(
        applied=applied,
        transaction_id=1,
        delta=DeltaResponse(coins=15, exp=1500, tickets=1, plays=1, reason="play_brick-breaker"),
        wallet=snapshot.wallet_view(),
        stats=snapshot.stats_view(),
        paid=paid,
    )


class TestHealth:
    def test_health(self, anonymous_client):
        response = anonymous_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestWalletBalance:
    def test_balance_with_source_and_drift_headers(self, client, mock_service):
        # Given
        snapshot = WalletSnapshot(
            coins=50, exp=200, tickets=3, games_played=0, level=1, xp_cap=1000, source="merged"
        )
        mock_service.get_balance.return_value = (
            snapshot,
            {"coins": {"canonical": 50, "legacy": 10}},
        )

        # When
        response = client.get("/api/v1/wallet/balance")

        # Then
        assert response.status_code == 200
        data = response.json()
        assert data["balance"] == 50
        assert data["wallet"]["points"] == 50
        assert data["stats"]["xpCap"] == 1000
        assert response.headers["X-Wallet-Source"] == "merged"
        assert response.headers["Cache-Control"] == "no-store"
        assert json.loads(response.headers["X-Wallet-Drift"]) == {
            "coins": {"canonical": 50, "legacy": 10}
        }
        mock_service.get_balance.assert_called_once_with(ACCOUNT_ID)

    def test_no_drift_header_when_sources_agree(self, client, mock_service):
        mock_service.get_balance.return_value = (WalletSnapshot(source="user_stats"), {})

        response = client.get("/api/v1/wallet/balance")

        assert response.status_code == 200
        assert "X-Wallet-Drift" not in response.headers

    def test_missing_token_returns_401_envelope(self, anonymous_client):
        response = anonymous_client.get("/api/v1/wallet/balance")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "AUTH_001"

    def test_real_token_is_accepted(self, anonymous_client, mock_service):
        mock_service.get_balance.return_value = (WalletSnapshot(), {})
        token = create_access_token(ACCOUNT_ID)

        response = anonymous_client.get(
            "/api/v1/wallet/balance", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 200
        mock_service.get_balance.assert_called_once_with(ACCOUNT_ID)


class TestWalletTransactions:
    def test_transactions_paging(self, client, mock_service):
        mock_service.get_history.return_value = LedgerHistoryResponse(
            entries=[
                LedgerEntryResponse(
                    id=1,
                    type="earn",
                    amount=15,
                    exp_delta=1500,
                    tickets_delta=1,
                    plays_delta=1,
                    balance_after=15,
                    reason="play_brick-breaker",
                    created_at="2026-01-01 12:00:00",
                )
            ],
            total_count=1,
            has_next=False,
        )

        response = client.get("/api/v1/wallet/transactions?limit=10&offset=0")

        assert response.status_code == 200
        assert response.json()["entries"][0]["balance_after"] == 15
        mock_service.get_history.assert_called_once_with(ACCOUNT_ID, limit=10, offset=0)

    def test_limit_above_page_max_is_rejected(self, client):
        response = client.get("/api/v1/wallet/transactions?limit=1000")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_001"


class TestWalletReward:
    def test_reward_passes_idempotency_header(self, client, mock_service):
        mock_service.grant_reward.return_value = _result()

        response = client.post(
            "/api/v1/wallet/reward",
            json={"coins": 10, "reason": "daily"},
            headers={"Idempotency-Key": "evt-1"},
        )

        assert response.status_code == 200
        mock_service.grant_reward.assert_called_once_with(
            ACCOUNT_ID, coins=10, exp=0, tickets=0, reason="daily", idempotency_key="evt-1"
        )

    def test_service_validation_error_is_enveloped(self, client, mock_service):
        mock_service.grant_reward.side_effect = ValidationError("Idempotency key is required")

        response = client.post("/api/v1/wallet/reward", json={"coins": 10})

        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Idempotency key is required"

    def test_negative_amount_is_rejected(self, client, mock_service):
        response = client.post(
            "/api/v1/wallet/reward", json={"coins": -5}, headers={"Idempotency-Key": "k"}
        )

        assert response.status_code == 422
        mock_service.grant_reward.assert_not_called()


class TestGameFinish:
    def test_finish_game(self, client, mock_service):
        mock_service.finish_game.return_value = _result()

        response = client.post(
            "/api/v1/games/finish",
            json={"game": "brick-breaker", "score": 1500, "runId": "run-9"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["applied"] is True
        assert data["stats"]["gamesPlayed"] == 1
        mock_service.finish_game.assert_called_once_with(
            ACCOUNT_ID,
            game="brick-breaker",
            score=1500,
            meta=None,
            idempotency_key=None,
            run_id="run-9",
        )

    def test_missing_score_is_rejected(self, client, mock_service):
        response = client.post("/api/v1/games/finish", json={"game": "tetris"})

        assert response.status_code == 422
        mock_service.finish_game.assert_not_called()

    def test_score_above_max_safe_integer_is_rejected(self, client, mock_service):
        response = client.post(
            "/api/v1/games/finish", json={"game": "brick-breaker", "score": 1e300}
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_001"
        mock_service.finish_game.assert_not_called()

    def test_free_form_run_id_is_passed_through(self, client, mock_service):
        mock_service.finish_game.return_value = _result()

        response = client.post(
            "/api/v1/games/finish",
            json={"game": "tetris", "score": 100, "runId": "run 42/b"},
        )

        assert response.status_code == 200
        assert mock_service.finish_game.call_args.kwargs["run_id"] == "run 42/b"


class TestShopItems:
    def test_list_items_without_token(self, anonymous_client, mock_service):
        mock_service.list_shop_items.return_value = [
            ShopItemResponse(
                id=uuid.uuid4(),
                item_key="ticket_small",
                title="티켓 소량 패키지",
                item_type="ticket",
                price_type="coins",
                price_coins=500,
                wallet_tickets_delta=5,
                sort_order=10,
            )
        ]

        response = anonymous_client.get("/api/v1/shop/items?type=ticket")

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["count"] == 1
        assert body["items"][0]["item_key"] == "ticket_small"
        assert response.headers["Cache-Control"] == "no-store"
        mock_service.list_shop_items.assert_called_once_with("ticket")

    def test_list_items_without_filter(self, anonymous_client, mock_service):
        mock_service.list_shop_items.return_value = []

        response = anonymous_client.get("/api/v1/shop/items")

        assert response.json() == {"ok": True, "items": [], "count": 0}
        mock_service.list_shop_items.assert_called_once_with(None)


class TestShopPurchase:
    def test_purchase(self, client, mock_service):
        mock_service.purchase_item.return_value = _result(
            paid=PaidResponse(pay_with="coins", coins=500, tickets=0)
        )

        response = client.post(
            "/api/v1/shop/purchase",
            json={"itemKey": "ticket_small", "payWith": "coins"},
            headers={"Idempotency-Key": "buy-1"},
        )

        assert response.status_code == 200
        assert response.json()["paid"] == {"payWith": "coins", "coins": 500, "tickets": 0}
        mock_service.purchase_item.assert_called_once_with(
            ACCOUNT_ID, item_key="ticket_small", pay_with="coins", idempotency_key="buy-1"
        )

    def test_insufficient_balance(self, client, mock_service):
        mock_service.purchase_item.side_effect = InsufficientBalanceError("Not enough coins")

        response = client.post(
            "/api/v1/shop/purchase",
            json={"itemKey": "ticket_small"},
            headers={"Idempotency-Key": "buy-2"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BALANCE_001"

    def test_invalid_pay_with(self, client):
        response = client.post(
            "/api/v1/shop/purchase",
            json={"itemKey": "ticket_small", "payWith": "gems"},
            headers={"Idempotency-Key": "buy-3"},
        )

        assert response.status_code == 422


class TestAccessLog:
    @pytest.fixture
    def access_logger(self, monkeypatch):
        mock_logger = Mock()
        monkeypatch.setattr(logging_middleware, "logger", mock_logger)
        return mock_logger

    def _response_lines(self, access_logger):
        return [c.args[1] for c in access_logger.log.call_args_list]

    def test_balance_access_line_has_account_and_wallet_source(
        self, anonymous_client, mock_service, access_logger
    ):
        mock_service.get_balance.return_value = (
            WalletSnapshot(coins=50, source="merged"),
            {"coins": {"canonical": 50, "legacy": 10}},
        )
        token = create_access_token(ACCOUNT_ID)

        response = anonymous_client.get(
            "/api/v1/wallet/balance", headers={"Authorization": f"Bearer {token}"}
        )

        assert "X-Took-ms" in response.headers
        (line,) = self._response_lines(access_logger)
        assert f"account={ACCOUNT_ID}" in line
        assert "-> 200" in line
        assert "source=merged" in line
        assert "drift=yes" in line

    def test_unauthenticated_request_is_logged_as_anonymous(
        self, anonymous_client, access_logger
    ):
        anonymous_client.get("/api/v1/wallet/balance")

        (line,) = self._response_lines(access_logger)
        assert access_logger.log.call_args.args[0] == logging.WARNING
        assert "account=anonymous" in line
        assert "source=" not in line
