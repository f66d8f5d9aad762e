import pytest

from retroapi.core.exceptions import (
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from retroapi.models.shop import ShopItem
from retroapi.progression.numeric import MAX_SAFE_INTEGER
from retroapi.progression.rules import RewardRuleBook
from retroapi.services.progression_service import (
    ProgressionService,
    derive_run_key,
    validate_idempotency_key,
)


@pytest.fixture
def service(db_session, retry_policy):
    return ProgressionService(db_session, RewardRuleBook.default(), retry_policy)


@pytest.fixture
def ticket_pack(db_session):
    item = ShopItem(
        item_key="ticket_small",
        title="티켓 소량 패키지",
        price_type="coins",
        price_coins=500,
        wallet_tickets_delta=5,
    )
    db_session.add(item)
    db_session.commit()
    return item


class TestValidateIdempotencyKey:
    @pytest.mark.parametrize("key", ["a", "run:abc:1", "evt_2024.10-01", "x" * 128])
    def test_accepts_valid_keys(self, key):
        assert validate_idempotency_key(key) == key

    @pytest.mark.parametrize("key", ["x" * 129, "has space", "slash/key", "한글"])
    def test_rejects_malformed_keys(self, key):
        with pytest.raises(ValidationError):
            validate_idempotency_key(key)

    def test_required_key(self):
        assert validate_idempotency_key(None) is None
        with pytest.raises(ValidationError):
            validate_idempotency_key("  ", required=True)


class TestFinishGame:
    def test_finish_game_updates_snapshot(self, service, account_id):
        # When
        result = service.finish_game(account_id, "brick-breaker", 1500)

        # Then
        assert result.applied is True
        assert result.delta.coins == 15
        assert result.stats["exp"] == 1500
        assert result.stats["level"] == 2
        assert result.wallet["points"] == 15
        assert result.wallet["plays"] == 1

    def test_run_id_derives_idempotency_key(self, service, account_id):
        first = service.finish_game(account_id, "tetris", 100, run_id="run-1")
        second = service.finish_game(account_id, "tetris", 100, run_id="run-1")

        assert first.applied is True
        assert second.applied is False
        assert second.stats["gamesPlayed"] == 1

        history = service.get_history(account_id)
        assert history.total_count == 1
        assert history.entries[0].ref_table == "game_runs"
        assert history.entries[0].ref_id == "run-1"

    def test_invalid_account_is_rejected_before_write(self, service):
        with pytest.raises(ValidationError):
            service.finish_game("not-a-uuid", "tetris", 100)

    def test_blank_game_is_rejected(self, service, account_id):
        with pytest.raises(ValidationError):
            service.finish_game(account_id, "   ", 100)

    @pytest.mark.parametrize("score", [1e300, MAX_SAFE_INTEGER + 1, "1e20"])
    def test_oversized_score_is_rejected_before_write(self, service, account_id, score):
        with pytest.raises(ValidationError) as exc_info:
            service.finish_game(account_id, "brick-breaker", score)

        assert exc_info.value.error_code == "VALIDATION_001"
        assert service.get_history(account_id).total_count == 0

        # 거부 후에도 세션은 정상
        assert service.finish_game(account_id, "brick-breaker", 1500).applied is True

    @pytest.mark.parametrize("run_id", ["run 42", "runs/7", "r" * 100, "한판-1"])
    def test_run_id_outside_key_pattern_still_dedupes(self, service, account_id, run_id):
        first = service.finish_game(account_id, "tetris", 100, run_id=run_id)
        second = service.finish_game(account_id, "tetris", 100, run_id=run_id)

        assert first.applied is True
        assert second.applied is False
        history = service.get_history(account_id)
        assert history.total_count == 1
        assert history.entries[0].ref_id == run_id

    def test_derived_run_key_fits_key_pattern(self, account_id):
        assert derive_run_key(account_id, "run-1") == f"run:{account_id}:run-1"

        hashed = derive_run_key(account_id, "r" * 128)
        assert hashed.startswith(f"run:{account_id}:sha256-")
        assert validate_idempotency_key(hashed) == hashed
        assert derive_run_key(account_id, "run 42") != derive_run_key(account_id, "run 43")


class TestGrantReward:
    def test_reward_requires_idempotency_key(self, service, account_id):
        with pytest.raises(ValidationError):
            service.grant_reward(account_id, coins=10)

    def test_reward_without_coins_is_tagged_event(self, service, account_id):
        service.grant_reward(account_id, exp=300, idempotency_key="evt-1")

        history = service.get_history(account_id)
        assert history.entries[0].type == "event"
        assert history.entries[0].ref_table == "wallet_reward"

    def test_empty_reward_is_rejected(self, service, account_id):
        with pytest.raises(ValidationError):
            service.grant_reward(account_id, idempotency_key="evt-2")


class TestPurchaseItem:
    def test_purchase_spends_coins_and_grants_reward(
        self, service, account_id, ticket_pack
    ):
        # Given
        service.grant_reward(account_id, coins=800, idempotency_key="seed-800")

        # When
        result = service.purchase_item(
            account_id, "ticket_small", idempotency_key="buy-1"
        )

        # Then
        assert result.applied is True
        assert result.paid.pay_with == "coins"
        assert result.paid.coins == 500
        assert result.stats["coins"] == 300
        assert result.stats["tickets"] == 5

        entry = service.get_history(account_id).entries[0]
        assert entry.reason == "SHOP_PURCHASE"
        assert entry.ref_table == "shop_items"
        assert entry.type == "spend"

    def test_insufficient_balance(self, service, account_id, ticket_pack):
        service.grant_reward(account_id, coins=100, idempotency_key="seed-100")

        with pytest.raises(InsufficientBalanceError):
            service.purchase_item(account_id, "ticket_small", idempotency_key="buy-2")

        assert service.get_snapshot(account_id).coins == 100

    def test_unknown_item(self, service, account_id):
        with pytest.raises(NotFoundError):
            service.purchase_item(account_id, "missing", idempotency_key="buy-3")

    def test_pay_with_tickets_requires_ticket_price(
        self, service, account_id, ticket_pack
    ):
        with pytest.raises(ValidationError):
            service.purchase_item(
                account_id, "ticket_small", pay_with="tickets", idempotency_key="buy-4"
            )


class TestPayWithDecision:
    def test_inferred_from_prices(self, ticket_pack):
        ticket_pack.price_type = None
        ticket_pack.price_coins = 0
        ticket_pack.price_tickets = 3

        assert ProgressionService._decide_pay_with(ticket_pack, None) == "tickets"
        assert ProgressionService._decide_pay_with(ticket_pack, "COINS") == "coins"
