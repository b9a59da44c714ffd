import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from vamo.core.exceptions import (
    AuthorizationError,
    InternalServerError,
    NotFoundError,
    RateLimitError,
)
from vamo.models.activity import ActivityEvent
from vamo.models.reward import RewardEvent
from vamo.repositories.reward_ledger_repository import RewardLedgerRepository
from vamo.schemas.rewards import ChatRewardRequest, RewardGrantRequest
from vamo.services.reward_ledger_service import RewardLedgerService


@pytest.fixture
def service(db, settings):
    return RewardLedgerService(db, settings)


def grant_request(user_id: str, event_type: str = "chat_prompt", key: str = None, project_id=None):
    return RewardGrantRequest(
        user_id=user_id,
        project_id=project_id or str(uuid.uuid4()),
        event_type=event_type,
        idempotency_key=key or f"{user_id}:{event_type}:{uuid.uuid4()}",
    )


def seed_ledger_rows(db, user_id: str, count: int, created_at: datetime):
    for i in range(count):
        db.add(
            RewardEvent(
                user_id=user_id,
                event_type="chat_prompt",
                amount=1,
                idempotency_key=f"seed-{user_id}-{created_at.timestamp()}-{i}",
                created_at=created_at,
            )
        )
    db.commit()


class TestGrantReward:
    """RewardLedgerService.grant_reward 테스트"""

    def test_fresh_key_grants_table_amount(self, service, make_profile):
        # Given
        user_id = make_profile(balance=0)

        # When
        result = service.grant_reward(user_id, grant_request(user_id, key="k-1"))

        # Then
        assert result.granted is True
        assert result.amount == 5
        assert result.new_balance == 5
        assert result.message == "Reward granted"

    def test_same_key_twice_grants_once(self, service, db, make_profile):
        user_id = make_profile(balance=0)
        request = grant_request(user_id, key="dup-key")

        first = service.grant_reward(user_id, request)
        second = service.grant_reward(user_id, request)

        assert first.granted is True
        assert second.granted is False
        assert second.amount == 0
        assert second.new_balance == 5
        assert second.message == "Already awarded"
        assert db.query(RewardEvent).filter_by(idempotency_key="dup-key").count() == 1

    def test_ledger_entry_is_stored_with_key(self, service, db, make_profile):
        user_id = make_profile(balance=0)

        service.grant_reward(user_id, grant_request(user_id, "link_website", key="site"))

        entry = db.query(RewardEvent).filter_by(idempotency_key="site").one()
        assert entry.user_id == user_id
        assert entry.event_type == "link_website"
        assert entry.amount == 3

    def test_balance_advances_by_amount(self, service, make_profile):
        user_id = make_profile(balance=40)

        result = service.grant_reward(user_id, grant_request(user_id, event_type="revenue_logged"))

        assert result.new_balance == 40 + result.amount
        assert result.amount == 10

    def test_unknown_event_type_uses_default_amount(self, service, make_profile):
        user_id = make_profile()

        result = service.grant_reward(user_id, grant_request(user_id, event_type="url_added"))

        assert result.amount == 5

    def test_user_mismatch_is_forbidden(self, service, db, make_profile):
        user_id = make_profile()
        other_id = make_profile()

        with pytest.raises(AuthorizationError):
            service.grant_reward(other_id, grant_request(user_id))

        assert db.query(RewardEvent).count() == 0

    def test_grant_records_activity_event(self, service, db, make_profile):
        user_id = make_profile()
        project_id = str(uuid.uuid4())

        service.grant_reward(user_id, grant_request(user_id, event_type="link_github", project_id=project_id))

        event = db.query(ActivityEvent).filter_by(user_id=user_id).one()
        assert event.event_type == "reward_earned"
        assert event.project_id == project_id
        assert event.event_metadata == {"event": "link_github", "amount": 5}

    def test_missing_profile_is_not_found_and_rolls_back(self, service, db):
        user_id = str(uuid.uuid4())

        with pytest.raises(NotFoundError):
            service.grant_reward(user_id, grant_request(user_id, key="orphan"))

        assert db.query(RewardEvent).filter_by(idempotency_key="orphan").count() == 0

    def test_storage_failure_is_internal_error(self, service, make_profile):
        user_id = make_profile()

        with patch.object(
            RewardLedgerRepository,
            "count_since",
            side_effect=OperationalError("SELECT", {}, Exception("connection lost")),
        ):
            with pytest.raises(InternalServerError):
                service.grant_reward(user_id, grant_request(user_id))


class TestRateLimit:
    """최근 60분 슬라이딩 윈도우 레이트 리밋"""

    def test_zero_policy_returns_current_balance_without_writing(self, service, db, make_profile):
        user_id = make_profile(balance=12)
        seed_ledger_rows(db, user_id, 60, datetime.now(timezone.utc) - timedelta(minutes=5))

        result = service.grant_reward(user_id, grant_request(user_id, key="limited"))

        assert result.granted is False
        assert result.amount == 0
        assert result.new_balance == 12
        assert db.query(RewardEvent).filter_by(idempotency_key="limited").count() == 0

    def test_reject_policy_raises(self, db, settings, make_profile):
        settings.REWARD_RATE_LIMIT_POLICY = "reject"
        service = RewardLedgerService(db, settings)
        user_id = make_profile(balance=12)
        seed_ledger_rows(db, user_id, 60, datetime.now(timezone.utc) - timedelta(minutes=5))

        with pytest.raises(RateLimitError) as exc_info:
            service.grant_reward(user_id, grant_request(user_id, key="limited"))

        assert exc_info.value.status_code == 429
        assert exc_info.value.error_code == "RATE_LIMITED"
        assert db.query(RewardEvent).filter_by(idempotency_key="limited").count() == 0

    def test_unknown_policy_is_rejected_by_settings(self):
        from pydantic import ValidationError as SettingsValidationError

        from vamo.config import Settings

        with pytest.raises(SettingsValidationError):
            Settings(REWARD_RATE_LIMIT_POLICY="rejct")

    def test_rows_outside_window_do_not_count(self, service, db, make_profile):
        user_id = make_profile()
        seed_ledger_rows(db, user_id, 60, datetime.now(timezone.utc) - timedelta(minutes=61))

        result = service.grant_reward(user_id, grant_request(user_id))

        assert result.granted is True

    def test_below_ceiling_is_allowed(self, service, db, make_profile):
        user_id = make_profile()
        seed_ledger_rows(db, user_id, 59, datetime.now(timezone.utc) - timedelta(minutes=1))

        result = service.grant_reward(user_id, grant_request(user_id))

        assert result.granted is True

    def test_limit_is_per_user(self, service, db, make_profile):
        busy_user = make_profile()
        quiet_user = make_profile()
        seed_ledger_rows(db, busy_user, 60, datetime.now(timezone.utc))

        result = service.grant_reward(quiet_user, grant_request(quiet_user))

        assert result.granted is True


class TestChatRewards:
    def test_traction_message_grants_all_events(self, service, db, make_profile):
        user_id = make_profile()
        request = ChatRewardRequest(
            project_id=uuid.uuid4(),
            message_id="msg-1",
            intent="customer",
            traction_signal="Signed first paying customer",
        )

        result = service.grant_chat_rewards(user_id, request)

        # chat_prompt(5) + chat_customer(1) + customer_added(5)
        assert result.pineapples_earned == 11
        assert result.new_balance == 11
        assert [g.event_type for g in result.grants] == [
            "chat_prompt",
            "chat_customer",
            "customer_added",
        ]
        assert db.query(RewardEvent).filter_by(user_id=user_id).count() == 3

    def test_resending_same_message_is_idempotent(self, service, make_profile):
        user_id = make_profile()
        request = ChatRewardRequest(project_id=uuid.uuid4(), message_id="msg-2")

        service.grant_chat_rewards(user_id, request)
        again = service.grant_chat_rewards(user_id, request)

        assert again.pineapples_earned == 0
        assert again.new_balance == 5
        assert again.grants[0].granted is False

    def test_keys_use_message_id(self, service, db, make_profile):
        user_id = make_profile()
        project_id = uuid.uuid4()

        service.grant_chat_rewards(user_id, ChatRewardRequest(project_id=project_id, message_id="m-9"))

        row = db.query(RewardEvent).filter_by(user_id=user_id).one()
        assert row.idempotency_key == f"{user_id}:{project_id}:chat_prompt:m-9"

    def test_rate_limited_batch_grants_nothing(self, service, db, make_profile):
        user_id = make_profile(balance=3)
        seed_ledger_rows(db, user_id, 60, datetime.now(timezone.utc))

        result = service.grant_chat_rewards(
            user_id, ChatRewardRequest(project_id=uuid.uuid4(), message_id="m-1", intent="feature")
        )

        assert result.pineapples_earned == 0
        assert result.new_balance == 3
        assert all(not g.granted for g in result.grants)


    def test_chat_and_traction_are_recorded_as_activity(self, service, db, make_profile):
        user_id = make_profile()
        project_id = uuid.uuid4()
        request = ChatRewardRequest(
            project_id=project_id,
            message_id="m-rev",
            intent="revenue",
            message="We closed our first annual plan " + "x" * 200,
            traction_signal="  first $500 MRR  ",
        )

        service.grant_chat_rewards(user_id, request)

        events = {
            e.event_type: e
            for e in db.query(ActivityEvent)
            .filter(ActivityEvent.user_id == user_id, ActivityEvent.event_type != "reward_earned")
            .all()
        }
        assert set(events) == {"chat_prompt", "revenue_logged"}
        chat = events["chat_prompt"]
        assert chat.project_id == str(project_id)
        assert chat.event_metadata["tag"] == "revenue"
        assert chat.event_metadata["message_preview"] == request.message[:100]
        assert events["revenue_logged"].event_metadata == {"description": "first $500 MRR"}

    def test_resent_message_does_not_duplicate_activity(self, service, db, make_profile):
        user_id = make_profile()
        request = ChatRewardRequest(
            project_id=uuid.uuid4(),
            message_id="m-1",
            intent="feature",
            traction_signal="Shipped search",
        )

        service.grant_chat_rewards(user_id, request)
        service.grant_chat_rewards(user_id, request)

        assert db.query(ActivityEvent).filter_by(user_id=user_id, event_type="chat_prompt").count() == 1
        assert db.query(ActivityEvent).filter_by(user_id=user_id, event_type="feature_shipped").count() == 1

    def test_blank_traction_signal_is_not_rewarded(self, service, db, make_profile):
        user_id = make_profile()
        request = ChatRewardRequest(
            project_id=uuid.uuid4(), message_id="m-2", intent="customer", traction_signal="   "
        )

        result = service.grant_chat_rewards(user_id, request)

        assert [g.event_type for g in result.grants] == ["chat_prompt", "chat_customer"]
        assert db.query(ActivityEvent).filter_by(event_type="customer_added").count() == 0

    def test_batch_stops_at_remaining_quota(self, service, db, make_profile):
        user_id = make_profile(balance=0)
        seed_ledger_rows(db, user_id, 59, datetime.now(timezone.utc) - timedelta(minutes=1))

        result = service.grant_chat_rewards(
            user_id,
            ChatRewardRequest(
                project_id=uuid.uuid4(),
                message_id="m-3",
                intent="revenue",
                traction_signal="first $500 MRR",
            ),
        )

        assert [g.granted for g in result.grants] == [True, False, False]
        assert result.pineapples_earned == 5
        since = datetime.now(timezone.utc) - timedelta(minutes=60)
        assert RewardLedgerRepository(db).count_since(user_id, since) == 60


class TestWalletAndIntegrity:
    def test_wallet_includes_redemptions(self, service, db, settings, make_profile):
        from vamo.services.redemption_service import RedemptionService

        user_id = make_profile(balance=80)
        redeemed = RedemptionService(db, settings).redeem(user_id, 50)

        wallet = service.get_wallet(user_id)

        assert wallet.balance == 30
        assert [r.id for r in wallet.redemptions] == [redeemed.redemption.id]
        assert wallet.redemptions[0].status == "pending"
        assert wallet.rewards[0].amount == -50

    def test_wallet_lists_newest_first(self, service, make_profile):
        user_id = make_profile()
        service.grant_reward(user_id, grant_request(user_id, event_type="link_github", key="a"))
        service.grant_reward(user_id, grant_request(user_id, event_type="link_website", key="b"))

        wallet = service.get_wallet(user_id)

        assert wallet.balance == 8
        assert [r.idempotency_key for r in wallet.rewards] == ["b", "a"]
        assert wallet.redemptions == []

    def test_integrity_ok_after_grants(self, service, make_profile):
        user_id = make_profile()
        service.grant_reward(user_id, grant_request(user_id))
        service.grant_reward(user_id, grant_request(user_id))

        check = service.verify_integrity(user_id)

        assert check.status == "OK"
        assert check.cached_balance == check.ledger_balance == 10
        assert check.entry_count == 2

    def test_integrity_detects_mismatch(self, service, make_profile):
        # 원장 없이 잔액만 있는 프로필
        user_id = make_profile(balance=30)

        check = service.verify_integrity(user_id)

        assert check.status == "MISMATCH"
        assert check.cached_balance == 30
        assert check.ledger_balance == 0
