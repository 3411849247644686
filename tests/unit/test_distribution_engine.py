"""Scenario tests for DistributionEngine against the in-memory fakes."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from src.da_common.enums import TransactionReferenceType, UserPnLStatus
from src.da_common.errors import (
    InvalidShareError,
    PnLNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from src.da_common.events import DistributionCompleted
from src.da_plan.domain.models import Plan
from src.da_pnl.domain.engine import (
    REASON_ALREADY_HANDLED,
    REASON_NO_PLAN,
    REASON_WALLET_NOT_FOUND,
    WARNING_AGENT_WALLET_NOT_FOUND,
    DistributionEngine,
)

PNL_DATE = date(2026, 3, 2)


def make_plan(customer: str, platform: str, plan_id: str = "plan-x") -> Plan:
    return Plan(
        id=plan_id,
        name="Custom",
        min_deposit=0,
        max_deposit=0,
        max_accounts=1,
        profit_sharing_customer=Decimal(customer),
        profit_sharing_platform=Decimal(platform),
        upfront_fee=0,
    )


def _balance(state, user_id: str) -> int:
    return state.active_wallet(user_id).balance


def _outcome(result, user_id: str):
    return next(o for o in result.outcomes if o.user_id == user_id)


def _posted_platform(state, pnl_id: str, user_id: str) -> int:
    return sum(
        t.amount
        for t in state.transactions.values()
        if t.reference_type == TransactionReferenceType.PNL_PLATFORM
        and t.reference_id == f"{pnl_id}:{user_id}"
    )


class TestSingleUser:
    async def test_plan_70_30_no_referral(self, state, engine, plan_70_30) -> None:
        state.add_user("u1")
        state.add_wallet("u1", balance=5000)
        state.subscribe("u1", plan_70_30)

        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1"])

        outcome = _outcome(result, "u1")
        assert outcome.status is UserPnLStatus.SETTLED
        assert outcome.share.customer_share == 700
        assert outcome.share.platform_share == 300
        assert outcome.share.agent_earnings == 0
        assert result.divine_algo_share == 300
        assert state.pnls[result.pnl.id].divine_algo_share == 300
        assert _balance(state, "u1") == 4700

        [tx] = state.transactions.values()
        assert tx.type == "WITHDRAWAL"
        assert tx.amount == 300
        assert tx.status == "SUCCESS"
        assert tx.reference_type == TransactionReferenceType.PNL_PLATFORM.value
        assert tx.reference_id == f"{result.pnl.id}:u1"
        assert "EURUSD" in tx.description

    async def test_active_referral_pays_agent_30_percent(
        self, state, engine, plan_70_30
    ) -> None:
        state.add_user("u1")
        state.add_user("agent", role="AGENT")
        state.add_wallet("u1", balance=5000)
        state.add_wallet("agent", balance=0)
        state.subscribe("u1", plan_70_30)
        state.refer("agent", "u1")

        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1"])

        outcome = _outcome(result, "u1")
        assert outcome.share.agent_earnings == 90
        assert outcome.share.divine_algo_retained == 210
        assert result.divine_algo_share == 210
        assert _balance(state, "u1") == 4700
        assert _balance(state, "agent") == 90
        assert state.referrals["u1"].agent_total_earnings == 90
        agent_txs = [
            t for t in state.transactions.values()
            if t.reference_type == TransactionReferenceType.PNL_AGENT.value
        ]
        assert len(agent_txs) == 1
        assert agent_txs[0].type == "DEPOSIT"
        assert agent_txs[0].amount == 90

    async def test_inactive_referral_gets_no_split(self, state, engine, plan_70_30) -> None:
        state.add_user("u1")
        state.add_user("agent", role="AGENT")
        state.add_wallet("u1", balance=5000)
        state.add_wallet("agent", balance=0)
        state.subscribe("u1", plan_70_30)
        state.refer("agent", "u1", is_active=False)

        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1"])

        assert result.divine_algo_share == 300
        assert _balance(state, "agent") == 0
        assert state.referrals["u1"].agent_total_earnings == 0

    async def test_agent_without_wallet_still_earns(self, state, engine, plan_70_30) -> None:
        state.add_user("u1")
        state.add_user("agent", role="AGENT")
        state.add_wallet("u1", balance=5000)
        state.subscribe("u1", plan_70_30)
        state.refer("agent", "u1")

        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1"])

        outcome = _outcome(result, "u1")
        assert outcome.status is UserPnLStatus.SETTLED
        assert outcome.warnings == [WARNING_AGENT_WALLET_NOT_FOUND]
        assert state.referrals["u1"].agent_total_earnings == 90
        assert result.divine_algo_share == 210

    async def test_user_without_plan_is_skipped(self, state, engine) -> None:
        state.add_user("u1")
        state.add_wallet("u1", balance=5000)

        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1"])

        outcome = _outcome(result, "u1")
        assert outcome.status is UserPnLStatus.SKIPPED
        assert outcome.reason == REASON_NO_PLAN
        assert outcome.share.platform_share == 0
        assert state.transactions == {}
        assert result.pnl.user_ids == ["u1"]

    async def test_loss_refunds_platform_share(self, state, engine, plan_70_30) -> None:
        state.add_user("u1")
        state.add_user("agent", role="AGENT")
        state.add_wallet("u1", balance=5000)
        state.add_wallet("agent", balance=0)
        state.subscribe("u1", plan_70_30)
        state.refer("agent", "u1")

        result = await engine.distribute(PNL_DATE, "EURUSD", -1000, ["u1"])

        outcome = _outcome(result, "u1")
        assert outcome.share.platform_share == -300
        assert outcome.share.agent_earnings == 0
        assert result.divine_algo_share == -300
        assert _balance(state, "u1") == 5300
        assert _balance(state, "agent") == 0
        [tx] = state.transactions.values()
        assert (tx.type, tx.amount) == ("DEPOSIT", 300)

    async def test_zero_platform_share_posts_nothing(self, state, engine) -> None:
        state.add_user("u1")
        state.add_wallet("u1", balance=5000)
        state.subscribe("u1", make_plan("100", "0"))

        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1"])

        assert _outcome(result, "u1").status is UserPnLStatus.SETTLED
        assert state.transactions == {}
        assert result.divine_algo_share == 0


class TestBatch:
    async def test_user_without_wallet_is_skipped_and_excluded(
        self, state, engine, plan_70_30
    ) -> None:
        for uid in ("u1", "u2", "u3"):
            state.add_user(uid)
            state.subscribe(uid, plan_70_30)
        state.add_wallet("u1", balance=5000)
        state.add_wallet("u2", balance=5000)

        result = await engine.distribute(PNL_DATE, "XAUUSD", 1000, ["u1", "u2", "u3"])

        assert result.user_ids_with(UserPnLStatus.SETTLED) == ["u1", "u2"]
        skipped = _outcome(result, "u3")
        assert skipped.status is UserPnLStatus.SKIPPED
        assert skipped.reason == REASON_WALLET_NOT_FOUND
        assert result.divine_algo_share == 600
        assert _balance(state, "u1") == 4700
        assert _balance(state, "u2") == 4700
        assert sorted(result.pnl.user_ids) == ["u1", "u2", "u3"]

    async def test_duplicate_user_ids_are_collapsed(self, state, engine, plan_70_30) -> None:
        state.add_user("u1")
        state.add_wallet("u1", balance=5000)
        state.subscribe("u1", plan_70_30)

        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1", "u1"])

        assert len(result.outcomes) == 1
        assert _balance(state, "u1") == 4700

    async def test_one_agent_many_customers(self, state, engine, plan_70_30) -> None:
        state.add_user("agent", role="AGENT")
        state.add_wallet("agent", balance=0)
        customers = [f"c{i}" for i in range(5)]
        for uid in customers:
            state.add_user(uid)
            state.add_wallet(uid, balance=10000)
            state.subscribe(uid, plan_70_30)
            state.refer("agent", uid)

        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, customers)

        assert result.divine_algo_share == 5 * 210
        assert _balance(state, "agent") == 5 * 90
        assert sum(r.agent_total_earnings for r in state.referrals.values()) == 5 * 90

    async def test_completion_event_published(
        self, state, engine, publisher, plan_70_30
    ) -> None:
        state.add_user("u1")
        state.add_user("u2")
        state.add_wallet("u1", balance=5000)
        state.subscribe("u1", plan_70_30)
        state.subscribe("u2", plan_70_30)

        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1", "u2"])

        [event] = publisher.events
        assert isinstance(event, DistributionCompleted)
        assert event.pnl_id == result.pnl.id
        assert event.divine_algo_share == 300
        assert event.settled_user_ids == ["u1"]
        assert event.skipped_user_ids == ["u2"]
        assert event.to_message()["event"] == "distribution_completed"


class TestRejectedBeforeWrites:
    async def test_unknown_user_rejects_whole_batch(self, state, engine, plan_70_30) -> None:
        state.add_user("u1")
        state.add_wallet("u1", balance=5000)
        state.subscribe("u1", plan_70_30)

        with pytest.raises(UserNotFoundError):
            await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1", "ghost"])

        assert state.pnls == {}
        assert state.transactions == {}
        assert _balance(state, "u1") == 5000

    async def test_invalid_plan_share_rejects_whole_batch(self, state, engine) -> None:
        state.add_user("u1")
        state.add_user("u2")
        state.add_wallet("u1", balance=5000)
        state.add_wallet("u2", balance=5000)
        state.subscribe("u1", make_plan("70", "30"))
        state.subscribe("u2", make_plan("-10", "130", plan_id="bad"))

        with pytest.raises(InvalidShareError):
            await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1", "u2"])

        assert state.pnls == {}
        assert state.links == {}
        assert state.transactions == {}

    @pytest.mark.parametrize(
        ("symbol", "user_ids"),
        [("EURUSD", []), ("   ", ["u1"]), ("EURUSD", [""])],
    )
    async def test_invalid_input(self, state, engine, symbol, user_ids) -> None:
        state.add_user("u1")
        with pytest.raises(ValidationError):
            await engine.distribute(PNL_DATE, symbol, 1000, user_ids)
        assert state.pnls == {}


class TestFailureIsolation:
    async def test_consistency_error_fails_only_that_user(
        self, state, engine, ledger_repo, plan_70_30
    ) -> None:
        for uid in ("u1", "u2"):
            state.add_user(uid)
            state.add_wallet(uid, balance=5000)
            state.subscribe(uid, plan_70_30)
        ledger_repo.broken_wallets.add("wallet-u1")

        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1", "u2"])

        failed = _outcome(result, "u1")
        assert failed.status is UserPnLStatus.FAILED
        assert failed.retryable is False
        assert "consistency" in failed.reason
        assert _balance(state, "u1") == 5000
        assert _balance(state, "u2") == 4700
        assert result.divine_algo_share == 300
        assert state.links[(result.pnl.id, "u1")].status == "FAILED"
        # The failed unit rolled back its transaction row too
        assert [t.wallet_id for t in state.transactions.values()] == ["wallet-u2"]

    async def test_store_outage_is_retryable_and_redistribute_settles(
        self, state, engine, referral_repo, plan_70_30
    ) -> None:
        state.add_user("agent", role="AGENT")
        state.add_wallet("agent", balance=0)
        for uid in ("u1", "u2"):
            state.add_user(uid)
            state.add_wallet(uid, balance=5000)
            state.subscribe(uid, plan_70_30)
        state.refer("agent", "u1")
        referral_repo.unavailable = True

        first = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1", "u2"])

        failed = _outcome(first, "u1")
        assert failed.status is UserPnLStatus.FAILED
        assert failed.retryable is True
        assert _balance(state, "u1") == 5000
        assert first.divine_algo_share == 300

        referral_repo.unavailable = False
        second = await engine.redistribute(first.pnl.id)

        assert [o.user_id for o in second.outcomes] == ["u1"]
        assert _outcome(second, "u1").status is UserPnLStatus.SETTLED
        assert second.divine_algo_share == 300 + 210
        assert _balance(state, "u1") == 4700
        assert _balance(state, "u2") == 4700
        assert _balance(state, "agent") == 90
        assert state.referrals["u1"].agent_total_earnings == 90


class TestRedistribute:
    async def test_never_reapplies_settled_users(self, state, engine, plan_70_30) -> None:
        state.add_user("u1")
        state.add_wallet("u1", balance=5000)
        state.subscribe("u1", plan_70_30)
        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1"])

        again = await engine.redistribute(result.pnl.id)

        assert again.outcomes == []
        assert again.divine_algo_share == 300
        assert _balance(state, "u1") == 4700
        assert len(state.transactions) == 1

    async def test_skipped_users_stay_skipped(self, state, engine, plan_70_30) -> None:
        state.add_user("u1")
        state.subscribe("u1", plan_70_30)
        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1"])
        state.add_wallet("u1", balance=5000)

        again = await engine.redistribute(result.pnl.id)

        assert again.outcomes == []
        assert _balance(state, "u1") == 5000

    async def test_concurrent_retries_settle_once(
        self, state, interleaved_engine, interleaved_ledger_repo, plan_70_30
    ) -> None:
        state.add_user("agent", role="AGENT")
        state.add_wallet("agent", balance=0)
        state.add_user("u1")
        state.add_wallet("u1", balance=5000)
        state.subscribe("u1", plan_70_30)
        state.refer("agent", "u1")
        interleaved_ledger_repo.broken_wallets.add("wallet-u1")
        first = await interleaved_engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1"])
        assert _outcome(first, "u1").status is UserPnLStatus.FAILED
        interleaved_ledger_repo.broken_wallets.clear()

        results = await asyncio.gather(
            interleaved_engine.redistribute(first.pnl.id),
            interleaved_engine.redistribute(first.pnl.id),
        )

        reasons = [_outcome(r, "u1").reason for r in results]
        assert reasons.count(REASON_ALREADY_HANDLED) == 1
        assert all(_outcome(r, "u1").status is UserPnLStatus.SETTLED for r in results)
        assert state.referrals["u1"].agent_total_earnings == 90
        assert _balance(state, "agent") == 90
        assert _balance(state, "u1") == 4700
        assert len(state.transactions) == 2
        assert [r.divine_algo_share for r in results] == [210, 210]

    async def test_unknown_pnl(self, engine: DistributionEngine) -> None:
        with pytest.raises(PnLNotFoundError):
            await engine.redistribute("pnl-missing")


class TestRestate:
    async def test_total_change_keeps_settled_split_matching_ledger(
        self, state, engine, plan_70_30
    ) -> None:
        state.add_user("u1")
        state.add_wallet("u1", balance=5000)
        state.subscribe("u1", plan_70_30)
        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1"])

        pnl = await engine.restate(result.pnl.id, {"total_pnl": 2000})

        link = state.links[(pnl.id, "u1")]
        assert pnl.total_pnl == 2000
        assert link.status == "SETTLED"
        assert link.platform_share == _posted_platform(state, pnl.id, "u1") == 300
        assert pnl.divine_algo_share == 300
        assert _balance(state, "u1") == 4700

    async def test_total_change_resplits_unsettled_links(
        self, state, engine, ledger_repo, plan_70_30
    ) -> None:
        for uid in ("u1", "u2"):
            state.add_user(uid)
            state.add_wallet(uid, balance=5000)
            state.subscribe(uid, plan_70_30)
        ledger_repo.broken_wallets.add("wallet-u2")
        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1", "u2"])
        ledger_repo.broken_wallets.clear()

        pnl = await engine.restate(result.pnl.id, {"total_pnl": 2000})
        assert state.links[(pnl.id, "u2")].platform_share == 600
        assert state.links[(pnl.id, "u2")].status == "FAILED"

        settled = await engine.redistribute(pnl.id)

        assert _posted_platform(state, pnl.id, "u1") == 300
        assert _posted_platform(state, pnl.id, "u2") == 600
        assert settled.divine_algo_share == 900
        assert _balance(state, "u2") == 4400

    async def test_dropping_a_settled_user_keeps_its_link(
        self, state, engine, plan_70_30
    ) -> None:
        for uid in ("u1", "u2"):
            state.add_user(uid)
            state.add_wallet(uid, balance=5000)
            state.subscribe(uid, plan_70_30)
        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1"])

        pnl = await engine.restate(result.pnl.id, {"user_ids": ["u2"]})

        assert pnl.user_ids == ["u1", "u2"]
        assert state.links[(pnl.id, "u1")].status == "SETTLED"
        assert state.links[(pnl.id, "u2")].status == "PENDING"
        assert pnl.divine_algo_share == 300

    async def test_added_user_settled_by_redistribute(self, state, engine, plan_70_30) -> None:
        for uid in ("u1", "u2"):
            state.add_user(uid)
            state.add_wallet(uid, balance=5000)
            state.subscribe(uid, plan_70_30)
        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1"])

        pnl = await engine.restate(result.pnl.id, {"user_ids": ["u1", "u2"]})
        assert state.links[(pnl.id, "u2")].status == "PENDING"
        assert pnl.divine_algo_share == 300

        settled = await engine.redistribute(pnl.id)
        assert settled.divine_algo_share == 600
        assert _balance(state, "u2") == 4700

    async def test_metadata_only_change_keeps_shares(self, state, engine, plan_70_30) -> None:
        state.add_user("u1")
        state.add_wallet("u1", balance=5000)
        state.subscribe("u1", plan_70_30)
        result = await engine.distribute(PNL_DATE, "EURUSD", 1000, ["u1"])

        pnl = await engine.restate(result.pnl.id, {"symbol": "GBPUSD"})

        assert pnl.symbol == "GBPUSD"
        assert pnl.divine_algo_share == 300

    async def test_unknown_pnl(self, engine: DistributionEngine) -> None:
        with pytest.raises(PnLNotFoundError):
            await engine.restate("pnl-missing", {"total_pnl": 5})
