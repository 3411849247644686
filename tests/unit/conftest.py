"""In-memory fakes of every repository Protocol plus a rollback-capable unit of work.

All fakes share one FakeDatabase. unit_of_work() snapshots its tables on
entry and restores them when the block raises, so tests observe the same
all-or-nothing behavior as a PostgreSQL transaction.
"""

import asyncio
import copy
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.da_common.datetime_utils import utc_now
from src.da_common.enums import UserPnLStatus
from src.da_common.errors import ConsistencyError, ReferralNotFoundError, StoreUnavailableError
from src.da_common.events import DomainEvent
from src.da_ledger.domain.models import Transaction, Wallet
from src.da_ledger.domain.service import LedgerStore
from src.da_plan.domain.models import Plan
from src.da_pnl.domain.engine import DistributionEngine
from src.da_pnl.domain.models import CustomerPnLSummary, PnL, UserPnL, UserShare
from src.da_referral.domain.models import Referral
from src.da_user.domain.models import User

_TABLES = ("users", "plans", "referrals", "wallets", "transactions", "pnls", "links")


class FakeDatabase:
    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.plans: dict[str, Plan] = {}                 # user_id -> active plan
        self.referrals: dict[str, Referral] = {}         # customer_id -> referral
        self.wallets: dict[str, Wallet] = {}
        self.transactions: dict[str, Transaction] = {}
        self.pnls: dict[str, PnL] = {}
        self.links: dict[tuple[str, str], UserPnL] = {}
        self.commits = 0
        self.rollbacks = 0
        self._seq = 0
        # Row locks live outside the tables so a rollback never restores them
        self._row_locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._held: dict[int, list[asyncio.Lock]] = {}

    def next_id(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}-{self._seq}"

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[MagicMock]:
        snapshot = copy.deepcopy({name: getattr(self, name) for name in _TABLES})
        session = MagicMock(name="session")
        try:
            try:
                yield session
            except Exception:
                for name, table in snapshot.items():
                    setattr(self, name, table)
                self.rollbacks += 1
                raise
            self.commits += 1
        finally:
            for lock in self._held.pop(id(session), []):
                lock.release()

    async def lock_row(self, session: Any, key: tuple[str, str]) -> None:
        """SELECT ... FOR UPDATE: wait for other holders, keep until the unit ends."""
        held = self._held.setdefault(id(session), [])
        lock = self._row_locks.setdefault(key, asyncio.Lock())
        if lock not in held:
            await lock.acquire()
            held.append(lock)

    # --- seeding helpers ---

    def add_user(self, user_id: str, role: str = "CUSTOMER", status: str = "ACTIVE") -> User:
        user = User(
            id=user_id,
            unique_code=f"DA-{user_id}",
            username=user_id,
            email=f"{user_id}@example.com",
            role=role,
            status=status,
        )
        self.users[user_id] = user
        return user

    def add_wallet(self, user_id: str, balance: int = 0, archived: bool = False) -> Wallet:
        wallet = Wallet(
            id=f"wallet-{user_id}",
            user_id=user_id,
            balance=balance,
            archived_at=utc_now() if archived else None,
        )
        self.wallets[wallet.id] = wallet
        return wallet

    def subscribe(self, user_id: str, plan: Plan) -> None:
        self.plans[user_id] = plan

    def refer(self, agent_id: str, customer_id: str, is_active: bool = True) -> Referral:
        referral = Referral(
            id=f"ref-{customer_id}",
            agent_id=agent_id,
            customer_id=customer_id,
            is_active=is_active,
        )
        self.referrals[customer_id] = referral
        return referral

    def active_wallet(self, user_id: str) -> Wallet | None:
        for wallet in self.wallets.values():
            if wallet.user_id == user_id and wallet.archived_at is None:
                return wallet
        return None


def make_plan(customer: str = "70", platform: str = "30", plan_id: str = "plan-1") -> Plan:
    return Plan(
        id=plan_id,
        name="Standard",
        min_deposit=0,
        max_deposit=0,
        max_accounts=1,
        profit_sharing_customer=Decimal(customer),
        profit_sharing_platform=Decimal(platform),
        upfront_fee=0,
    )


# ---------------------------------------------------------------------------
# Repository fakes
# ---------------------------------------------------------------------------


class FakeUserRepository:
    def __init__(self, state: FakeDatabase) -> None:
        self._s = state

    async def get_by_id(self, db: Any, user_id: str) -> User | None:
        return self._s.users.get(user_id)

    async def get_many(self, db: Any, user_ids: list[str]) -> dict[str, User]:
        return {uid: self._s.users[uid] for uid in user_ids if uid in self._s.users}


class FakePlanRepository:
    def __init__(self, state: FakeDatabase) -> None:
        self._s = state

    async def get_active_plan_for_user(self, db: Any, user_id: str) -> Plan | None:
        return self._s.plans.get(user_id)

    async def get_active_plans_for_users(
        self, db: Any, user_ids: list[str]
    ) -> dict[str, Plan]:
        return {uid: self._s.plans[uid] for uid in user_ids if uid in self._s.plans}


class FakeReferralRepository:
    def __init__(self, state: FakeDatabase) -> None:
        self._s = state
        self.unavailable = False

    async def find_for_customer(self, db: Any, customer_id: str) -> Referral | None:
        referral = self._s.referrals.get(customer_id)
        return replace(referral) if referral else None

    async def find_for_customers(
        self, db: Any, customer_ids: list[str]
    ) -> dict[str, Referral]:
        return {
            cid: replace(self._s.referrals[cid])
            for cid in customer_ids
            if cid in self._s.referrals
        }

    async def increment_agent_earnings(
        self, db: Any, referral_id: str, amount: int
    ) -> Referral:
        if self.unavailable:
            raise StoreUnavailableError("connection reset")
        for referral in self._s.referrals.values():
            if referral.id == referral_id:
                referral.agent_total_earnings += amount
                return replace(referral)
        raise ReferralNotFoundError(referral_id)


class FakeLedgerRepository:
    """Balance changes are delta-based like the SQL UPDATE.

    With interleave=True every read yields to the event loop so concurrent
    callers genuinely interleave between read and write.
    """

    def __init__(self, state: FakeDatabase, interleave: bool = False) -> None:
        self._s = state
        self._interleave = interleave
        self.broken_wallets: set[str] = set()

    async def _maybe_yield(self) -> None:
        if self._interleave:
            await asyncio.sleep(0)

    async def get_wallet(self, db: Any, wallet_id: str) -> Wallet | None:
        await self._maybe_yield()
        wallet = self._s.wallets.get(wallet_id)
        return replace(wallet) if wallet else None

    async def get_active_wallet_for_user(self, db: Any, user_id: str) -> Wallet | None:
        wallet = self._s.active_wallet(user_id)
        return replace(wallet) if wallet else None

    async def list_wallets(self, db: Any) -> list[Wallet]:
        return [replace(w) for w in self._s.wallets.values()]

    async def create_wallet(self, db: Any, user_id: str) -> Wallet:
        wallet = Wallet(id=self._s.next_id("wallet"), user_id=user_id, balance=0)
        self._s.wallets[wallet.id] = wallet
        return replace(wallet)

    async def set_archived(self, db: Any, wallet_id: str, archived: bool) -> Wallet | None:
        wallet = self._s.wallets.get(wallet_id)
        if wallet is None or (wallet.archived_at is None) != archived:
            return None
        wallet.archived_at = utc_now() if archived else None
        return replace(wallet)

    async def apply_delta(self, db: Any, wallet_id: str, delta: int) -> Wallet:
        await self._maybe_yield()
        wallet = self._s.wallets.get(wallet_id)
        if wallet is None or wallet_id in self.broken_wallets:
            raise ConsistencyError(f"balance update matched no wallet {wallet_id}")
        wallet.balance += delta
        return replace(wallet)

    async def insert_transaction(
        self, db: Any, tx: Transaction
    ) -> tuple[Transaction, bool]:
        if tx.reference_id is not None:
            for existing in self._s.transactions.values():
                if (existing.reference_type, existing.reference_id) == (
                    tx.reference_type,
                    tx.reference_id,
                ):
                    return replace(existing), False
        stored = replace(tx, created_at=utc_now(), updated_at=utc_now())
        self._s.transactions[stored.id] = stored
        return replace(stored), True

    async def get_transaction(self, db: Any, transaction_id: str) -> Transaction | None:
        tx = self._s.transactions.get(transaction_id)
        return replace(tx) if tx else None

    async def transition_status(
        self, db: Any, transaction_id: str, new_status: str
    ) -> Transaction | None:
        await self._maybe_yield()
        tx = self._s.transactions.get(transaction_id)
        if tx is None or tx.status != "PENDING":
            return None
        tx.status = new_status
        return replace(tx)

    async def list_transactions(
        self, db: Any, wallet_id: str, cursor_id: str | None, limit: int
    ) -> list[Transaction]:
        rows = sorted(
            (t for t in self._s.transactions.values() if t.wallet_id == wallet_id),
            key=lambda t: t.id,
            reverse=True,
        )
        if cursor_id is not None:
            rows = [t for t in rows if t.id < cursor_id]
        return [replace(t) for t in rows[:limit]]

    async def total_active_balance(self, db: Any) -> int:
        return sum(w.balance for w in self._s.wallets.values() if w.archived_at is None)


class FakePnLRepository:
    def __init__(self, state: FakeDatabase) -> None:
        self._s = state

    def _view(self, pnl_id: str) -> PnL | None:
        pnl = self._s.pnls.get(pnl_id)
        if pnl is None:
            return None
        user_ids = sorted(uid for (pid, uid) in self._s.links if pid == pnl_id)
        return replace(pnl, user_ids=user_ids)

    async def create_with_links(
        self,
        db: Any,
        pnl_date: date,
        symbol: str,
        total_pnl: int,
        shares: dict[str, UserShare],
    ) -> PnL:
        pnl = PnL(
            id=self._s.next_id("pnl"),
            date=pnl_date,
            symbol=symbol,
            total_pnl=total_pnl,
            created_at=utc_now(),
        )
        self._s.pnls[pnl.id] = pnl
        for user_id, share in shares.items():
            self._s.links[(pnl.id, user_id)] = _link(pnl.id, user_id, share)
        return self._view(pnl.id)  # type: ignore[return-value]

    async def get_by_id(self, db: Any, pnl_id: str) -> PnL | None:
        return self._view(pnl_id)

    async def get_user_links(self, db: Any, pnl_id: str) -> list[UserPnL]:
        return [
            replace(link)
            for (pid, _), link in sorted(self._s.links.items())
            if pid == pnl_id
        ]

    async def claim_link(self, db: Any, pnl_id: str, user_id: str) -> bool:
        await self._s.lock_row(db, (pnl_id, user_id))
        link = self._s.links.get((pnl_id, user_id))
        return link is not None and link.needs_settlement

    async def mark_user_outcome(
        self,
        db: Any,
        pnl_id: str,
        user_id: str,
        status: UserPnLStatus,
        share: UserShare,
        reason: str | None,
    ) -> None:
        existing = self._s.links.get((pnl_id, user_id))
        if existing is not None and existing.needs_settlement:
            link = _link(pnl_id, user_id, share)
            link.status = status.value
            link.reason = reason
            self._s.links[(pnl_id, user_id)] = link

    async def settled_retained_sum(self, db: Any, pnl_id: str) -> int:
        return sum(
            link.divine_algo_retained
            for (pid, _), link in self._s.links.items()
            if pid == pnl_id and link.status == UserPnLStatus.SETTLED
        )

    async def set_divine_algo_share(self, db: Any, pnl_id: str, amount: int) -> PnL | None:
        pnl = self._s.pnls.get(pnl_id)
        if pnl is None:
            return None
        pnl.divine_algo_share = amount
        return self._view(pnl_id)

    async def list_pnl(
        self,
        db: Any,
        user_id: str | None = None,
        symbol: str | None = None,
        pnl_date: date | None = None,
    ) -> list[PnL]:
        views = [self._view(pid) for pid in self._s.pnls]
        return [
            p
            for p in views
            if p is not None
            and (symbol is None or p.symbol == symbol)
            and (pnl_date is None or p.date == pnl_date)
            and (user_id is None or user_id in p.user_ids)
        ]

    async def update(self, db: Any, pnl_id: str, fields: dict[str, Any]) -> PnL | None:
        pnl = self._s.pnls.get(pnl_id)
        if pnl is None:
            return None
        for key in ("date", "symbol", "total_pnl"):
            if key in fields:
                setattr(pnl, key, fields[key])
        return self._view(pnl_id)

    async def replace_links(
        self, db: Any, pnl_id: str, shares: dict[str, UserShare]
    ) -> None:
        settled = UserPnLStatus.SETTLED.value
        for key, link in list(self._s.links.items()):
            if key[0] == pnl_id and key[1] not in shares and link.status != settled:
                del self._s.links[key]
        for user_id, share in shares.items():
            existing = self._s.links.get((pnl_id, user_id))
            if existing is not None and existing.status == settled:
                continue
            link = _link(pnl_id, user_id, share)
            if existing is not None:
                link.status, link.reason = existing.status, existing.reason
            self._s.links[(pnl_id, user_id)] = link

    async def delete(self, db: Any, pnl_id: str) -> bool:
        if self._s.pnls.pop(pnl_id, None) is None:
            return False
        for key in [k for k in self._s.links if k[0] == pnl_id]:
            del self._s.links[key]
        return True

    async def platform_total(self, db: Any) -> int:
        return sum(p.divine_algo_share for p in self._s.pnls.values() if p.total_pnl > 0)

    async def customer_summary(self, db: Any, user_id: str) -> CustomerPnLSummary:
        links = [link for (_, uid), link in self._s.links.items() if uid == user_id]
        return CustomerPnLSummary(
            user_id=user_id,
            entries=len(links),
            total_pnl=sum(self._s.pnls[link.pnl_id].total_pnl for link in links),
            customer_share=sum(link.customer_share for link in links),
        )


def _link(pnl_id: str, user_id: str, share: UserShare) -> UserPnL:
    return UserPnL(
        pnl_id=pnl_id,
        user_id=user_id,
        customer_share=share.customer_share,
        platform_share=share.platform_share,
        agent_earnings=share.agent_earnings,
        divine_algo_retained=share.divine_algo_retained,
    )


class RecordingPublisher:
    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    async def publish(self, event: DomainEvent) -> None:
        self.events.append(event)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def state() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def plan_70_30() -> Plan:
    return make_plan("70", "30")


@pytest.fixture
def ledger_repo(state: FakeDatabase) -> FakeLedgerRepository:
    return FakeLedgerRepository(state)


@pytest.fixture
def referral_repo(state: FakeDatabase) -> FakeReferralRepository:
    return FakeReferralRepository(state)


@pytest.fixture
def pnl_repo(state: FakeDatabase) -> FakePnLRepository:
    return FakePnLRepository(state)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def engine(
    state: FakeDatabase,
    ledger_repo: FakeLedgerRepository,
    referral_repo: FakeReferralRepository,
    pnl_repo: FakePnLRepository,
    publisher: RecordingPublisher,
) -> DistributionEngine:
    return DistributionEngine(
        users=FakeUserRepository(state),
        plans=FakePlanRepository(state),
        referrals=referral_repo,
        ledger=LedgerStore(ledger_repo),
        pnl_repo=pnl_repo,
        publisher=publisher,
        uow_factory=state.unit_of_work,
    )


@pytest.fixture
def interleaved_ledger_repo(state: FakeDatabase) -> FakeLedgerRepository:
    return FakeLedgerRepository(state, interleave=True)


@pytest.fixture
def user_repo(state: FakeDatabase) -> FakeUserRepository:
    return FakeUserRepository(state)


@pytest.fixture
def db() -> MagicMock:
    """Request session stand-in: commit/rollback are awaited and inspected."""
    session = MagicMock(name="request_session")
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def interleaved_engine(
    state: FakeDatabase,
    interleaved_ledger_repo: FakeLedgerRepository,
    referral_repo: FakeReferralRepository,
    pnl_repo: FakePnLRepository,
    publisher: RecordingPublisher,
) -> DistributionEngine:
    """Engine whose ledger writes yield, so concurrent settles overlap."""
    return DistributionEngine(
        users=FakeUserRepository(state),
        plans=FakePlanRepository(state),
        referrals=referral_repo,
        ledger=LedgerStore(interleaved_ledger_repo),
        pnl_repo=pnl_repo,
        publisher=publisher,
        uow_factory=state.unit_of_work,
    )
