"""Domain events for the realtime dashboard.

Published after a distribution completes or a transaction changes status so
connected dashboards can refresh totals. Delivery is the notifier's concern;
the core only hands events to an EventPublisherProtocol.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Protocol

from src.da_common.datetime_utils import utc_now


@dataclass
class DomainEvent:
    name: ClassVar[str] = "event"
    occurred_at: str = field(default_factory=lambda: utc_now().isoformat(), kw_only=True)

    def to_message(self) -> dict[str, Any]:
        return {"event": self.name, "data": asdict(self)}


@dataclass
class DistributionCompleted(DomainEvent):
    name: ClassVar[str] = "distribution_completed"
    pnl_id: str
    symbol: str
    date: str
    total_pnl: int
    divine_algo_share: int
    settled_user_ids: list[str]
    skipped_user_ids: list[str]
    failed_user_ids: list[str]


@dataclass
class TransactionStatusChanged(DomainEvent):
    name: ClassVar[str] = "transaction_status_changed"
    transaction_id: str
    wallet_id: str
    status: str
    balance_delta: int


class EventPublisherProtocol(Protocol):
    async def publish(self, event: DomainEvent) -> None: ...
