"""Domain models for da_referral — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Referral:
    id: str
    agent_id: str
    customer_id: str
    is_active: bool = True
    is_manual_assignment: bool = False
    agent_total_earnings: int = 0         # cents, never decreases
    created_at: datetime | None = None
    updated_at: datetime | None = None
