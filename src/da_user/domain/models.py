"""Domain models for da_user — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.da_common.enums import UserStatus


@dataclass
class User:
    id: str
    unique_code: str        # human-facing code, e.g. "DA10042"
    username: str
    email: str
    role: str               # UserRole value
    status: str             # UserStatus value
    created_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE
