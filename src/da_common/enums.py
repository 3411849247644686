"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    AGENT = "AGENT"
    CUSTOMER = "CUSTOMER"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    PENDING = "PENDING"


class PlanVisibility(str, Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"


class TransactionType(str, Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    PROFIT_SHARE = "PROFIT_SHARE"

    @property
    def sign(self) -> int:
        """Balance effect of a SUCCESS transaction: DEPOSIT credits, everything else debits."""
        return 1 if self is TransactionType.DEPOSIT else -1


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class TransactionReferenceType(str, Enum):
    """reference_type values used as ledger dedup keys."""
    PNL_PLATFORM = "PNL_PLATFORM"
    PNL_AGENT = "PNL_AGENT"
    WALLET_OPENING = "WALLET_OPENING"


class UserPnLStatus(str, Enum):
    """Per-user settle state of one distribution batch."""
    PENDING = "PENDING"
    SETTLED = "SETTLED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


class PermissionAction(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    DELETE = "delete"
