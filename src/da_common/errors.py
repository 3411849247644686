"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/Permission
  2xxx: Wallet/Ledger
  3xxx: Plan
  4xxx: Referral
  5xxx: User/PnL
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


class NotFoundError(AppError):
    """Marker base: a referenced record does not exist."""


# --- 1xxx: Auth/Permission ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid or expired token", 401)


class PermissionDeniedError(AppError):
    def __init__(self, resource: str, action: str) -> None:
        super().__init__(1006, f"Permission denied: {action} on {resource}", 403)


# --- 2xxx: Wallet/Ledger ---

class WalletNotFoundError(NotFoundError):
    def __init__(self, ref: str) -> None:
        super().__init__(2002, f"Active wallet not found: {ref}", 404)


class ActiveWalletExistsError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2003, f"User {user_id} already has an active wallet", 409)


class TransactionNotFoundError(NotFoundError):
    def __init__(self, transaction_id: str) -> None:
        super().__init__(2004, f"Transaction not found: {transaction_id}", 404)


class InvalidTransactionTransitionError(AppError):
    def __init__(self, transaction_id: str, current: str, requested: str) -> None:
        super().__init__(
            2005,
            f"Transaction {transaction_id} is {current}, cannot move to {requested}",
            409,
        )


class ConsistencyError(AppError):
    """An atomic balance update affected no row or detected corrupted state."""

    def __init__(self, detail: str) -> None:
        super().__init__(2006, f"Ledger consistency error: {detail}", 409)


# --- 3xxx: Plan ---

class PlanNotFoundError(NotFoundError):
    def __init__(self, plan_id: str) -> None:
        super().__init__(3001, f"Plan not found: {plan_id}", 404)


class InvalidShareError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3002, f"Invalid profit share: {detail}", 422)


class PlanInUseError(AppError):
    def __init__(self, plan_id: str) -> None:
        super().__init__(
            3003, f"Cannot delete plan {plan_id} while users are subscribed to it", 409
        )


# --- 4xxx: Referral ---

class ReferralNotFoundError(NotFoundError):
    def __init__(self, referral_id: str) -> None:
        super().__init__(4001, f"Referral not found: {referral_id}", 404)


class CustomerAlreadyReferredError(AppError):
    def __init__(self, customer_id: str) -> None:
        super().__init__(4002, f"Customer {customer_id} is already referred by an agent", 409)


# --- 5xxx: User/PnL ---

class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(5001, f"User not found: {user_id}", 404)


class PnLNotFoundError(NotFoundError):
    def __init__(self, pnl_id: str) -> None:
        super().__init__(5002, f"PnL entry not found: {pnl_id}", 404)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class ValidationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(9003, f"Validation failed: {detail}", 422)


class StoreUnavailableError(AppError):
    """Store I/O failure — retryable by the caller."""

    def __init__(self, detail: str = "Store unavailable") -> None:
        super().__init__(9004, detail, 503)
