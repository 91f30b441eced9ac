"""
Service-level exceptions.

Per-pair and per-path failures are contained where they happen; these types
let callers tell the recoverable cases apart.
"""


class ServiceException(Exception):
    """Base exception for service layer errors."""
    pass


class OracleFailure(ServiceException):
    """Scoring or synthesis call failed, timed out, or returned malformed output."""
    pass


class PersistenceConflict(ServiceException):
    """A (user, job) match record already exists."""

    def __init__(self, user_id, job_id):
        super().__init__(f"Match already exists for user {user_id} and job {job_id}")
        self.user_id = user_id
        self.job_id = job_id


class GatewaySignatureInvalid(ServiceException):
    """Signature from the client or the webhook did not verify."""
    pass


class GatewayUnreachable(ServiceException):
    """The payment gateway could not be reached or answered with a server error."""
    pass


class InsufficientBalance(ServiceException):
    """Wallet balance is below the daily fee."""

    def __init__(self, user_id, balance_cents: int, fee_cents: int):
        super().__init__(
            f"User {user_id} balance {balance_cents} is below the fee {fee_cents}"
        )
        self.user_id = user_id
        self.balance_cents = balance_cents
        self.fee_cents = fee_cents


class StaleTransactionUnresolved(ServiceException):
    """A pending credit outlived the staleness window without a payment."""
    pass


class TransactionNotFound(ServiceException):
    pass


class MatchNotFound(ServiceException):
    pass


class UserNotFound(ServiceException):
    pass


class InvalidTopUpAmount(ServiceException):
    pass


class ConcurrentUpdateConflict(ServiceException):
    """A list column changed between read and write; the caller re-reads and retries."""
    pass
