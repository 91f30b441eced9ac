from .base import Base, JSONType, utcnow, ensure_utc
from .user import User
from .job import JobListing
from .match import MatchRecord, Freshness, SKIPPED_VERDICT
from .transaction import Transaction, TransactionType, TransactionStatus, CREDIT_APPLIED_KEY

__all__ = [
    'Base',
    'JSONType',
    'utcnow',
    'ensure_utc',
    'User',
    'JobListing',
    'MatchRecord',
    'Freshness',
    'SKIPPED_VERDICT',
    'Transaction',
    'TransactionType',
    'TransactionStatus',
    'CREDIT_APPLIED_KEY',
]
