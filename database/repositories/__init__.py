from database.repositories.base import BaseRepository
from database.repositories.user import UserRepository
from database.repositories.job_listing import JobListingRepository
from database.repositories.match import MatchRepository
from database.repositories.transaction import TransactionRepository

__all__ = [
    'BaseRepository',
    'UserRepository',
    'JobListingRepository',
    'MatchRepository',
    'TransactionRepository',
]
