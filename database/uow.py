import logging

from sqlalchemy.orm import sessionmaker, Session

from database.repositories import (
    UserRepository,
    JobListingRepository,
    MatchRepository,
    TransactionRepository,
)

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Per-unit-of-work transaction scope.

    Binds every repository to one fresh Session. Commits on success,
    rolls back on exception, always closes.

    Usage:
        with UnitOfWork(session_factory) as uow:
            user = uow.users.get_by_id(user_id)
            # perform operations...
        # commit happens automatically on successful exit
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory
        self.session: Session = None

    def __enter__(self) -> "UnitOfWork":
        self.session = self.session_factory()
        self.users = UserRepository(self.session)
        self.jobs = JobListingRepository(self.session)
        self.matches = MatchRepository(self.session)
        self.transactions = TransactionRepository(self.session)
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc_type is None:
                self.session.commit()
            else:
                self.session.rollback()
        finally:
            self.session.close()
        return False
