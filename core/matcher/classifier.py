"""
Match Classifier & Persister.

`score < min_score` is the only skip condition. Every scored pair is stored,
skipped ones included, so dedup never sends them to the oracle again.
"""
import logging
from typing import List, Any, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from core.exceptions import PersistenceConflict
from core.matcher.models import PairResult, ClassifiedMatch
from database.models import SKIPPED_VERDICT
from database.uow import UnitOfWork

logger = logging.getLogger(__name__)

DEFAULT_SKIP_REASONING = "Below minScore threshold"


def classify(results: List[PairResult], min_score: int) -> Tuple[List[ClassifiedMatch], List[ClassifiedMatch]]:
    """Split scored pairs into (kept, skipped)."""
    kept: List[ClassifiedMatch] = []
    skipped: List[ClassifiedMatch] = []

    for result in results:
        if result.score < min_score:
            skipped.append(ClassifiedMatch(
                job=result.job,
                score=result.score,
                verdict=SKIPPED_VERDICT,
                reasoning=result.reasoning or DEFAULT_SKIP_REASONING,
                freshness=result.freshness,
                skipped=True,
            ))
        else:
            kept.append(ClassifiedMatch(
                job=result.job,
                score=result.score,
                verdict=result.verdict,
                reasoning=result.reasoning,
                freshness=result.freshness,
                skipped=False,
            ))

    return kept, skipped


class MatchPersister:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _insert(self, user_id: Any, match: ClassifiedMatch) -> Any:
        try:
            with UnitOfWork(self.session_factory) as uow:
                record = uow.matches.insert_match(
                    user_id=user_id,
                    job_id=match.job.job_id,
                    score=match.score,
                    verdict=match.verdict,
                    reasoning=match.reasoning,
                    freshness=match.freshness,
                    skipped=match.skipped,
                )
                return record.id
        except IntegrityError as e:
            raise PersistenceConflict(user_id, match.job.job_id) from e

    def persist(self, user_id: Any, matches: List[ClassifiedMatch]) -> List[ClassifiedMatch]:
        """
        Insert each match in its own short transaction.

        A duplicate (user, job) only drops that one insert. Any other storage
        error propagates and aborts the caller's run for this user.
        """
        stored: List[ClassifiedMatch] = []
        for match in matches:
            try:
                match.match_id = self._insert(user_id, match)
            except PersistenceConflict as e:
                logger.warning(f"Skipping duplicate match: {e}")
                continue
            stored.append(match)
        return stored
