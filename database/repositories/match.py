import logging
from typing import Dict, List, Optional, Any, Set

from sqlalchemy import select, update, delete, func

from database.models import MatchRecord, JobListing
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class MatchRepository(BaseRepository):
    def get_matched_job_ids(self, user_id: Any) -> Set[str]:
        stmt = select(MatchRecord.job_id).where(MatchRecord.user_id == user_id)
        return {str(job_id) for job_id in self.db.execute(stmt).scalars().all()}

    def get_by_id(self, match_id: Any) -> Optional[MatchRecord]:
        return self.db.get(MatchRecord, match_id)

    def get_for_user(self, match_id: Any, user_id: Any) -> Optional[MatchRecord]:
        stmt = select(MatchRecord).where(
            MatchRecord.id == match_id,
            MatchRecord.user_id == user_id
        )
        return self.db.execute(stmt).scalars().unique().one_or_none()

    def get_existing_match(self, user_id: Any, job_id: Any) -> Optional[MatchRecord]:
        stmt = select(MatchRecord).where(
            MatchRecord.user_id == user_id,
            MatchRecord.job_id == job_id
        )
        return self.db.execute(stmt).scalars().unique().one_or_none()

    def insert_match(
        self,
        user_id: Any,
        job_id: Any,
        score: int,
        verdict: str,
        reasoning: str,
        freshness: str,
        skipped: bool = False
    ) -> MatchRecord:
        """Insert a new record. IntegrityError surfaces on a duplicate (user, job)."""
        record = MatchRecord(
            user_id=user_id,
            job_id=job_id,
            score=score,
            verdict=verdict,
            reasoning=reasoning,
            freshness=freshness,
            clicked=False,
            skipped=skipped,
            qa_thread=[],
        )
        self.db.add(record)
        self.db.flush()
        return record

    def list_for_user(self, user_id: Any, min_score: int = 0) -> List[MatchRecord]:
        stmt = (
            select(MatchRecord)
            .join(JobListing, JobListing.id == MatchRecord.job_id)
            .where(
                MatchRecord.user_id == user_id,
                MatchRecord.score >= min_score
            )
            .order_by(MatchRecord.score.desc(), MatchRecord.created_at.desc())
        )
        return self.db.execute(stmt).scalars().unique().all()

    def count_kept(self, user_id: Any) -> int:
        stmt = select(func.count(MatchRecord.id)).where(
            MatchRecord.user_id == user_id,
            MatchRecord.skipped.is_(False)
        )
        return self.db.execute(stmt).scalar_one()

    def update_fields(self, match_id: Any, **fields) -> int:
        """Targeted column update; never rewrites the whole record."""
        stmt = (
            update(MatchRecord)
            .where(MatchRecord.id == match_id)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.expire_all()
        return result.rowcount

    def replace_qa_thread(self, match_id: Any, expected_version: int, thread: List[Dict[str, Any]]) -> bool:
        """Conditional write of the Q&A thread; False when a concurrent append got there first."""
        stmt = (
            update(MatchRecord)
            .where(MatchRecord.id == match_id, MatchRecord.qa_version == expected_version)
            .values(qa_thread=thread, qa_version=MatchRecord.qa_version + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.expire_all()
        return result.rowcount == 1

    def delete_all_for_user(self, user_id: Any) -> int:
        stmt = (
            delete(MatchRecord)
            .where(MatchRecord.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.expire_all()
        if result.rowcount:
            logger.info(f"Deleted {result.rowcount} match records for user {user_id}")
        return result.rowcount
