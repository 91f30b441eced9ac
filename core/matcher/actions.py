"""
Match lifecycle actions taken by the user after a run.

All writes are targeted column updates on an existing record.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import sessionmaker
from tenacity import (
    retry,
    stop_after_attempt,
    wait_random,
    retry_if_exception_type,
    before_sleep_log,
)

from core.exceptions import MatchNotFound, UserNotFound, ConcurrentUpdateConflict
from core.feedback.models import RejectionReason
from core.feedback.service import PreferenceFeedbackService
from database.models import MatchRecord, utcnow
from database.uow import UnitOfWork

logger = logging.getLogger(__name__)

_append_retry = retry(
    stop=stop_after_attempt(5),
    wait=wait_random(0, 0.05),
    retry=retry_if_exception_type(ConcurrentUpdateConflict),
    before_sleep=before_sleep_log(logger, logging.INFO),
    reraise=True,
)


@dataclass
class MatchView:
    """Detached read model of a match joined with its listing."""
    id: Any
    job_id: Any
    score: int
    verdict: str
    reasoning: str
    freshness: str
    clicked: bool
    skipped: bool
    applied: Optional[bool]
    created_at: datetime
    job: Dict[str, Any] = field(default_factory=dict)
    skip_reason: Optional[Dict[str, Any]] = None
    not_applied_reason: Optional[Dict[str, Any]] = None
    qa_thread: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: MatchRecord) -> "MatchView":
        job = record.job
        return cls(
            id=record.id,
            job_id=record.job_id,
            score=record.score,
            verdict=record.verdict,
            reasoning=record.reasoning,
            freshness=record.freshness,
            clicked=record.clicked,
            skipped=record.skipped,
            applied=record.applied,
            created_at=record.created_at,
            skip_reason=record.skip_reason,
            not_applied_reason=record.not_applied_reason,
            qa_thread=list(record.qa_thread or []),
            job={
                'id': job.id,
                'title': job.title,
                'company': job.company,
                'location': job.location,
                'url': job.url,
                'source': job.source,
                'tags': list(job.tags or []),
                'posted_date': job.posted_date,
            },
        )


class MatchActionService:
    def __init__(self, session_factory: sessionmaker, feedback: Optional[PreferenceFeedbackService] = None):
        self.session_factory = session_factory
        self.feedback = feedback

    def _require_match(self, uow: UnitOfWork, user_id: Any, match_id: Any) -> MatchRecord:
        match = uow.matches.get_for_user(match_id, user_id)
        if match is None:
            raise MatchNotFound(f"Match {match_id} not found")
        return match

    def _trigger_feedback(self, user_id: Any, match_id: Any, reason: Optional[RejectionReason]) -> None:
        if reason is None or self.feedback is None:
            return
        try:
            self.feedback.submit(user_id, match_id, reason)
        except RuntimeError as e:
            # Executor already shut down
            logger.error(f"Could not queue preference learning for match {match_id}: {e}")

    def list_matches(self, user_id: Any, min_score: int = 0) -> List[MatchView]:
        with UnitOfWork(self.session_factory) as uow:
            return [MatchView.from_record(r) for r in uow.matches.list_for_user(user_id, min_score)]

    def get_match(self, user_id: Any, match_id: Any) -> MatchView:
        with UnitOfWork(self.session_factory) as uow:
            return MatchView.from_record(self._require_match(uow, user_id, match_id))

    def count_matches(self, user_id: Any) -> int:
        with UnitOfWork(self.session_factory) as uow:
            return uow.matches.count_kept(user_id)

    def mark_clicked(self, user_id: Any, match_id: Any) -> None:
        with UnitOfWork(self.session_factory) as uow:
            self._require_match(uow, user_id, match_id)
            uow.matches.update_fields(match_id, clicked=True, skipped=False)

    def skip_match(self, user_id: Any, match_id: Any, reason: Optional[RejectionReason] = None) -> None:
        with UnitOfWork(self.session_factory) as uow:
            self._require_match(uow, user_id, match_id)
            uow.matches.update_fields(
                match_id,
                skipped=True,
                skip_reason=reason.model_dump() if reason else None,
            )
        self._trigger_feedback(user_id, match_id, reason)

    def mark_applied(
        self,
        user_id: Any,
        match_id: Any,
        applied: bool,
        reason: Optional[RejectionReason] = None
    ) -> None:
        fields: Dict[str, Any] = {'applied': applied}
        if not applied and reason is not None:
            fields['not_applied_reason'] = reason.model_dump()

        with UnitOfWork(self.session_factory) as uow:
            self._require_match(uow, user_id, match_id)
            uow.matches.update_fields(match_id, **fields)

        if not applied:
            self._trigger_feedback(user_id, match_id, reason)

    def append_qa(self, user_id: Any, match_id: Any, question: str, answer: str) -> List[Dict[str, Any]]:
        """Append one entry to the thread. Entries written concurrently are never dropped."""
        entry = {'question': question, 'answer': answer, 'created_at': utcnow().isoformat()}
        return self._append_qa_entry(user_id, match_id, entry)

    @_append_retry
    def _append_qa_entry(self, user_id: Any, match_id: Any, entry: Dict[str, Any]) -> List[Dict[str, Any]]:
        with UnitOfWork(self.session_factory) as uow:
            match = self._require_match(uow, user_id, match_id)
            thread = list(match.qa_thread or []) + [entry]
            if not uow.matches.replace_qa_thread(match_id, match.qa_version, thread):
                raise ConcurrentUpdateConflict(f"Q&A thread of match {match_id} changed while appending")
        return thread

    @_append_retry
    def skip_job(self, user_id: Any, job_id: Any) -> None:
        with UnitOfWork(self.session_factory) as uow:
            user = uow.users.get_by_id(user_id)
            if user is None:
                raise UserNotFound(f"User {user_id} not found")
            current = list(user.skipped_job_ids or [])
            if str(job_id) in current:
                return
            if not uow.users.replace_skip_list(user_id, user.skip_list_version, current + [str(job_id)]):
                raise ConcurrentUpdateConflict(f"Skip-list of user {user_id} changed while appending")

    def reset_matches(self, user_id: Any) -> int:
        with UnitOfWork(self.session_factory) as uow:
            return uow.matches.delete_all_for_user(user_id)
