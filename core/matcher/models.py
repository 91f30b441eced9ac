"""
Matcher Models - Data structures passed between matching stages.

Contexts are plain snapshots built inside a unit of work, so worker threads
never touch ORM instances or sessions.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional

from database.models import User, JobListing, Freshness, ensure_utc

RECENT_DAYS = 7
AGING_DAYS = 15


def compute_freshness(scraped_date: Optional[datetime], now: datetime) -> str:
    """Bucket a listing by whole days since it was scraped."""
    if scraped_date is None:
        return Freshness.STALE
    days = (now - ensure_utc(scraped_date)).days
    if days < RECENT_DAYS:
        return Freshness.RECENT
    if days < AGING_DAYS:
        return Freshness.AGING
    return Freshness.STALE


@dataclass
class UserContext:
    user_id: Any
    email: str
    name: Optional[str]
    min_score: int
    profile: Dict[str, Any] = field(default_factory=dict)
    learned_insights: Optional[str] = None
    feedback_count: int = 0
    skipped_job_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_user(cls, user: User) -> "UserContext":
        return cls(
            user_id=user.id,
            email=user.email,
            name=user.name,
            min_score=user.min_score,
            profile=dict(user.profile or {}),
            learned_insights=user.learned_insights,
            feedback_count=user.feedback_count or 0,
            skipped_job_ids=[str(job_id) for job_id in (user.skipped_job_ids or [])],
        )

    def to_prompt(self) -> Dict[str, Any]:
        prompt = {
            'name': self.name,
            'resume': self.profile.get('resume'),
            'preferences': self.profile.get('preferences'),
            'questionsAndAnswers': self.profile.get('qa', []),
        }
        if self.learned_insights:
            prompt['learnedPreferences'] = self.learned_insights
        return prompt


@dataclass
class JobContext:
    job_id: Any
    title: str
    company: str
    location: str
    source: str
    url: str
    description: str = ""
    tags: List[str] = field(default_factory=list)
    salary: Optional[Dict[str, Any]] = None
    posted_date: Optional[datetime] = None
    scraped_date: Optional[datetime] = None

    @classmethod
    def from_listing(cls, job: JobListing) -> "JobContext":
        salary = None
        if job.salary_min is not None or job.salary_max is not None:
            salary = {
                'min': job.salary_min,
                'max': job.salary_max,
                'currency': job.salary_currency,
            }
        return cls(
            job_id=job.id,
            title=job.title,
            company=job.company,
            location=job.location or "",
            source=job.source,
            url=job.url,
            description=job.description or "",
            tags=list(job.tags or []),
            salary=salary,
            posted_date=job.posted_date,
            scraped_date=job.scraped_date,
        )

    def to_prompt(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'company': self.company,
            'location': self.location,
            'salary': self.salary,
            'tags': self.tags,
            'source': self.source,
            'description': self.description,
        }


@dataclass
class PairResult:
    """Scored (user, job) pair awaiting classification."""
    job: JobContext
    score: int
    verdict: str
    reasoning: str
    freshness: str


@dataclass
class ClassifiedMatch:
    job: JobContext
    score: int
    verdict: str
    reasoning: str
    freshness: str
    skipped: bool
    match_id: Any = None
