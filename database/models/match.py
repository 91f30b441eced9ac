import uuid

from sqlalchemy import (
    Column, Text, TIMESTAMP, ForeignKey, Boolean, Integer, Uuid,
    UniqueConstraint, CheckConstraint, Index
)
from sqlalchemy.orm import relationship

from .base import Base, JSONType, utcnow


class Freshness:
    """Recency bucket of a listing, frozen on the match at creation time."""
    RECENT = 'recent'
    AGING = 'aging'
    STALE = 'stale'


SKIPPED_VERDICT = 'skipped'


class MatchRecord(Base):
    """
    Oracle assessment of one listing for one user.

    Created exactly once per (user, job); later writes touch single fields.
    """
    __tablename__ = 'match_records'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    job_id = Column(Uuid, ForeignKey('job_listings.id', ondelete='CASCADE'), nullable=False)

    score = Column(Integer, nullable=False)
    verdict = Column(Text, nullable=False)
    reasoning = Column(Text, nullable=False)
    freshness = Column(Text, nullable=False, default=Freshness.RECENT)

    # Lifecycle
    clicked = Column(Boolean, nullable=False, default=False)
    skipped = Column(Boolean, nullable=False, default=False)
    skip_reason = Column(JSONType)  # {"category": ..., "details": ...}
    applied = Column(Boolean, nullable=True)  # None = unknown
    not_applied_reason = Column(JSONType)
    qa_thread = Column(JSONType, nullable=False, default=list)
    # Bumped by every append
    qa_version = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    job = relationship("JobListing", lazy="joined")

    __table_args__ = (
        UniqueConstraint('user_id', 'job_id', name='uq_match_records_user_job'),
        CheckConstraint('score >= 0 AND score <= 100', name='ck_match_records_score'),
        Index('idx_match_records_user_score', 'user_id', 'score'),
    )
