import uuid

from sqlalchemy import Column, Text, Boolean, Integer, BigInteger, TIMESTAMP, Uuid, CheckConstraint, Index

from .base import Base, JSONType, utcnow


class User(Base):
    """
    Job seeker account as seen by the matching and billing core.

    `wallet_balance_cents` is a cached projection of the transaction log:
    opening balance + completed credits - completed debits.
    """
    __tablename__ = 'users'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(Text, nullable=False, unique=True)
    name = Column(Text)

    is_verified = Column(Boolean, nullable=False, default=False)
    matching_enabled = Column(Boolean, nullable=False, default=True)
    min_score = Column(Integer, nullable=False, default=30)

    # Wallet (minor currency units)
    wallet_balance_cents = Column(BigInteger, nullable=False, default=0)
    opening_balance_cents = Column(BigInteger, nullable=False, default=0)

    # Profile snapshot owned by the profile service: resume, preferences, Q&A
    profile = Column(JSONType, nullable=False, default=dict)

    # Explicit skip-list of job ids (strings)
    skipped_job_ids = Column(JSONType, nullable=False, default=list)
    # Bumped by every append
    skip_list_version = Column(Integer, nullable=False, default=0, server_default="0")

    # Learned preferences from rejection feedback
    learned_insights = Column(Text)
    feedback_count = Column(Integer, nullable=False, default=0)
    insights_updated_at = Column(TIMESTAMP(timezone=True))

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint('min_score >= 0 AND min_score <= 100', name='ck_users_min_score'),
        CheckConstraint('wallet_balance_cents >= 0', name='ck_users_wallet_non_negative'),
        Index('idx_users_eligibility', 'is_verified', 'matching_enabled'),
    )
