import uuid

from sqlalchemy import Column, Text, Integer, TIMESTAMP, Uuid, Index

from .base import Base, JSONType, utcnow


class JobListing(Base):
    """
    Ingested job listing. Immutable once written by the job feed.
    """
    __tablename__ = 'job_listings'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(Text, nullable=False)
    company = Column(Text, nullable=False)
    location = Column(Text, nullable=False, default='')

    salary_min = Column(Integer)
    salary_max = Column(Integer)
    salary_currency = Column(Text, default='USD')

    tags = Column(JSONType, nullable=False, default=list)
    source = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default='')
    url = Column(Text, nullable=False)

    posted_date = Column(TIMESTAMP(timezone=True))
    scraped_date = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_job_listings_posted', 'posted_date'),
        Index('idx_job_listings_scraped', 'scraped_date'),
    )
