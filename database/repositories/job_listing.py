from datetime import datetime
from typing import List, Optional, Any

from sqlalchemy import select, func

from database.models import JobListing
from database.repositories.base import BaseRepository


class JobListingRepository(BaseRepository):
    def get_by_id(self, job_id: Any) -> Optional[JobListing]:
        return self.db.get(JobListing, job_id)

    def add_listing(self, **fields) -> JobListing:
        listing = JobListing(**fields)
        self.db.add(listing)
        self.db.flush()
        return listing

    def get_recent_listings(self, since: datetime) -> List[JobListing]:
        """Listings posted (or, lacking a post date, scraped) on or after `since`."""
        posted = func.coalesce(JobListing.posted_date, JobListing.scraped_date)
        stmt = select(JobListing).where(posted >= since).order_by(posted.desc(), JobListing.id)
        return self.db.execute(stmt).scalars().all()
