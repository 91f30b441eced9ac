from typing import Literal, Optional

from pydantic import BaseModel


class RejectionCategory:
    SALARY = 'salary'
    LOCATION = 'location'
    SKILLS_GAP = 'skills_gap'
    COMPANY_TYPE = 'company_type'
    ROLE_MISMATCH = 'role_mismatch'
    JOB_INACTIVE = 'job_inactive'
    OTHER = 'other'


# Says nothing about the user's preferences
NON_LEARNING_CATEGORIES = frozenset({RejectionCategory.JOB_INACTIVE})


class RejectionReason(BaseModel):
    category: Literal['salary', 'location', 'skills_gap', 'company_type', 'role_mismatch', 'job_inactive', 'other']
    details: Optional[str] = None

    @property
    def is_informative(self) -> bool:
        return self.category not in NON_LEARNING_CATEGORIES
