import enum
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from app.core.schemas import CamelModel
from app.core.security import sanitize_input


class ReviewStatus(str, enum.Enum):
    SELF_SUBMITTED = "self-submitted"
    COMPLETED = "completed"
    # Present in legacy documents only; no transition produces it
    ARCHIVED = "archived"

    @property
    def is_terminal(self) -> bool:
        return self in (ReviewStatus.COMPLETED, ReviewStatus.ARCHIVED)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class Review(CamelModel):
    id: str
    employee_email: str
    employee_name: str = ""
    manager_email: Optional[str] = None
    period: str = ""
    self_achievements: str = ""
    self_improvements: str = ""
    self_rating: Optional[int] = Field(default=None, ge=1, le=5)
    manager_comments: Optional[str] = None
    manager_rating: Optional[int] = Field(default=None, ge=1, le=5)
    status: ReviewStatus = ReviewStatus.SELF_SUBMITTED
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @field_validator("employee_email", "manager_email", mode="before")
    @classmethod
    def lower_emails(cls, value):
        value = _blank_to_none(value)
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("self_rating", "manager_rating", "manager_comments", mode="before")
    @classmethod
    def blank_optional(cls, value):
        # Browser forms stored "" for untouched inputs
        return _blank_to_none(value)

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal


class SelfReviewSubmit(CamelModel):
    period: str = Field(min_length=1, max_length=60)
    self_achievements: str = Field(default="", max_length=5000)
    self_improvements: str = Field(default="", max_length=5000)
    self_rating: int = Field(ge=1, le=5)

    @field_validator("period", "self_achievements", "self_improvements")
    @classmethod
    def clean_text(cls, value: str) -> str:
        return sanitize_input(value.strip())


class ManagerReviewSubmit(CamelModel):
    manager_comments: str = Field(default="", max_length=5000)
    manager_rating: int = Field(ge=1, le=5)

    @field_validator("manager_comments")
    @classmethod
    def clean_text(cls, value: str) -> str:
        return sanitize_input(value.strip())
