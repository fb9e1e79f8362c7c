"""SQLModel data models.

This module defines the four collections of the platform as SQLModel
tables, plus the enumerations used for roles and application states.
Enumerated values are stored as lower-case strings.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Disjoint capability classes; no role implies another."""
    STUDENT = "student"
    MODERATOR = "moderator"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: str) -> "Role":
        """Case-insensitive lookup; raises ValueError for unknown roles."""
        return cls(str(value).strip().lower())


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ApplicationStatus.PENDING


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class User(SQLModel, table=True):
    """A registered user, keyed by email.

    `role` is mutated only through the admin dashboard.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, nullable=False, unique=True)
    name: Optional[str] = None
    photo_url: Optional[str] = None
    role: str = Field(default=Role.STUDENT.value, index=True)
    created_at: datetime = Field(default_factory=_utcnow)


class Scholarship(SQLModel, table=True):
    """A scholarship offer. Not owned by any user."""
    id: Optional[int] = Field(default=None, primary_key=True)
    scholarship_name: str = Field(index=True)
    university_name: str = Field(index=True)
    university_country: Optional[str] = None
    university_city: Optional[str] = None
    university_world_rank: Optional[int] = None
    university_image: Optional[str] = None
    subject_category: Optional[str] = None
    scholarship_category: Optional[str] = Field(default=None, index=True)
    degree: Optional[str] = None
    tuition_fees: Optional[float] = None
    application_fees: float = 0.0
    service_charge: float = 0.0
    post_date: Optional[date] = None
    deadline: Optional[date] = None
    description: Optional[str] = None


class Application(SQLModel, table=True):
    """A student's application against a `Scholarship`.

    Names and fees are copied from the scholarship at submission time so
    later scholarship edits do not rewrite history.
    """
    __table_args__ = (
        UniqueConstraint("scholarship_id", "user_email", name="uq_application_scholarship_user"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    scholarship_id: int = Field(index=True)
    user_email: str = Field(index=True)
    user_name: Optional[str] = None
    scholarship_name: str
    university_name: str
    scholarship_category: Optional[str] = None
    degree: Optional[str] = None
    application_fees: float = 0.0
    service_charge: float = 0.0
    phone: Optional[str] = None
    address: Optional[str] = None
    gender: Optional[str] = None
    study_gap: Optional[str] = None
    status: str = Field(default=ApplicationStatus.PENDING.value, index=True)
    payment_status: str = Field(default=PaymentStatus.UNPAID.value)
    feedback: str = ""
    applied_at: datetime = Field(default_factory=_utcnow)


class Review(SQLModel, table=True):
    """Feedback on an approved `Application`; at most one per application."""
    id: Optional[int] = Field(default=None, primary_key=True)
    application_id: int = Field(unique=True)
    scholarship_id: int = Field(index=True)
    scholarship_name: str
    university_name: str
    reviewer_name: Optional[str] = None
    reviewer_email: str = Field(index=True)
    rating: int
    comment: str = ""
    review_date: datetime = Field(default_factory=_utcnow)
