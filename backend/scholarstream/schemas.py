"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable and provide validation for the
route handlers. Fields the server owns (roles, application status,
payment status, timestamps) are deliberately absent from the create
payloads, so client-supplied values for them are ignored.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class TokenRequest(BaseModel):
    """Payload for `/jwt`: the identity the token is issued for."""
    email: str
    name: Optional[str] = None


class UserIn(BaseModel):
    """Self-registration payload."""
    email: str
    name: Optional[str] = None
    photo_url: Optional[str] = None


class RoleUpdate(BaseModel):
    role: str


class ScholarshipIn(BaseModel):
    scholarship_name: str
    university_name: str
    university_country: Optional[str] = None
    university_city: Optional[str] = None
    university_world_rank: Optional[int] = None
    university_image: Optional[str] = None
    subject_category: Optional[str] = None
    scholarship_category: Optional[str] = None
    degree: Optional[str] = None
    tuition_fees: Optional[float] = Field(default=None, ge=0)
    application_fees: float = Field(default=0.0, ge=0)
    service_charge: float = Field(default=0.0, ge=0)
    post_date: Optional[date] = None
    deadline: Optional[date] = None
    description: Optional[str] = None


class ScholarshipUpdate(BaseModel):
    """Partial update; only fields present in the request are written."""
    scholarship_name: Optional[str] = None
    university_name: Optional[str] = None
    university_country: Optional[str] = None
    university_city: Optional[str] = None
    university_world_rank: Optional[int] = None
    university_image: Optional[str] = None
    subject_category: Optional[str] = None
    scholarship_category: Optional[str] = None
    degree: Optional[str] = None
    tuition_fees: Optional[float] = Field(default=None, ge=0)
    application_fees: Optional[float] = Field(default=None, ge=0)
    service_charge: Optional[float] = Field(default=None, ge=0)
    post_date: Optional[date] = None
    deadline: Optional[date] = None
    description: Optional[str] = None


class ApplicationIn(BaseModel):
    """Submission payload. Status and payment are always set server-side."""
    scholarship_id: int
    user_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    gender: Optional[str] = None
    study_gap: Optional[str] = None


class StatusUpdate(BaseModel):
    """Moderator decision on an application.

    Either field may be omitted to keep its current value.
    """
    status: Optional[str] = None
    feedback: Optional[str] = None


class ReviewIn(BaseModel):
    application_id: int
    rating: int = Field(ge=1, le=5)
    comment: str = ""


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = None
