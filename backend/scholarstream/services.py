"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories and
enforce the domain rules: idempotent registration, admin role changes,
the application lifecycle (submit, moderate, withdraw) and the review
gate. Services raise `scholarstream.errors` exceptions; controllers never
decide outcomes themselves.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlmodel import Session

from . import models, repositories
from .auth import Identity, ensure_owner, resolve_role
from .errors import DuplicateApplication, InvalidInput, InvalidState, NotFound, PreconditionFailed
from .models import ApplicationStatus, PaymentStatus, Role
from .query import ScholarshipQuery
from .schemas import ApplicationIn, ScholarshipIn, ScholarshipUpdate

logger = logging.getLogger("scholarstream.services")

REQUIRED_SCHOLARSHIP_FIELDS = ("scholarship_name", "university_name", "application_fees", "service_charge")


class UserService:
    """User directory operations: registration, lookups and admin management."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, email: str, name: Optional[str] = None, photo_url: Optional[str] = None) -> Tuple[models.User, bool]:
        """Create a student account for `email` (idempotent).

        Returns `(user, created)`; an existing record is returned untouched.
        """
        existing = self.user_repo.get_by_email(email)
        if existing:
            return existing, False
        user = models.User(email=email, name=name, photo_url=photo_url, role=Role.STUDENT.value)
        user = self.user_repo.create(user)
        logger.info("user_registered email=%s", email)
        return user, True

    def get_by_email(self, email: str) -> models.User:
        user = self.user_repo.get_by_email(email)
        if not user:
            raise NotFound("User not found")
        return user

    def role_for(self, email: Optional[str]) -> Role:
        if not email:
            return Role.STUDENT
        return resolve_role(self.session, email)

    def list_all(self) -> List[models.User]:
        return self.user_repo.list_all()

    def change_role(self, user_id: int, role: str) -> models.User:
        """Set a user's role; accepts any casing and persists lower-case."""
        try:
            parsed = Role.parse(role)
        except ValueError:
            raise InvalidInput(f"Invalid role: {role!r}; expected one of student, moderator, admin")
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFound("User not found")
        previous = user.role
        user.role = parsed.value
        user = self.user_repo.save(user)
        logger.info("user_role_changed user_id=%s from=%s to=%s", user_id, previous, parsed.value)
        return user

    def delete(self, user_id: int):
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFound("User not found")
        email = user.email
        self.user_repo.delete(user)
        logger.info("user_deleted user_id=%s email=%s", user_id, email)


class ScholarshipService:
    """Create, browse and administer scholarships."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.ScholarshipRepository(session)

    def create(self, payload: ScholarshipIn) -> models.Scholarship:
        scholarship = models.Scholarship(**payload.model_dump())
        scholarship = self.repo.create(scholarship)
        logger.info("scholarship_created id=%s", scholarship.id)
        return scholarship

    def get(self, scholarship_id: int) -> models.Scholarship:
        scholarship = self.repo.get(scholarship_id)
        if not scholarship:
            raise NotFound("Scholarship not found")
        return scholarship

    def search(self, query: ScholarshipQuery) -> Tuple[List[models.Scholarship], int]:
        return self.repo.search(query)

    def update(self, scholarship_id: int, payload: ScholarshipUpdate) -> models.Scholarship:
        scholarship = self.get(scholarship_id)
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise InvalidInput("No fields to update")
        nulled = sorted(k for k in REQUIRED_SCHOLARSHIP_FIELDS if k in changes and changes[k] is None)
        if nulled:
            raise InvalidInput(f"Fields cannot be null: {', '.join(nulled)}")
        for key, value in changes.items():
            setattr(scholarship, key, value)
        return self.repo.save(scholarship)

    def delete(self, scholarship_id: int):
        scholarship = self.get(scholarship_id)
        self.repo.delete(scholarship)
        logger.info("scholarship_deleted id=%s", scholarship_id)


class ApplicationService:
    """Application lifecycle: pending -> approved | rejected.

    Students submit and withdraw their own applications; moderators set
    status and feedback. A pending application may be withdrawn by its
    owner; approved and rejected ones can only change through a moderator.
    """
    def __init__(self, session: Session, lock_terminal: bool = False):
        self.session = session
        self.lock_terminal = lock_terminal
        self.repo = repositories.ApplicationRepository(session)
        self.scholarship_repo = repositories.ScholarshipRepository(session)

    def submit(self, identity: Identity, payload: ApplicationIn) -> models.Application:
        """Create a pending, unpaid application for the caller.

        Fee and name fields are copied from the scholarship as it is now.
        Raises `NotFound` for an unknown scholarship and
        `DuplicateApplication` if the caller already applied to it.
        """
        scholarship = self.scholarship_repo.get(payload.scholarship_id)
        if not scholarship:
            raise NotFound("Scholarship not found")
        if self.repo.find_for_user(scholarship.id, identity.email):
            raise DuplicateApplication()
        application = models.Application(
            scholarship_id=scholarship.id,
            user_email=identity.email,
            user_name=payload.user_name or identity.name,
            scholarship_name=scholarship.scholarship_name,
            university_name=scholarship.university_name,
            scholarship_category=scholarship.scholarship_category,
            degree=scholarship.degree,
            application_fees=scholarship.application_fees,
            service_charge=scholarship.service_charge,
            phone=payload.phone,
            address=payload.address,
            gender=payload.gender,
            study_gap=payload.study_gap,
            status=ApplicationStatus.PENDING.value,
            payment_status=PaymentStatus.UNPAID.value,
            feedback="",
        )
        application = self.repo.create(application)
        logger.info("application_submitted id=%s scholarship_id=%s email=%s",
                    application.id, scholarship.id, identity.email)
        return application

    def list_for_owner(self, identity: Identity, email: Optional[str] = None) -> List[models.Application]:
        """List the caller's applications.

        An explicit `email` must echo the caller's own email.
        """
        if email is not None:
            ensure_owner(identity, email)
        return self.repo.list_for_user(identity.email)

    def get(self, application_id: int) -> models.Application:
        application = self.repo.get(application_id)
        if not application:
            raise NotFound("Application not found")
        return application

    def list_all(self, status: Optional[str] = None) -> List[models.Application]:
        if status:
            status = _parse_status(status).value
        return self.repo.list_all(status)

    def set_status(self, application_id: int, status: Optional[str] = None,
                   feedback: Optional[str] = None) -> models.Application:
        """Record a moderator decision.

        Moving an application out of approved/rejected is allowed (and
        logged) unless the service was built with `lock_terminal=True`.
        """
        if status is None and feedback is None:
            raise InvalidInput("status or feedback is required")
        application = self.get(application_id)
        current = ApplicationStatus(application.status)
        if status is not None:
            target = _parse_status(status)
            if current.is_terminal and target is not current:
                if self.lock_terminal:
                    raise InvalidState(f"Application already {current.value}")
                logger.warning("application_terminal_retransition id=%s from=%s to=%s",
                               application_id, current.value, target.value)
            application.status = target.value
        if feedback is not None:
            application.feedback = feedback
        application = self.repo.save(application)
        logger.info("application_status_set id=%s status=%s", application_id, application.status)
        return application

    def withdraw(self, identity: Identity, application_id: int):
        """Delete the caller's own application while it is still pending."""
        application = self.get(application_id)
        ensure_owner(identity, application.user_email)
        if application.status != ApplicationStatus.PENDING.value:
            raise InvalidState(f"Cannot delete an application that is {application.status}")
        self.repo.delete(application)
        logger.info("application_withdrawn id=%s email=%s", application_id, identity.email)


class ReviewService:
    """Review gate and review ownership rules."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.ReviewRepository(session)
        self.application_repo = repositories.ApplicationRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def create(self, identity: Identity, application_id: int, rating: int, comment: str = "") -> models.Review:
        """Create a review against an approved application.

        Scholarship and university names come from the application, not
        from the current scholarship record.
        """
        application = self.application_repo.get(application_id)
        if not application:
            raise NotFound("Application not found")
        if application.status != ApplicationStatus.APPROVED.value:
            raise PreconditionFailed("Cannot review before approval", status_code=403)
        if self.repo.get_for_application(application_id):
            raise PreconditionFailed("Already reviewed")
        review = models.Review(
            application_id=application.id,
            scholarship_id=application.scholarship_id,
            scholarship_name=application.scholarship_name,
            university_name=application.university_name,
            reviewer_name=self._reviewer_name(identity),
            reviewer_email=identity.email,
            rating=rating,
            comment=comment,
            review_date=datetime.now(timezone.utc),
        )
        review = self.repo.create(review)
        logger.info("review_created id=%s application_id=%s", review.id, application_id)
        return review

    def _reviewer_name(self, identity: Identity) -> str:
        if identity.name:
            return identity.name
        user = self.user_repo.get_by_email(identity.email)
        if user and user.name:
            return user.name
        return identity.email

    def list_for_owner(self, identity: Identity, email: Optional[str] = None) -> List[models.Review]:
        if email is not None:
            ensure_owner(identity, email)
        return self.repo.list_for_user(identity.email)

    def list_for_scholarship(self, scholarship_id: int) -> List[models.Review]:
        return self.repo.list_for_scholarship(scholarship_id)

    def list_all(self) -> List[models.Review]:
        return self.repo.list_all()

    def _get_owned(self, identity: Identity, review_id: int) -> models.Review:
        # absent and not-owned are indistinguishable to the caller
        review = self.repo.get_owned(review_id, identity.email)
        if not review:
            raise NotFound("Review not found")
        return review

    def update_own(self, identity: Identity, review_id: int, rating: Optional[int] = None,
                   comment: Optional[str] = None) -> models.Review:
        review = self._get_owned(identity, review_id)
        if rating is None and comment is None:
            raise InvalidInput("No fields to update")
        if rating is not None:
            review.rating = rating
        if comment is not None:
            review.comment = comment
        review.review_date = datetime.now(timezone.utc)
        return self.repo.save(review)

    def delete_own(self, identity: Identity, review_id: int):
        review = self._get_owned(identity, review_id)
        self.repo.delete(review)
        logger.info("review_deleted id=%s by=owner", review_id)

    def moderator_delete(self, review_id: int):
        review = self.repo.get(review_id)
        if not review:
            raise NotFound("Review not found")
        self.repo.delete(review)
        logger.info("review_deleted id=%s by=moderator", review_id)


class AnalyticsService:
    """Aggregate counts for the admin dashboard."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.scholarship_repo = repositories.ScholarshipRepository(session)
        self.application_repo = repositories.ApplicationRepository(session)
        self.review_repo = repositories.ReviewRepository(session)

    def summary(self) -> Dict[str, Any]:
        by_status = {s.value: 0 for s in ApplicationStatus}
        by_status.update(self.application_repo.count_by("status"))
        by_role = {r.value: 0 for r in Role}
        by_role.update(self.user_repo.count_by_role())
        return {
            "total_users": self.user_repo.count(),
            "total_scholarships": self.scholarship_repo.count(),
            "total_applications": self.application_repo.count(),
            "total_reviews": self.review_repo.count(),
            "total_fees_collected": self.application_repo.paid_fees_total(),
            "users_by_role": by_role,
            "applications_by_status": by_status,
            "applications_by_category": self.application_repo.count_by("scholarship_category"),
        }


def _parse_status(value: str) -> ApplicationStatus:
    try:
        return ApplicationStatus(str(value).strip().lower())
    except ValueError:
        raise InvalidInput(f"Invalid status: {value!r}; expected one of pending, approved, rejected")
