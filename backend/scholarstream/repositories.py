"""Repository classes encapsulating database operations.

Each repository is small and focused on a single collection (users,
scholarships, applications, reviews). Repositories return SQLModel
objects and perform commits/refreshes where appropriate.
"""

from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from . import models
from .errors import DuplicateApplication
from .query import ScholarshipQuery


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get(self, user_id: int) -> Optional[models.User]:
        return self.session.get(models.User, user_id)

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email or `None` if not found."""
        stmt = select(models.User).where(models.User.email == email)
        return self.session.exec(stmt).first()

    def list_all(self) -> List[models.User]:
        return list(self.session.exec(select(models.User).order_by(col(models.User.id))).all())

    def save(self, user: models.User) -> models.User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def delete(self, user: models.User):
        self.session.delete(user)
        self.session.commit()

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.User)).one()

    def count_by_role(self) -> Dict[str, int]:
        stmt = select(models.User.role, func.count()).group_by(models.User.role)
        return {role: n for role, n in self.session.exec(stmt).all()}


class ScholarshipRepository:
    """CRUD and search for `Scholarship` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, scholarship: models.Scholarship) -> models.Scholarship:
        self.session.add(scholarship)
        self.session.commit()
        self.session.refresh(scholarship)
        return scholarship

    def get(self, scholarship_id: int) -> Optional[models.Scholarship]:
        return self.session.get(models.Scholarship, scholarship_id)

    def search(self, query: ScholarshipQuery) -> Tuple[List[models.Scholarship], int]:
        """Return one page of matches and the total match count.

        The total ignores pagination so callers can compute page counts.
        """
        items = self.session.exec(query.apply(select(models.Scholarship))).all()
        count_stmt = query.apply(select(func.count()).select_from(models.Scholarship), paginate=False)
        # ordering is irrelevant for a count
        count_stmt = count_stmt.order_by(None)
        total = self.session.exec(count_stmt).one()
        return list(items), total

    def save(self, scholarship: models.Scholarship) -> models.Scholarship:
        self.session.add(scholarship)
        self.session.commit()
        self.session.refresh(scholarship)
        return scholarship

    def delete(self, scholarship: models.Scholarship):
        self.session.delete(scholarship)
        self.session.commit()

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.Scholarship)).one()


class ApplicationRepository:
    """Persistence for `Application` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, application: models.Application) -> models.Application:
        """Insert an application.

        The (scholarship_id, user_email) unique constraint catches a
        concurrent duplicate that slipped past the caller's pre-check.
        """
        self.session.add(application)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateApplication() from exc
        self.session.refresh(application)
        return application

    def get(self, application_id: int) -> Optional[models.Application]:
        return self.session.get(models.Application, application_id)

    def find_for_user(self, scholarship_id: int, email: str) -> Optional[models.Application]:
        stmt = select(models.Application).where(
            models.Application.scholarship_id == scholarship_id,
            models.Application.user_email == email,
        )
        return self.session.exec(stmt).first()

    def list_for_user(self, email: str) -> List[models.Application]:
        stmt = select(models.Application).where(
            models.Application.user_email == email
        ).order_by(col(models.Application.applied_at).desc())
        return list(self.session.exec(stmt).all())

    def list_all(self, status: Optional[str] = None) -> List[models.Application]:
        stmt = select(models.Application)
        if status:
            stmt = stmt.where(models.Application.status == status)
        stmt = stmt.order_by(col(models.Application.applied_at).desc())
        return list(self.session.exec(stmt).all())

    def save(self, application: models.Application) -> models.Application:
        self.session.add(application)
        self.session.commit()
        self.session.refresh(application)
        return application

    def delete(self, application: models.Application):
        self.session.delete(application)
        self.session.commit()

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.Application)).one()

    def count_by(self, field: str) -> Dict[str, int]:
        """Group applications by a column name and count each group."""
        column = getattr(models.Application, field)
        stmt = select(column, func.count()).group_by(column)
        return {key if key is not None else "uncategorized": n for key, n in self.session.exec(stmt).all()}

    def paid_fees_total(self) -> float:
        stmt = select(func.coalesce(func.sum(models.Application.application_fees), 0.0)).where(
            models.Application.payment_status == models.PaymentStatus.PAID.value
        )
        return float(self.session.exec(stmt).one())


class ReviewRepository:
    """Persistence for `Review` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, review: models.Review) -> models.Review:
        self.session.add(review)
        self.session.commit()
        self.session.refresh(review)
        return review

    def get(self, review_id: int) -> Optional[models.Review]:
        return self.session.get(models.Review, review_id)

    def get_owned(self, review_id: int, email: str) -> Optional[models.Review]:
        """Return the review only if `email` wrote it."""
        stmt = select(models.Review).where(
            models.Review.id == review_id,
            models.Review.reviewer_email == email,
        )
        return self.session.exec(stmt).first()

    def get_for_application(self, application_id: int) -> Optional[models.Review]:
        stmt = select(models.Review).where(models.Review.application_id == application_id)
        return self.session.exec(stmt).first()

    def list_for_user(self, email: str) -> List[models.Review]:
        stmt = select(models.Review).where(
            models.Review.reviewer_email == email
        ).order_by(col(models.Review.review_date).desc())
        return list(self.session.exec(stmt).all())

    def list_for_scholarship(self, scholarship_id: int) -> List[models.Review]:
        stmt = select(models.Review).where(
            models.Review.scholarship_id == scholarship_id
        ).order_by(col(models.Review.review_date).desc())
        return list(self.session.exec(stmt).all())

    def list_all(self) -> List[models.Review]:
        stmt = select(models.Review).order_by(col(models.Review.review_date).desc())
        return list(self.session.exec(stmt).all())

    def save(self, review: models.Review) -> models.Review:
        self.session.add(review)
        self.session.commit()
        self.session.refresh(review)
        return review

    def delete(self, review: models.Review):
        self.session.delete(review)
        self.session.commit()

    def count(self) -> int:
        return self.session.exec(select(func.count()).select_from(models.Review)).one()
