"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the ScholarStream backend.
Controllers are intentionally thin: they resolve the caller through the
auth dependencies, delegate to services, and return JSON responses.
Domain errors raised by services are turned into `{"message": ...}`
bodies by the exception handlers installed in `create_app`.

Endpoints implemented:
- POST /jwt
- POST /users, GET /users/role, GET /users/{email}
- GET /dashboard/users, PATCH /dashboard/users/{id}/role,
  DELETE /dashboard/users/{id}, GET /dashboard/analytics
- GET, POST /scholarships; GET, PATCH, DELETE /scholarships/{id};
  GET /scholarships/{id}/reviews
- GET, POST /applications; GET, DELETE /applications/{id};
  PATCH /applications/{id}/status
- GET, POST /reviews; PATCH, DELETE /reviews/{id}
- GET /moderator/applications, GET, PATCH /moderator/applications/{id}
- GET /moderator/reviews, DELETE /moderator/reviews/{id}
"""

import json
import logging
import time
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import services
from .auth import CredentialService, Identity, get_credentials, get_identity, require_admin, require_moderator
from .config import Settings, settings as default_settings
from .database import Database, get_session
from .errors import Internal, ScholarStreamError
from .query import ScholarshipQuery
from .schemas import (
    ApplicationIn,
    ReviewIn,
    ReviewUpdate,
    RoleUpdate,
    ScholarshipIn,
    ScholarshipUpdate,
    StatusUpdate,
    TokenRequest,
    UserIn,
)

logger = logging.getLogger("scholarstream.api")

router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _application_service(session: Session, settings: Settings) -> services.ApplicationService:
    return services.ApplicationService(session, lock_terminal=settings.LOCK_TERMINAL_APPLICATIONS)


@router.get("/")
def home():
    """Banner route for quick manual checks."""
    return {"message": "ScholarStream server running"}


@router.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


# ---------- Credentials ----------

@router.post("/jwt")
def issue_token(payload: TokenRequest, credentials: CredentialService = Depends(get_credentials)):
    """Issue a one-hour bearer token for `email`."""
    return {"token": credentials.issue(payload.email, payload.name)}


# ---------- Users ----------

@router.post("/users")
def register_user(payload: UserIn, db: Session = Depends(get_session)):
    """Register a user (idempotent).

    Re-registering an existing email returns the stored record unchanged.
    """
    user, created = services.UserService(db).register(payload.email, payload.name, payload.photo_url)
    if not created:
        return {"message": "User already exists", "created": False, "user": user}
    return {"created": True, "user": user}


@router.get("/users/role")
def user_role(email: Optional[str] = None, db: Session = Depends(get_session)):
    """Return the role of `email`; unknown users are students.

    Roles are reported lower-case, so the default is `"student"`.
    """
    return {"role": services.UserService(db).role_for(email).value}


@router.get("/users/{email}")
def get_user(email: str, db: Session = Depends(get_session)):
    return services.UserService(db).get_by_email(email)


# ---------- Admin dashboard ----------

@router.get("/dashboard/users")
def list_users(db: Session = Depends(get_session), admin: Identity = Depends(require_admin)):
    return services.UserService(db).list_all()


@router.patch("/dashboard/users/{user_id}/role")
def change_user_role(user_id: int, payload: RoleUpdate, db: Session = Depends(get_session),
                     admin: Identity = Depends(require_admin)):
    """Set a user's role to student, moderator or admin (any casing)."""
    return services.UserService(db).change_role(user_id, payload.role)


@router.delete("/dashboard/users/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_session), admin: Identity = Depends(require_admin)):
    services.UserService(db).delete(user_id)
    return {"deleted": True}


@router.get("/dashboard/analytics")
def analytics(db: Session = Depends(get_session), admin: Identity = Depends(require_admin)):
    return services.AnalyticsService(db).summary()


# ---------- Scholarships ----------

@router.get("/scholarships")
def list_scholarships(
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    """Search, filter, sort and paginate scholarships.

    `sort` is one of `fee_asc`, `fee_desc`, `date_desc`; `total` counts all
    matches regardless of the requested page.
    """
    query = ScholarshipQuery.from_params(
        search, category, sort, page, limit,
        default_limit=settings.DEFAULT_PAGE_SIZE,
        max_limit=settings.MAX_PAGE_SIZE,
    )
    items, total = services.ScholarshipService(db).search(query)
    return {"scholarships": items, "total": total, "page": query.page, "limit": query.limit}


@router.post("/scholarships", status_code=201)
def create_scholarship(payload: ScholarshipIn, db: Session = Depends(get_session)):
    """Add a scholarship. Open to anonymous callers; edits and deletes are admin-only."""
    return services.ScholarshipService(db).create(payload)


@router.get("/scholarships/{scholarship_id}")
def get_scholarship(scholarship_id: int, db: Session = Depends(get_session)):
    return services.ScholarshipService(db).get(scholarship_id)


@router.get("/scholarships/{scholarship_id}/reviews")
def scholarship_reviews(scholarship_id: int, db: Session = Depends(get_session)):
    return services.ReviewService(db).list_for_scholarship(scholarship_id)


@router.patch("/scholarships/{scholarship_id}")
def update_scholarship(scholarship_id: int, payload: ScholarshipUpdate, db: Session = Depends(get_session),
                       admin: Identity = Depends(require_admin)):
    return services.ScholarshipService(db).update(scholarship_id, payload)


@router.delete("/scholarships/{scholarship_id}")
def delete_scholarship(scholarship_id: int, db: Session = Depends(get_session),
                       admin: Identity = Depends(require_admin)):
    services.ScholarshipService(db).delete(scholarship_id)
    return {"deleted": True}


# ---------- Applications ----------

@router.get("/applications")
def my_applications(email: Optional[str] = None, db: Session = Depends(get_session),
                    identity: Identity = Depends(get_identity), settings: Settings = Depends(get_settings)):
    """List the caller's applications; `email`, if given, must be the caller's."""
    return _application_service(db, settings).list_for_owner(identity, email)


@router.post("/applications", status_code=201)
def submit_application(payload: ApplicationIn, db: Session = Depends(get_session),
                       identity: Identity = Depends(get_identity), settings: Settings = Depends(get_settings)):
    """Apply to a scholarship. The application starts pending and unpaid."""
    return _application_service(db, settings).submit(identity, payload)


@router.get("/applications/{application_id}")
def get_application(application_id: int, db: Session = Depends(get_session),
                    settings: Settings = Depends(get_settings)):
    """Public single-application lookup."""
    return _application_service(db, settings).get(application_id)


@router.patch("/applications/{application_id}/status")
def set_application_status(application_id: int, payload: StatusUpdate, db: Session = Depends(get_session),
                           moderator: Identity = Depends(require_moderator),
                           settings: Settings = Depends(get_settings)):
    return _application_service(db, settings).set_status(application_id, payload.status, payload.feedback)


@router.delete("/applications/{application_id}")
def withdraw_application(application_id: int, db: Session = Depends(get_session),
                         identity: Identity = Depends(get_identity), settings: Settings = Depends(get_settings)):
    """Delete the caller's own application while it is still pending."""
    _application_service(db, settings).withdraw(identity, application_id)
    return {"deleted": True}


# ---------- Reviews ----------

@router.get("/reviews")
def my_reviews(email: Optional[str] = None, db: Session = Depends(get_session),
               identity: Identity = Depends(get_identity)):
    return services.ReviewService(db).list_for_owner(identity, email)


@router.post("/reviews", status_code=201)
def create_review(payload: ReviewIn, db: Session = Depends(get_session),
                  identity: Identity = Depends(get_identity)):
    """Review an approved application."""
    return services.ReviewService(db).create(identity, payload.application_id, payload.rating, payload.comment)


@router.patch("/reviews/{review_id}")
def update_review(review_id: int, payload: ReviewUpdate, db: Session = Depends(get_session),
                  identity: Identity = Depends(get_identity)):
    return services.ReviewService(db).update_own(identity, review_id, payload.rating, payload.comment)


@router.delete("/reviews/{review_id}")
def delete_review(review_id: int, db: Session = Depends(get_session),
                  identity: Identity = Depends(get_identity)):
    services.ReviewService(db).delete_own(identity, review_id)
    return {"deleted": True}


# ---------- Moderator panel ----------

@router.get("/moderator/applications")
def moderator_applications(status: Optional[str] = None, db: Session = Depends(get_session),
                           moderator: Identity = Depends(require_moderator),
                           settings: Settings = Depends(get_settings)):
    return _application_service(db, settings).list_all(status)


@router.get("/moderator/applications/{application_id}")
def moderator_application(application_id: int, db: Session = Depends(get_session),
                          moderator: Identity = Depends(require_moderator),
                          settings: Settings = Depends(get_settings)):
    return _application_service(db, settings).get(application_id)


@router.patch("/moderator/applications/{application_id}")
def moderator_update_application(application_id: int, payload: StatusUpdate, db: Session = Depends(get_session),
                                 moderator: Identity = Depends(require_moderator),
                                 settings: Settings = Depends(get_settings)):
    """Set status and/or feedback on an application."""
    return _application_service(db, settings).set_status(application_id, payload.status, payload.feedback)


@router.get("/moderator/reviews")
def moderator_reviews(db: Session = Depends(get_session), moderator: Identity = Depends(require_moderator)):
    return services.ReviewService(db).list_all()


@router.delete("/moderator/reviews/{review_id}")
def moderator_delete_review(review_id: int, db: Session = Depends(get_session),
                            moderator: Identity = Depends(require_moderator)):
    services.ReviewService(db).moderator_delete(review_id)
    return {"deleted": True}


# ---------- Error handling ----------

async def _domain_error_handler(request: Request, exc: ScholarStreamError):
    if exc.status_code >= 500:
        logger.error("domain_error %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)},
                        headers=getattr(exc, "headers", None))


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(status_code=400, content={"message": "; ".join(parts) or "Invalid input"})


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error %s %s", request.method, request.url.path)
    err = Internal(str(exc) or exc.__class__.__name__)
    return JSONResponse(status_code=err.status_code, content={"message": err.message})


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the application with its persistence and credential services.

    Tests pass their own `settings` and an in-memory `database`; the
    module-level `app` uses the environment defaults.
    """
    settings = settings or default_settings
    if not logging.getLogger().handlers:
        logging.basicConfig(level=settings.LOG_LEVEL)
    database = database or Database(settings.DATABASE_URL)
    database.create_all()

    app = FastAPI(title="ScholarStream API")
    app.state.settings = settings
    app.state.database = database
    app.state.credentials = CredentialService(
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        expire_hours=settings.JWT_EXPIRE_HOURS,
    )

    if settings.ALLOW_DEV_CORS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
        request.state.request_id = req_id
        started = time.perf_counter()
        response: Response
        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
            logger.exception(
                "request_failed %s",
                json.dumps(
                    {
                        "request_id": req_id,
                        "path": request.url.path,
                        "method": request.method,
                        "duration_ms": elapsed_ms,
                        "client": request.client.host if request.client else "unknown",
                    },
                    ensure_ascii=True,
                ),
            )
            raise
        response.headers["X-Request-ID"] = req_id
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        return response

    app.add_exception_handler(ScholarStreamError, _domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
    app.include_router(router)
    return app


app = create_app()
