"""Read models and maintenance actions behind the admin console."""
import logging
from dataclasses import dataclass

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from .. import models
from ..auth import Identity
from ..errors import Forbidden, NotFound
from .jobs import Page, publicly_visible

logger = logging.getLogger(__name__)

TOP_COMPANIES = 5
RECENT_ITEMS = 10


@dataclass
class UserFilters:
    search: str | None = None
    role: models.UserRole | None = None
    verified: bool | None = None


@dataclass
class JobFilters:
    search: str | None = None
    status: str = "all"
    job_type: models.JobType | None = None
    approval_status: models.ApprovalStatus | None = None


@dataclass
class ApplicationFilters:
    search: str | None = None
    status: models.ApplicationStatus | None = None
    job_id: int | None = None


def _month_start():
    return models.utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def _count(db: Session, model, *criteria) -> int:
    return db.query(func.count(model.id)).filter(*criteria).scalar() or 0


def dashboard(db: Session) -> dict:
    month_start = _month_start()
    Job = models.Job

    stats = {
        "total_users": _count(db, models.User),
        "total_jobs": _count(db, Job),
        "total_applications": _count(db, models.JobApplication),
        "active_jobs": _count(db, Job, *publicly_visible()),
        "pending_jobs": _count(db, Job, Job.approval_status == models.ApprovalStatus.PENDING),
        "new_users_this_month": _count(db, models.User, models.User.created_at >= month_start),
        "new_jobs_this_month": _count(db, Job, Job.created_at >= month_start),
        "new_applications_this_month": _count(
            db, models.JobApplication, models.JobApplication.applied_at >= month_start
        ),
    }

    top_companies = (
        db.query(Job.company, func.count(Job.id).label("job_count"))
        .filter(*publicly_visible())
        .group_by(Job.company)
        .order_by(func.count(Job.id).desc(), Job.company)
        .limit(TOP_COMPANIES)
        .all()
    )
    recent_users = (
        db.query(models.User)
        .order_by(models.User.created_at.desc(), models.User.id.desc())
        .limit(RECENT_ITEMS)
        .all()
    )
    recent_jobs = (
        db.query(Job)
        .options(joinedload(Job.owner))
        .order_by(Job.created_at.desc(), Job.id.desc())
        .limit(RECENT_ITEMS)
        .all()
    )
    return {
        "stats": stats,
        "top_companies": [{"company": c, "job_count": n} for c, n in top_companies],
        "recent_users": recent_users,
        "recent_jobs": recent_jobs,
    }


def _counts_by(db: Session, column, ids: list[int]) -> dict[int, int]:
    if not ids:
        return {}
    rows = db.query(column, func.count()).filter(column.in_(ids)).group_by(column).all()
    return dict(rows)


def list_users(db: Session, filters: UserFilters, page: int = 1, limit: int = 20) -> Page:
    User = models.User
    query = db.query(User)
    if filters.search:
        pattern = f"%{filters.search.strip()}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if filters.role:
        query = query.filter(User.role == filters.role)
    if filters.verified is not None:
        query = query.filter(User.email_verified == filters.verified)

    total = query.count()
    rows = (
        query.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    ids = [user.id for user in rows]
    job_counts = _counts_by(db, models.Job.created_by, ids)
    application_counts = _counts_by(db, models.JobApplication.user_id, ids)
    items = [
        {
            "user": user,
            "job_count": job_counts.get(user.id, 0),
            "application_count": application_counts.get(user.id, 0),
        }
        for user in rows
    ]
    return Page(items=items, total=total, page=page, limit=limit)


def list_jobs(db: Session, filters: JobFilters, page: int = 1, limit: int = 20) -> Page:
    Job = models.Job
    query = db.query(Job)
    if filters.search:
        pattern = f"%{filters.search.strip()}%"
        query = query.filter(
            or_(Job.title.ilike(pattern), Job.company.ilike(pattern), Job.location.ilike(pattern))
        )
    if filters.status == "active":
        query = query.filter(Job.is_active == True)  # noqa: E712
    elif filters.status == "inactive":
        query = query.filter(Job.is_active == False)  # noqa: E712
    if filters.job_type:
        query = query.filter(Job.job_type == filters.job_type)
    if filters.approval_status == models.ApprovalStatus.LEGACY_APPROVED:
        query = query.filter(Job.approval_status.is_(None))
    elif filters.approval_status:
        query = query.filter(Job.approval_status == filters.approval_status)

    total = query.count()
    rows = (
        query.options(joinedload(Job.owner))
        .order_by(Job.created_at.desc(), Job.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    counts = _counts_by(db, models.JobApplication.job_id, [job.id for job in rows])
    items = [{"job": job, "application_count": counts.get(job.id, 0)} for job in rows]
    return Page(items=items, total=total, page=page, limit=limit)


def list_applications(
    db: Session, filters: ApplicationFilters, page: int = 1, limit: int = 20
) -> Page:
    Application = models.JobApplication
    query = (
        db.query(Application)
        .join(models.Job, Application.job_id == models.Job.id)
        .join(models.User, Application.user_id == models.User.id)
    )
    if filters.search:
        pattern = f"%{filters.search.strip()}%"
        query = query.filter(
            or_(
                models.User.name.ilike(pattern),
                models.User.email.ilike(pattern),
                models.Job.title.ilike(pattern),
                models.Job.company.ilike(pattern),
            )
        )
    if filters.status:
        query = query.filter(Application.status == filters.status)
    if filters.job_id is not None:
        query = query.filter(Application.job_id == filters.job_id)

    total = query.count()
    rows = (
        query.options(joinedload(Application.job), joinedload(Application.applicant))
        .order_by(Application.applied_at.desc(), Application.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return Page(items=rows, total=total, page=page, limit=limit)


def toggle_verification(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if not user:
        raise NotFound("User not found")
    user.email_verified = not user.email_verified
    db.commit()
    db.refresh(user)
    logger.info("User %s email_verified set to %s", user.id, user.email_verified)
    return user


def delete_user(db: Session, user_id: int, admin: Identity) -> None:
    user = db.get(models.User, user_id)
    if not user:
        raise NotFound("User not found")
    if user.role == models.UserRole.ADMIN:
        raise Forbidden("Admin accounts cannot be deleted")

    # Jobs, applications, notifications and reset tokens go with the user
    # through ON DELETE CASCADE.
    db.delete(user)
    db.commit()
    logger.info("User %s deleted by admin %s", user_id, admin.id)


def toggle_job_status(db: Session, job_id: int, admin: Identity) -> models.Job:
    job = db.get(models.Job, job_id)
    if not job:
        raise NotFound("Job not found")
    job.is_active = not job.is_active
    db.commit()
    db.refresh(job)
    logger.info("Job %s is_active set to %s by admin %s", job.id, job.is_active, admin.id)
    return job
