"""Job repository: persistence, filtered listing and owner-scoped mutation."""
import logging
import math
from dataclasses import dataclass

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session, joinedload

from .. import models
from ..auth import Identity
from ..errors import Forbidden, NotFound, ValidationError

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "title",
    "company",
    "location",
    "description",
    "requirements",
    "salary_min",
    "salary_max",
    "job_type",
    "work_style",
    "experience_level",
    "is_active",
)
REQUIRED_FIELDS = {
    "title",
    "company",
    "location",
    "description",
    "requirements",
    "job_type",
    "work_style",
    "experience_level",
    "is_active",
}


@dataclass
class JobFilters:
    keyword: str | None = None
    location: str | None = None
    job_type: models.JobType | None = None
    work_style: models.WorkStyle | None = None
    experience_level: models.ExperienceLevel | None = None
    salary_min: int | None = None
    salary_max: int | None = None


@dataclass
class Page:
    items: list
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def publicly_visible():
    return (
        models.Job.is_active == True,  # noqa: E712
        or_(
            models.Job.approval_status == models.ApprovalStatus.APPROVED,
            # Rows created before the approval workflow existed.
            models.Job.approval_status.is_(None),
        ),
    )


def apply_filters(query: Query, filters: JobFilters) -> Query:
    Job = models.Job
    if filters.keyword:
        pattern = f"%{filters.keyword.strip()}%"
        query = query.filter(
            Job.title.ilike(pattern) | Job.company.ilike(pattern) | Job.description.ilike(pattern)
        )
    if filters.location:
        query = query.filter(Job.location.ilike(f"%{filters.location.strip()}%"))
    if filters.job_type:
        query = query.filter(Job.job_type == filters.job_type)
    if filters.work_style:
        query = query.filter(Job.work_style == filters.work_style)
    if filters.experience_level:
        query = query.filter(Job.experience_level == filters.experience_level)
    # Either bound may satisfy a salary filter; this is not range containment.
    # A zero bound is treated as no filter.
    if filters.salary_min:
        query = query.filter(
            or_(Job.salary_min >= filters.salary_min, Job.salary_max >= filters.salary_min)
        )
    if filters.salary_max:
        query = query.filter(
            or_(Job.salary_min <= filters.salary_max, Job.salary_max <= filters.salary_max)
        )
    return query


def list_public_jobs(db: Session, filters: JobFilters, page: int = 1, limit: int = 20) -> Page:
    query = db.query(models.Job).filter(*publicly_visible())
    query = apply_filters(query, filters)

    total = query.count()
    jobs = (
        query.options(joinedload(models.Job.owner))
        .order_by(models.Job.created_at.desc(), models.Job.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return Page(items=jobs, total=total, page=page, limit=limit)


def get_job(db: Session, job_id: int) -> models.Job | None:
    return db.get(models.Job, job_id)


def get_job_or_404(db: Session, job_id: int) -> models.Job:
    job = get_job(db, job_id)
    if not job:
        raise NotFound("Job not found")
    return job


def get_visible_job(db: Session, job_id: int, identity: Identity | None) -> models.Job:
    job = get_job(db, job_id)
    if not job:
        raise NotFound("Job not found")
    if job.is_publicly_visible:
        return job
    if identity is not None and identity.can_manage(job.created_by):
        return job
    raise NotFound("Job not found")


def list_jobs_for_owner(db: Session, owner_id: int) -> list[models.Job]:
    return (
        db.query(models.Job)
        .filter(models.Job.created_by == owner_id)
        .order_by(models.Job.created_at.desc(), models.Job.id.desc())
        .all()
    )


def create_job(db: Session, fields: dict, owner_id: int) -> models.Job:
    values = {key: fields[key] for key in UPDATABLE_FIELDS if key in fields}
    # New postings stay hidden until an admin approves them.
    values["is_active"] = False
    job = models.Job(
        **values,
        created_by=owner_id,
        approval_status=models.ApprovalStatus.PENDING,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    logger.info("Job %s submitted for approval by user %s", job.id, owner_id)
    return job


def _load_for_mutation(db: Session, job_id: int, identity: Identity, action: str) -> models.Job:
    job = get_job_or_404(db, job_id)
    if not identity.can_manage(job.created_by):
        raise Forbidden(f"You can only {action} your own jobs")
    return job


def update_job(db: Session, job_id: int, fields: dict, identity: Identity) -> models.Job:
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(
            "Validation failed",
            errors=[{"field": key, "message": "Field cannot be updated"} for key in sorted(unknown)],
        )
    if not fields:
        raise ValidationError("No fields to update")
    for key in REQUIRED_FIELDS & set(fields):
        if fields[key] is None:
            raise ValidationError.for_field(key, f"{key} cannot be empty")

    job = _load_for_mutation(db, job_id, identity, "update")

    salary_min = fields.get("salary_min", job.salary_min)
    salary_max = fields.get("salary_max", job.salary_max)
    if salary_min is not None and salary_max is not None and salary_min > salary_max:
        raise ValidationError.for_field("salary_min", "salary_min must not exceed salary_max")

    for key, value in fields.items():
        if key == "is_active":
            value = bool(value)
        setattr(job, key, value)
    db.commit()
    db.refresh(job)
    return job


def soft_delete_job(db: Session, job_id: int, identity: Identity) -> models.Job:
    job = _load_for_mutation(db, job_id, identity, "delete")
    job.is_active = False
    db.commit()
    db.refresh(job)
    logger.info("Job %s deactivated by user %s", job.id, identity.id)
    return job
