"""Application repository: one application per (job, user)."""
import logging

from pydantic import AnyHttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from .. import models
from ..auth import Identity
from ..errors import Conflict, Forbidden, NotFound, ValidationError

logger = logging.getLogger(__name__)

_url_adapter = TypeAdapter(AnyHttpUrl)


def _clean_resume_url(resume_url: str | None) -> str | None:
    if resume_url is None or not resume_url.strip():
        return None
    resume_url = resume_url.strip()
    try:
        _url_adapter.validate_python(resume_url)
    except PydanticValidationError:
        raise ValidationError.for_field("resume_url", "Resume URL must be valid")
    return resume_url


def _get_open_job(db: Session, job_id: int) -> models.Job:
    job = db.get(models.Job, job_id)
    if not job or not job.is_publicly_visible:
        raise NotFound("Job not found or no longer active")
    return job


def apply_to_job(
    db: Session,
    job_id: int,
    user_id: int,
    cover_letter: str | None = None,
    resume_url: str | None = None,
) -> models.JobApplication:
    resume_url = _clean_resume_url(resume_url)
    _get_open_job(db, job_id)

    existing = (
        db.query(models.JobApplication.id)
        .filter(models.JobApplication.job_id == job_id, models.JobApplication.user_id == user_id)
        .first()
    )
    if existing:
        raise Conflict("You have already applied for this job")

    application = models.JobApplication(
        job_id=job_id,
        user_id=user_id,
        cover_letter=cover_letter.strip() if cover_letter else None,
        resume_url=resume_url,
        status=models.ApplicationStatus.PENDING,
    )
    db.add(application)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent request inserted the same pair first.
        db.rollback()
        raise Conflict("You have already applied for this job")
    db.refresh(application)
    logger.info("User %s applied to job %s", user_id, job_id)
    return application


def list_for_user(db: Session, user_id: int) -> list[models.JobApplication]:
    return (
        db.query(models.JobApplication)
        .options(joinedload(models.JobApplication.job))
        .filter(models.JobApplication.user_id == user_id)
        .order_by(models.JobApplication.applied_at.desc(), models.JobApplication.id.desc())
        .all()
    )


def _load_managed_job(db: Session, job_id: int, identity: Identity) -> models.Job:
    job = db.get(models.Job, job_id)
    if not job:
        raise NotFound("Job not found")
    if not identity.can_manage(job.created_by):
        raise Forbidden("Not authorized to manage applications for this job")
    return job


def list_for_job(db: Session, job_id: int, identity: Identity) -> list[models.JobApplication]:
    _load_managed_job(db, job_id, identity)
    return (
        db.query(models.JobApplication)
        .options(
            joinedload(models.JobApplication.applicant).joinedload(models.User.profile)
        )
        .filter(models.JobApplication.job_id == job_id)
        .order_by(models.JobApplication.applied_at.desc(), models.JobApplication.id.desc())
        .all()
    )


def update_status(
    db: Session,
    application_id: int,
    job_id: int,
    new_status: models.ApplicationStatus | str,
    identity: Identity,
) -> models.JobApplication:
    try:
        new_status = models.ApplicationStatus(new_status)
    except ValueError:
        valid = ", ".join(s.value for s in models.ApplicationStatus)
        raise ValidationError.for_field("status", f"Status must be one of: {valid}")

    _load_managed_job(db, job_id, identity)
    application = (
        db.query(models.JobApplication)
        .filter(
            models.JobApplication.id == application_id,
            models.JobApplication.job_id == job_id,
        )
        .first()
    )
    if not application:
        raise NotFound("Application not found")

    application.status = new_status
    db.commit()
    db.refresh(application)
    logger.info(
        "Application %s for job %s set to %s by user %s",
        application.id,
        job_id,
        new_status.value,
        identity.id,
    )
    return application
