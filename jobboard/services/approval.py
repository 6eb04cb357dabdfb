"""Approval workflow for job postings.

A posting starts ``pending`` and an admin moves it to ``approved`` or
``rejected``. Each decision is a two-step saga:

1. The transition itself is committed. This step either fully happens or
   raises, and nothing is written on failure.
2. The owner is notified. Notification inserts are retried independently; if
   they keep failing the decision stands, an error is logged and the result
   reports ``notification_sent=False``. The transition is never compensated
   because of a notification failure.
"""
import logging
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from .. import models
from ..auth import Identity
from ..errors import AlreadyInState, Forbidden, InvalidTransition, NotFound, ValidationError
from . import notifications

logger = logging.getLogger(__name__)

MIN_REJECTION_REASON_LENGTH = 10

ApprovalStatus = models.ApprovalStatus

# Terminal states reachable from each state.
TRANSITIONS = {
    ApprovalStatus.PENDING: {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED},
    ApprovalStatus.APPROVED: set(),
    ApprovalStatus.REJECTED: set(),
    ApprovalStatus.LEGACY_APPROVED: set(),
}


@dataclass
class Decision:
    job: models.Job
    notification: models.Notification | None

    @property
    def notification_sent(self) -> bool:
        return self.notification is not None


def _same_state(current: ApprovalStatus, target: ApprovalStatus) -> bool:
    if current == ApprovalStatus.LEGACY_APPROVED:
        return target == ApprovalStatus.APPROVED
    return current == target


def check_transition(current: ApprovalStatus, target: ApprovalStatus) -> None:
    if _same_state(current, target):
        raise AlreadyInState(f"Job is already {target.value}")
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot change a job from {current.value} to {target.value}"
        )


def _require_admin(identity: Identity) -> None:
    if not identity.is_admin:
        raise Forbidden("Admin access required")


def _load_job(db: Session, job_id: int) -> models.Job:
    job = db.get(models.Job, job_id)
    if not job:
        raise NotFound("Job not found")
    return job


def _apply_transition(db: Session, job: models.Job, target: ApprovalStatus, **values) -> None:
    # The pending guard in the WHERE clause makes concurrent decisions on the
    # same job exclusive: only one UPDATE can match.
    result = db.execute(
        update(models.Job)
        .where(
            models.Job.id == job.id,
            models.Job.approval_status == ApprovalStatus.PENDING,
        )
        .values(approval_status=target, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        db.refresh(job)
        check_transition(job.approval_state, target)
        raise InvalidTransition(f"Job {job.id} is no longer pending")
    db.commit()
    db.refresh(job)


def approve_job(db: Session, job_id: int, admin: Identity) -> Decision:
    _require_admin(admin)
    job = _load_job(db, job_id)
    check_transition(job.approval_state, ApprovalStatus.APPROVED)

    _apply_transition(
        db,
        job,
        ApprovalStatus.APPROVED,
        is_active=True,
        approved_by=admin.id,
        approved_at=models.utcnow(),
        rejection_reason=None,
    )
    logger.info("Job %s approved by admin %s", job.id, admin.id)

    notification = notifications.notify_with_retry(
        db,
        user_id=job.created_by,
        type=models.NotificationType.JOB_APPROVED,
        title="Job approved",
        message=f'Your job posting "{job.title}" has been approved and is now live.',
        related_job_id=job.id,
    )
    return Decision(job=job, notification=notification)


def reject_job(db: Session, job_id: int, admin: Identity, reason: str | None) -> Decision:
    _require_admin(admin)
    reason = (reason or "").strip()
    if len(reason) < MIN_REJECTION_REASON_LENGTH:
        raise ValidationError.for_field(
            "rejection_reason",
            f"Rejection reason must be at least {MIN_REJECTION_REASON_LENGTH} characters",
        )
    job = _load_job(db, job_id)
    check_transition(job.approval_state, ApprovalStatus.REJECTED)

    _apply_transition(
        db,
        job,
        ApprovalStatus.REJECTED,
        is_active=False,
        approved_by=admin.id,
        approved_at=models.utcnow(),
        rejection_reason=reason,
    )
    logger.info("Job %s rejected by admin %s", job.id, admin.id)

    notification = notifications.notify_with_retry(
        db,
        user_id=job.created_by,
        type=models.NotificationType.JOB_REJECTED,
        title="Job rejected",
        message=f'Your job posting "{job.title}" was rejected. Reason: {reason}',
        related_job_id=job.id,
    )
    return Decision(job=job, notification=notification)


def list_pending_jobs(db: Session, admin: Identity) -> list[models.Job]:
    _require_admin(admin)
    return (
        db.query(models.Job)
        .options(joinedload(models.Job.owner))
        .filter(models.Job.approval_status == ApprovalStatus.PENDING)
        .order_by(models.Job.created_at.desc(), models.Job.id.desc())
        .all()
    )
