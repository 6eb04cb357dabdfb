import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import Identity, get_current_identity
from ..database import get_db
from ..services import applications, email_service, users

logger = logging.getLogger(__name__)

# Shares the /jobs prefix with job_routes and must be included first so that
# /jobs/my-applications is not captured by /jobs/{job_id}.
router = APIRouter(prefix="/jobs", tags=["applications"])


def _my_application(app: models.JobApplication) -> dict:
    job = app.job
    return {
        **schemas.ApplicationOut.model_validate(app).model_dump(),
        "title": job.title,
        "company": job.company,
        "location": job.location,
        "job_type": job.job_type,
        "work_style": job.work_style,
    }


def _applicant_view(app: models.JobApplication) -> dict:
    applicant = app.applicant
    profile = applicant.profile
    return {
        **schemas.ApplicationOut.model_validate(app).model_dump(),
        "applicant_name": applicant.name,
        "applicant_email": applicant.email,
        "applicant_phone": profile.phone if profile else None,
        "applicant_resume_url": profile.resume_url if profile else None,
    }


@router.get("/my-applications", response_model=schemas.ApiResponse[schemas.MyApplicationListData])
def list_my_applications(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    rows = applications.list_for_user(db, identity.id)
    return {"success": True, "data": {"applications": [_my_application(a) for a in rows]}}


@router.post(
    "/{job_id}/apply",
    response_model=schemas.ApiResponse[schemas.ApplicationCreatedData],
    status_code=status.HTTP_201_CREATED,
)
def apply_to_job(
    job_id: int,
    application_in: schemas.ApplicationCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    application = applications.apply_to_job(
        db,
        job_id,
        identity.id,
        cover_letter=application_in.cover_letter,
        resume_url=application_in.resume_url,
    )

    applicant = users.get_user(db, identity.id)
    if applicant:
        result = email_service.send_application_received(
            applicant.email, applicant.name, application.job.title, application.id
        )
        if not result["success"]:
            logger.warning("Confirmation email for application %s was not sent", application.id)

    return {
        "success": True,
        "message": "Application submitted successfully",
        "data": {"application_id": application.id},
    }


@router.get("/{job_id}/applications", response_model=schemas.ApiResponse[schemas.JobApplicantListData])
def list_job_applications(
    job_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    rows = applications.list_for_job(db, job_id, identity)
    return {"success": True, "data": {"applications": [_applicant_view(a) for a in rows]}}


@router.patch(
    "/{job_id}/applications/{application_id}",
    response_model=schemas.ApiResponse[schemas.ApplicationData],
)
def update_application_status(
    job_id: int,
    application_id: int,
    payload: schemas.ApplicationStatusUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    application = applications.update_status(db, application_id, job_id, payload.status, identity)
    return {
        "success": True,
        "message": "Application status updated",
        "data": {"application": application},
    }
