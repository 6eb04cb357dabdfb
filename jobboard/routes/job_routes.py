from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import Identity, get_current_admin, get_current_employer, get_optional_identity
from ..database import get_db
from ..services import approval, jobs

router = APIRouter(prefix="/jobs", tags=["jobs"])


# Optional auth: a bad or missing token still gets the public listing.
@router.get(
    "",
    response_model=schemas.ApiResponse[schemas.JobListData],
    dependencies=[Depends(get_optional_identity)],
)
def list_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    keyword: Optional[str] = None,
    location: Optional[str] = None,
    job_type: Optional[models.JobType] = None,
    work_style: Optional[models.WorkStyle] = None,
    experience_level: Optional[models.ExperienceLevel] = None,
    salary_min: Optional[int] = Query(None, ge=0, le=schemas.SALARY_CEILING),
    salary_max: Optional[int] = Query(None, ge=0, le=schemas.SALARY_CEILING),
    db: Session = Depends(get_db),
):
    filters = jobs.JobFilters(
        keyword=keyword,
        location=location,
        job_type=job_type,
        work_style=work_style,
        experience_level=experience_level,
        salary_min=salary_min,
        salary_max=salary_max,
    )
    result = jobs.list_public_jobs(db, filters, page=page, limit=limit)
    return {
        "success": True,
        "data": {
            "jobs": result.items,
            "pagination": {
                "page": result.page,
                "limit": result.limit,
                "total": result.total,
                "pages": result.pages,
            },
        },
    }


@router.get("/my-jobs", response_model=schemas.ApiResponse[schemas.JobListData])
def list_my_jobs(
    db: Session = Depends(get_db),
    employer: Identity = Depends(get_current_employer),
):
    own = jobs.list_jobs_for_owner(db, employer.id)
    return {
        "success": True,
        "data": {
            "jobs": own,
            "pagination": {"page": 1, "limit": len(own), "total": len(own), "pages": 1},
        },
    }


@router.get("/pending/list", response_model=schemas.ApiResponse[schemas.PendingJobListData])
def list_pending_jobs(
    db: Session = Depends(get_db),
    admin: Identity = Depends(get_current_admin),
):
    return {"success": True, "data": {"jobs": approval.list_pending_jobs(db, admin)}}


@router.post(
    "",
    response_model=schemas.ApiResponse[schemas.JobData],
    status_code=status.HTTP_201_CREATED,
)
def create_job(
    job_in: schemas.JobCreate,
    db: Session = Depends(get_db),
    employer: Identity = Depends(get_current_employer),
):
    job = jobs.create_job(db, job_in.model_dump(), employer.id)
    return {
        "success": True,
        "message": "Job submitted for approval",
        "data": {"job": job},
    }


@router.get("/{job_id}", response_model=schemas.ApiResponse[schemas.JobData])
def get_job(
    job_id: int,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_optional_identity),
):
    job = jobs.get_visible_job(db, job_id, identity)
    return {"success": True, "data": {"job": job}}


@router.put("/{job_id}", response_model=schemas.ApiResponse[schemas.JobData])
def update_job(
    job_id: int,
    job_in: schemas.JobUpdate,
    db: Session = Depends(get_db),
    employer: Identity = Depends(get_current_employer),
):
    job = jobs.update_job(db, job_id, job_in.model_dump(exclude_unset=True), employer)
    return {"success": True, "message": "Job updated successfully", "data": {"job": job}}


@router.delete("/{job_id}", response_model=schemas.ApiResponse[None])
def delete_job(
    job_id: int,
    db: Session = Depends(get_db),
    employer: Identity = Depends(get_current_employer),
):
    jobs.soft_delete_job(db, job_id, employer)
    return {"success": True, "message": "Job deleted successfully"}


@router.post("/{job_id}/approve", response_model=schemas.ApiResponse[schemas.DecisionData])
def approve_job(
    job_id: int,
    db: Session = Depends(get_db),
    admin: Identity = Depends(get_current_admin),
):
    decision = approval.approve_job(db, job_id, admin)
    return {
        "success": True,
        "message": "Job approved successfully",
        "data": {"job": decision.job, "notification_sent": decision.notification_sent},
    }


@router.post("/{job_id}/reject", response_model=schemas.ApiResponse[schemas.DecisionData])
def reject_job(
    job_id: int,
    payload: schemas.RejectRequest,
    db: Session = Depends(get_db),
    admin: Identity = Depends(get_current_admin),
):
    decision = approval.reject_job(db, job_id, admin, payload.rejection_reason)
    return {
        "success": True,
        "message": "Job rejected",
        "data": {"job": decision.job, "notification_sent": decision.notification_sent},
    }
