from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import Identity, get_current_admin
from ..database import get_db
from ..services import admin as admin_service
from ..services.jobs import Page

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(get_current_admin)],
)


def _pagination(result: Page) -> dict:
    return {
        "page": result.page,
        "limit": result.limit,
        "total": result.total,
        "pages": result.pages,
    }


def _admin_user(row: dict) -> dict:
    return {
        **schemas.UserOut.model_validate(row["user"]).model_dump(),
        "job_count": row["job_count"],
        "application_count": row["application_count"],
    }


def _admin_job(row: dict) -> dict:
    return {
        **schemas.PendingJobOut.model_validate(row["job"]).model_dump(),
        "application_count": row["application_count"],
    }


def _admin_application(app: models.JobApplication) -> dict:
    return {
        **schemas.ApplicationOut.model_validate(app).model_dump(),
        "job_title": app.job.title,
        "company": app.job.company,
        "applicant_name": app.applicant.name,
        "applicant_email": app.applicant.email,
    }


@router.get("/dashboard", response_model=schemas.ApiResponse[schemas.DashboardData])
def get_dashboard(db: Session = Depends(get_db)):
    return {"success": True, "data": admin_service.dashboard(db)}


@router.get("/users", response_model=schemas.ApiResponse[schemas.AdminUserListData])
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[models.UserRole] = None,
    verified: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    filters = admin_service.UserFilters(search=search, role=role, verified=verified)
    result = admin_service.list_users(db, filters, page=page, limit=limit)
    return {
        "success": True,
        "data": {
            "users": [_admin_user(row) for row in result.items],
            "pagination": _pagination(result),
        },
    }


@router.get("/jobs", response_model=schemas.ApiResponse[schemas.AdminJobListData])
def list_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    status: Literal["all", "active", "inactive"] = "all",
    job_type: Optional[models.JobType] = Query(None, alias="type"),
    approval_status: Optional[models.ApprovalStatus] = None,
    db: Session = Depends(get_db),
):
    filters = admin_service.JobFilters(
        search=search,
        status=status,
        job_type=job_type,
        approval_status=approval_status,
    )
    result = admin_service.list_jobs(db, filters, page=page, limit=limit)
    return {
        "success": True,
        "data": {
            "jobs": [_admin_job(row) for row in result.items],
            "pagination": _pagination(result),
        },
    }


@router.get("/applications", response_model=schemas.ApiResponse[schemas.AdminApplicationListData])
def list_applications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[models.ApplicationStatus] = None,
    job_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    filters = admin_service.ApplicationFilters(search=search, status=status, job_id=job_id)
    result = admin_service.list_applications(db, filters, page=page, limit=limit)
    return {
        "success": True,
        "data": {
            "applications": [_admin_application(a) for a in result.items],
            "pagination": _pagination(result),
        },
    }


@router.post("/users/{user_id}/toggle-verification", response_model=schemas.ApiResponse[schemas.AdminUserData])
def toggle_verification(user_id: int, db: Session = Depends(get_db)):
    user = admin_service.toggle_verification(db, user_id)
    state = "verified" if user.email_verified else "unverified"
    return {"success": True, "message": f"User marked as {state}", "data": {"user": user}}


@router.delete("/users/{user_id}", response_model=schemas.ApiResponse[None])
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: Identity = Depends(get_current_admin),
):
    admin_service.delete_user(db, user_id, admin)
    return {"success": True, "message": "User deleted successfully"}


@router.post("/jobs/{job_id}/toggle-status", response_model=schemas.ApiResponse[schemas.JobData])
def toggle_job_status(
    job_id: int,
    db: Session = Depends(get_db),
    admin: Identity = Depends(get_current_admin),
):
    job = admin_service.toggle_job_status(db, job_id, admin)
    state = "activated" if job.is_active else "deactivated"
    return {"success": True, "message": f"Job {state}", "data": {"job": job}}
