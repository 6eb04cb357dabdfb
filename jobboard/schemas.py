from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from .models import (
    ApplicationStatus,
    ApprovalStatus,
    AuthProvider,
    ExperienceLevel,
    JobType,
    NotificationType,
    UserRole,
    WorkStyle,
)

T = TypeVar("T")

SALARY_CEILING = 2_147_483_647


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


# User Schemas
class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str
    role: UserRole = UserRole.USER

    @field_validator("name")
    @classmethod
    def name_long_enough(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Name must be at least 2 characters")
        return value

    @field_validator("role")
    @classmethod
    def no_self_promotion(cls, value: UserRole) -> UserRole:
        if value == UserRole.ADMIN:
            raise ValueError("Invalid role")
        return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserOut(BaseModel):
    id: int
    email: str
    name: str
    role: UserRole
    email_verified: bool
    auth_provider: AuthProvider
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProfileOut(UserOut):
    phone: Optional[str] = None
    address: Optional[str] = None
    bio: Optional[str] = None
    skills: List[str] = []
    experience_years: Optional[int] = None
    education: Optional[str] = None
    resume_url: Optional[str] = None


class AuthData(BaseModel):
    user: UserOut
    token: str


class UserData(BaseModel):
    user: ProfileOut


class TokenData(BaseModel):
    token: str


class Token(BaseModel):
    access_token: str
    token_type: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    bio: Optional[str] = None
    skills: Optional[List[str]] = None
    experience_years: Optional[int] = Field(default=None, ge=0)
    education: Optional[str] = None
    resume_url: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("name")
    @classmethod
    def name_long_enough(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Name must be at least 2 characters")
        return value


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


class OAuthLoginRequest(BaseModel):
    access_token: Optional[str] = None
    code: Optional[str] = None


# Job Schemas
def _split_requirements(value):
    if isinstance(value, str):
        return [line.strip(" -*\t") for line in value.splitlines() if line.strip(" -*\t")]
    return value


class JobBase(BaseModel):
    title: str
    company: str
    location: str
    description: str
    requirements: List[str]
    salary_min: Optional[int] = Field(default=None, ge=0, le=SALARY_CEILING)
    salary_max: Optional[int] = Field(default=None, ge=0, le=SALARY_CEILING)
    job_type: JobType
    work_style: WorkStyle
    experience_level: ExperienceLevel


class JobCreate(JobBase):
    model_config = ConfigDict(extra="ignore")

    @field_validator("requirements", mode="before")
    @classmethod
    def requirements_as_list(cls, value):
        return _split_requirements(value)

    @field_validator("title", "company", "location", "description")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode="after")
    def check_lengths(self):
        _check_job_text(self)
        if not [r for r in self.requirements if r.strip()]:
            raise ValueError("At least one requirement is required")
        self.requirements = [r.strip() for r in self.requirements if r.strip()]
        _check_salary_range(self.salary_min, self.salary_max)
        return self


class JobUpdate(BaseModel):
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    requirements: Optional[List[str]] = None
    salary_min: Optional[int] = Field(default=None, ge=0, le=SALARY_CEILING)
    salary_max: Optional[int] = Field(default=None, ge=0, le=SALARY_CEILING)
    job_type: Optional[JobType] = None
    work_style: Optional[WorkStyle] = None
    experience_level: Optional[ExperienceLevel] = None
    is_active: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("requirements", mode="before")
    @classmethod
    def requirements_as_list(cls, value):
        return _split_requirements(value)

    @field_validator("title", "company", "location", "description")
    @classmethod
    def strip_text(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if value is not None else value

    @model_validator(mode="after")
    def check_lengths(self):
        _check_job_text(self)
        if self.requirements is not None:
            self.requirements = [r.strip() for r in self.requirements if r.strip()]
            if not self.requirements:
                raise ValueError("At least one requirement is required")
        _check_salary_range(self.salary_min, self.salary_max)
        return self


_MIN_LENGTHS = {"title": 3, "company": 2, "location": 1, "description": 10}


def _check_job_text(job):
    for field, minimum in _MIN_LENGTHS.items():
        value = getattr(job, field)
        if value is not None and len(value) < minimum:
            raise ValueError(f"{field} must be at least {minimum} characters")


def _check_salary_range(salary_min, salary_max):
    if salary_min is not None and salary_max is not None and salary_min > salary_max:
        raise ValueError("salary_min must not exceed salary_max")


class JobOut(BaseModel):
    id: int
    title: str
    company: str
    location: str
    description: str
    requirements: List[str]
    salary_min: Optional[int] = None
    salary_max: Optional[int] = None
    job_type: JobType
    work_style: WorkStyle
    experience_level: ExperienceLevel
    created_by: int
    created_by_name: Optional[str] = None
    is_active: bool
    # ORM rows expose the decoded state as `approval_state`.
    approval_status: ApprovalStatus = Field(
        validation_alias=AliasChoices("approval_state", "approval_status")
    )
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PendingJobOut(JobOut):
    created_by_email: Optional[str] = None


class JobData(BaseModel):
    job: JobOut


class JobListData(BaseModel):
    jobs: List[JobOut]
    pagination: Pagination


class PendingJobListData(BaseModel):
    jobs: List[PendingJobOut]


class RejectRequest(BaseModel):
    rejection_reason: str


class DecisionData(BaseModel):
    job: JobOut
    notification_sent: bool


# Application Schemas
class ApplicationCreate(BaseModel):
    cover_letter: Optional[str] = None
    resume_url: Optional[str] = None


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus


class ApplicationOut(BaseModel):
    id: int
    job_id: int
    user_id: int
    cover_letter: Optional[str] = None
    resume_url: Optional[str] = None
    status: ApplicationStatus
    applied_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MyApplicationOut(ApplicationOut):
    title: str
    company: str
    location: str
    job_type: JobType
    work_style: WorkStyle


class JobApplicantOut(ApplicationOut):
    applicant_name: str
    applicant_email: str
    applicant_phone: Optional[str] = None
    applicant_resume_url: Optional[str] = None


class ApplicationCreatedData(BaseModel):
    application_id: int


class ApplicationData(BaseModel):
    application: ApplicationOut


class MyApplicationListData(BaseModel):
    applications: List[MyApplicationOut]


class JobApplicantListData(BaseModel):
    applications: List[JobApplicantOut]


# Notification Schemas
class NotificationOut(BaseModel):
    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    related_job_id: Optional[int] = None
    is_read: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class NotificationListData(BaseModel):
    notifications: List[NotificationOut]
    unread_count: int


# Admin Schemas
class AdminUserOut(UserOut):
    job_count: int = 0
    application_count: int = 0


class AdminUserListData(BaseModel):
    users: List[AdminUserOut]
    pagination: Pagination


class AdminJobOut(JobOut):
    created_by_email: Optional[str] = None
    application_count: int = 0


class AdminJobListData(BaseModel):
    jobs: List[AdminJobOut]
    pagination: Pagination


class AdminApplicationOut(ApplicationOut):
    job_title: str
    company: str
    applicant_name: str
    applicant_email: str


class AdminApplicationListData(BaseModel):
    applications: List[AdminApplicationOut]
    pagination: Pagination


class CompanyCount(BaseModel):
    company: str
    job_count: int


class DashboardStats(BaseModel):
    total_users: int
    total_jobs: int
    total_applications: int
    active_jobs: int
    pending_jobs: int
    new_users_this_month: int
    new_jobs_this_month: int
    new_applications_this_month: int


class DashboardData(BaseModel):
    stats: DashboardStats
    top_companies: List[CompanyCount]
    recent_users: List[UserOut]
    recent_jobs: List[JobOut]


class AdminUserData(BaseModel):
    user: UserOut
