import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from jobboard import models, schemas
from jobboard.auth import Identity, create_access_token, hash_password
from jobboard.config import settings
from jobboard.database import get_db, get_engine, init_db
from jobboard.main import app
from jobboard.services import approval, jobs, users

PASSWORD = "password123"

JOB_PAYLOAD = {
    "title": "Backend Engineer",
    "company": "Acme Corp",
    "location": "Berlin",
    "description": "Build and operate the public hiring API.",
    "requirements": ["Python", "SQL"],
    "salary_min": 60000,
    "salary_max": 90000,
    "job_type": "full-time",
    "work_style": "remote",
    "experience_level": "mid",
}


@pytest.fixture
def engine(tmp_path):
    engine = get_engine(f"sqlite:///{tmp_path / 'jobboard.sqlite'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    monkeypatch.setattr(settings, "notification_retry_delay_seconds", 0)


def make_user(db, email, role=models.UserRole.USER, name=None, password=PASSWORD):
    return users.create_user(
        db,
        email,
        hash_password(password),
        name or email.split("@")[0].title(),
        role=role,
    )


def identity_of(user) -> Identity:
    return Identity(id=user.id, email=user.email, role=user.role)


def auth_headers(user) -> dict:
    token = create_access_token(user.id, user.email, user.role)
    return {"Authorization": f"Bearer {token}"}


def make_job(db, owner, approved_by=None, **overrides):
    fields = schemas.JobCreate(**{**JOB_PAYLOAD, **overrides}).model_dump()
    job = jobs.create_job(db, fields, owner.id)
    if approved_by is not None:
        approval.approve_job(db, job.id, identity_of(approved_by))
        db.refresh(job)
    return job


@pytest.fixture
def admin(db_session):
    return make_user(db_session, "admin@example.com", models.UserRole.ADMIN, name="Ada Admin")


@pytest.fixture
def employer(db_session):
    return make_user(db_session, "employer@example.com", models.UserRole.EMPLOYER, name="Erin Employer")


@pytest.fixture
def other_employer(db_session):
    return make_user(db_session, "rival@example.com", models.UserRole.EMPLOYER, name="Rita Rival")


@pytest.fixture
def applicant(db_session):
    return make_user(db_session, "seeker@example.com", name="Sam Seeker")
