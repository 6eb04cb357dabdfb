import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from conftest import auth_headers, identity_of, make_job
from jobboard import models
from jobboard.config import settings
from jobboard.errors import AlreadyInState, InvalidTransition
from jobboard.services import approval, notifications

ApprovalStatus = models.ApprovalStatus


def _notifications_for(db, user):
    return db.query(models.Notification).filter(models.Notification.user_id == user.id).all()


class TestApprove:
    def test_approve_activates_and_notifies(self, db_session, client, admin, employer):
        job = make_job(db_session, employer)
        r = client.post(f"/api/jobs/{job.id}/approve", headers=auth_headers(admin))
        assert r.status_code == 200
        data = r.json()["data"]
        assert data["notification_sent"] is True
        assert data["job"]["approval_status"] == "approved"
        assert data["job"]["is_active"] is True
        assert data["job"]["approved_by"] == admin.id
        assert data["job"]["approved_at"] is not None

        [notification] = _notifications_for(db_session, employer)
        assert notification.type == models.NotificationType.JOB_APPROVED
        assert job.title in notification.message
        assert notification.related_job_id == job.id

    def test_second_approval_conflicts_and_changes_nothing(self, db_session, client, admin, employer):
        job = make_job(db_session, employer, approved_by=admin)
        approved_at = job.approved_at

        r = client.post(f"/api/jobs/{job.id}/approve", headers=auth_headers(admin))
        assert r.status_code == 409
        assert r.json()["message"] == "Job is already approved"

        db_session.refresh(job)
        assert job.approved_at == approved_at
        assert len(_notifications_for(db_session, employer)) == 1

    def test_rejecting_an_approved_job_is_an_invalid_transition(self, db_session, client, admin, employer):
        job = make_job(db_session, employer, approved_by=admin)
        r = client.post(
            f"/api/jobs/{job.id}/reject",
            json={"rejection_reason": "Changed our mind about it"},
            headers=auth_headers(admin),
        )
        assert r.status_code == 409
        db_session.refresh(job)
        assert job.approval_status == ApprovalStatus.APPROVED
        assert job.is_active is True

    def test_only_admins_decide(self, db_session, client, employer):
        job = make_job(db_session, employer)
        r = client.post(f"/api/jobs/{job.id}/approve", headers=auth_headers(employer))
        assert r.status_code == 403
        db_session.refresh(job)
        assert job.approval_status == ApprovalStatus.PENDING

    def test_unknown_job(self, client, admin):
        r = client.post("/api/jobs/4040/approve", headers=auth_headers(admin))
        assert r.status_code == 404


class TestReject:
    def test_reject_with_reason(self, db_session, client, admin, employer):
        job = make_job(db_session, employer)
        r = client.post(
            f"/api/jobs/{job.id}/reject",
            json={"rejection_reason": "Insufficient detail provided"},
            headers=auth_headers(admin),
        )
        assert r.status_code == 200
        db_session.refresh(job)
        assert job.approval_status == ApprovalStatus.REJECTED
        assert job.is_active is False
        assert job.rejection_reason == "Insufficient detail provided"
        assert job.approved_by == admin.id
        assert job.approved_at is not None

        [notification] = _notifications_for(db_session, employer)
        assert notification.type == models.NotificationType.JOB_REJECTED
        assert job.title in notification.message
        assert "Insufficient detail provided" in notification.message

    @pytest.mark.parametrize("reason", ["too short", "   short   ", ""])
    def test_short_reason_changes_nothing(self, db_session, client, admin, employer, reason):
        job = make_job(db_session, employer)
        r = client.post(
            f"/api/jobs/{job.id}/reject",
            json={"rejection_reason": reason},
            headers=auth_headers(admin),
        )
        assert r.status_code == 400
        assert r.json()["errors"][0]["field"] == "rejection_reason"
        db_session.refresh(job)
        assert job.approval_status == ApprovalStatus.PENDING
        assert job.approved_by is None
        assert _notifications_for(db_session, employer) == []

    def test_second_rejection_conflicts(self, db_session, admin, employer):
        job = make_job(db_session, employer)
        approval.reject_job(db_session, job.id, identity_of(admin), "Missing salary details")
        with pytest.raises(AlreadyInState):
            approval.reject_job(db_session, job.id, identity_of(admin), "Missing salary details")


class TestTransitions:
    @pytest.mark.parametrize(
        "current,target,error",
        [
            (ApprovalStatus.APPROVED, ApprovalStatus.APPROVED, AlreadyInState),
            (ApprovalStatus.REJECTED, ApprovalStatus.REJECTED, AlreadyInState),
            (ApprovalStatus.LEGACY_APPROVED, ApprovalStatus.APPROVED, AlreadyInState),
            (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED, InvalidTransition),
            (ApprovalStatus.REJECTED, ApprovalStatus.APPROVED, InvalidTransition),
            (ApprovalStatus.LEGACY_APPROVED, ApprovalStatus.REJECTED, InvalidTransition),
        ],
    )
    def test_closed_transitions(self, current, target, error):
        with pytest.raises(error):
            approval.check_transition(current, target)

    @pytest.mark.parametrize("target", [ApprovalStatus.APPROVED, ApprovalStatus.REJECTED])
    def test_pending_can_be_decided(self, target):
        approval.check_transition(ApprovalStatus.PENDING, target)

    def test_legacy_job_cannot_be_approved_again(self, db_session, client, admin, employer):
        job = make_job(db_session, employer)
        db_session.execute(
            update(models.Job).where(models.Job.id == job.id).values(approval_status=None, is_active=True)
        )
        db_session.commit()
        r = client.post(f"/api/jobs/{job.id}/approve", headers=auth_headers(admin))
        assert r.status_code == 409


class TestNotificationFailure:
    def test_decision_stands_when_notification_keeps_failing(
        self, db_session, client, admin, employer, monkeypatch
    ):
        attempts = []

        def failing_insert(db, **fields):
            attempts.append(fields)
            raise OperationalError("INSERT INTO notifications", {}, Exception("database is locked"))

        monkeypatch.setattr(notifications, "create_notification", failing_insert)
        job = make_job(db_session, employer)

        r = client.post(f"/api/jobs/{job.id}/approve", headers=auth_headers(admin))
        assert r.status_code == 200
        assert r.json()["data"]["notification_sent"] is False
        assert len(attempts) == settings.notification_retry_attempts

        db_session.refresh(job)
        assert job.approval_status == ApprovalStatus.APPROVED
        assert job.is_active is True

    def test_retry_recovers_after_transient_failure(self, db_session, admin, employer, monkeypatch):
        real_insert = notifications.create_notification
        calls = []

        def flaky_insert(db, **fields):
            calls.append(fields)
            if len(calls) == 1:
                raise OperationalError("INSERT INTO notifications", {}, Exception("disk I/O error"))
            return real_insert(db, **fields)

        monkeypatch.setattr(notifications, "create_notification", flaky_insert)
        job = make_job(db_session, employer)

        decision = approval.approve_job(db_session, job.id, identity_of(admin))
        assert decision.notification_sent is True
        assert len(calls) == 2
        assert len(_notifications_for(db_session, employer)) == 1


def test_pending_list(db_session, client, admin, employer):
    pending = make_job(db_session, employer, title="Waiting role")
    make_job(db_session, employer, approved_by=admin, title="Approved role")

    r = client.get("/api/jobs/pending/list", headers=auth_headers(admin))
    assert r.status_code == 200
    jobs = r.json()["data"]["jobs"]
    assert [j["id"] for j in jobs] == [pending.id]
    assert jobs[0]["created_by_email"] == employer.email

    assert client.get("/api/jobs/pending/list", headers=auth_headers(employer)).status_code == 403


class TestConcurrentDecisions:
    """A second session that read the job while it was still pending."""

    def test_stale_approval_conflicts(self, db_session, session_factory, admin, employer):
        job = make_job(db_session, employer)
        stale = session_factory()
        try:
            assert stale.get(models.Job, job.id).approval_state == ApprovalStatus.PENDING

            approval.approve_job(db_session, job.id, identity_of(admin))
            db_session.refresh(job)
            approved_at = job.approved_at

            with pytest.raises(AlreadyInState):
                approval.approve_job(stale, job.id, identity_of(admin))
        finally:
            stale.close()

        db_session.refresh(job)
        assert job.approved_at == approved_at
        assert len(_notifications_for(db_session, employer)) == 1

    def test_stale_rejection_cannot_undo_approval(self, db_session, session_factory, admin, employer):
        job = make_job(db_session, employer)
        stale = session_factory()
        try:
            stale.get(models.Job, job.id)
            approval.approve_job(db_session, job.id, identity_of(admin))

            with pytest.raises(InvalidTransition):
                approval.reject_job(stale, job.id, identity_of(admin), "Posted to the wrong board")
        finally:
            stale.close()

        db_session.refresh(job)
        assert job.approval_status == ApprovalStatus.APPROVED
        assert job.is_active is True
        assert job.rejection_reason is None
        [notification] = _notifications_for(db_session, employer)
        assert notification.type == models.NotificationType.JOB_APPROVED
