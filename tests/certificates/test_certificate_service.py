"""Tests for CertificateService and certificate endpoints."""

from dataclasses import replace
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock
from uuid import UUID

import pytest
from cassandra.cluster import Session
from fastapi.testclient import TestClient

from learnhub.certificates.dependencies import get_certificate_service
from learnhub.certificates.models import Certificate
from learnhub.certificates.service import (
    CertificateNotEligibleError,
    CertificateNotFoundError,
    CertificateService,
    build_certificate,
)
from learnhub.courses.dependencies import get_course_service
from learnhub.courses.models import CourseDefinition
from learnhub.main import app
from learnhub.progress.dependencies import get_progress_service
from learnhub.progress.enrollment import apply_progress, new_enrollment
from learnhub.progress.models import Enrollment, ProgressRecord
from learnhub.progress.tracking import ModuleActivity, record_module_activity


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    return Mock(spec=Session)


@pytest.fixture
def certificate_service(mock_session) -> CertificateService:
    mock_session.prepare = Mock(return_value=Mock())
    service = CertificateService(
        session=mock_session, keyspace="test_keyspace", institution="LearnHub"
    )
    mock_session.aexecute = AsyncMock(return_value=Mock())
    return service


@pytest.fixture
def completed_record(record: ProgressRecord, course: CourseDefinition, now: datetime):
    """Both modules done: scores 90 and 86, 90 minutes in total."""
    first, second = course.modules
    record = record_module_activity(
        record, first.id, ModuleActivity(time_spent_delta=60, completed=True, score=90), now
    )
    return record_module_activity(
        record, second.id, ModuleActivity(time_spent_delta=30, completed=True, score=86), now
    )


@pytest.fixture
def completed_enrollment(user_id: UUID, course: CourseDefinition, now: datetime):
    return apply_progress(new_enrollment(user_id, course.id, now), 100, now)


def _result(row=None, applied: bool = True):
    result = Mock()
    result.one.return_value = row
    result.was_applied = applied
    return result


def _row(certificate: Certificate) -> SimpleNamespace:
    return SimpleNamespace(
        certificate_id=certificate.certificate_id,
        user_id=certificate.user_id,
        course_id=certificate.course_id,
        final_score=certificate.final_score,
        grade=certificate.grade,
        issued_at=certificate.issued_at,
        expires_at=certificate.expires_at,
        completion_date=certificate.completion_date,
        total_modules=certificate.total_modules,
        completed_modules=certificate.completed_modules,
        total_time_spent=certificate.total_time_spent,
        verification_code=certificate.verification_code,
        is_verified=certificate.is_verified,
        course_category=certificate.metadata.course_category,
        course_level=certificate.metadata.course_level,
        instructor=certificate.metadata.instructor,
        institution=certificate.metadata.institution,
    )


# ==============================================================================
# build_certificate
# ==============================================================================


class TestBuildCertificate:
    def test_snapshot_of_completion(
        self, completed_enrollment, completed_record, course, now
    ):
        certificate = build_certificate(
            completed_enrollment, completed_record, course, now, "LearnHub"
        )

        assert certificate.final_score == 88
        assert certificate.grade == "B+"
        assert certificate.total_modules == 2
        assert certificate.completed_modules == 2
        assert certificate.total_time_spent == 1.5
        assert certificate.completion_date == completed_enrollment.completed_at
        assert certificate.expires_at.year == now.year + 5
        assert certificate.is_verified is False
        assert certificate.metadata.instructor == "Ada Lovelace"
        assert certificate.metadata.institution == "LearnHub"
        assert certificate.metadata.course_category == "programming"


# ==============================================================================
# CertificateService
# ==============================================================================


class TestIssueCertificate:
    """Tests for issue_certificate."""

    @pytest.mark.asyncio
    async def test_requires_completed_enrollment(
        self, certificate_service, mock_session, record, course, user_id, now
    ):
        enrollment = new_enrollment(user_id, course.id, now)

        with pytest.raises(CertificateNotEligibleError):
            await certificate_service.issue_certificate(enrollment, record, course)

        mock_session.aexecute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_issue_new(
        self, certificate_service, mock_session, completed_enrollment,
        completed_record, course,
    ):
        mock_session.aexecute = AsyncMock(
            side_effect=[_result(None), _result(applied=True), _result()]
        )

        certificate = await certificate_service.issue_certificate(
            completed_enrollment, completed_record, course
        )

        assert certificate.grade == "B+"
        assert certificate.verification_code.startswith("VERIFY-")
        assert mock_session.aexecute.await_count == 3
        lookup_params = mock_session.aexecute.await_args_list[2].args[1]
        assert lookup_params == [
            certificate.verification_code,
            certificate.user_id,
            certificate.course_id,
        ]

    @pytest.mark.asyncio
    async def test_issue_twice_returns_existing(
        self, certificate_service, mock_session, completed_enrollment,
        completed_record, course, now,
    ):
        existing = build_certificate(completed_enrollment, completed_record, course, now)
        mock_session.aexecute = AsyncMock(return_value=_result(_row(existing)))

        certificate = await certificate_service.issue_certificate(
            completed_enrollment, completed_record, course
        )

        assert certificate.certificate_id == existing.certificate_id
        assert certificate.verification_code == existing.verification_code
        assert mock_session.aexecute.await_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_issue_returns_stored(
        self, certificate_service, mock_session, completed_enrollment,
        completed_record, course, now,
    ):
        stored = build_certificate(completed_enrollment, completed_record, course, now)
        mock_session.aexecute = AsyncMock(
            side_effect=[_result(None), _result(applied=False), _result(_row(stored))]
        )

        certificate = await certificate_service.issue_certificate(
            completed_enrollment, completed_record, course
        )

        assert certificate.verification_code == stored.verification_code


class TestVerifyCertificate:
    """Tests for verify_certificate."""

    @pytest.mark.asyncio
    async def test_marks_verified(
        self, certificate_service, mock_session, completed_enrollment,
        completed_record, course, now,
    ):
        issued = build_certificate(completed_enrollment, completed_record, course, now)
        lookup = SimpleNamespace(user_id=issued.user_id, course_id=issued.course_id)
        mock_session.aexecute = AsyncMock(
            side_effect=[_result(lookup), _result(_row(issued)), _result()]
        )

        certificate = await certificate_service.verify_certificate(
            issued.verification_code
        )

        assert certificate.is_verified is True
        assert certificate.is_valid(now) is True
        assert mock_session.aexecute.await_count == 3

    @pytest.mark.asyncio
    async def test_already_verified_is_not_rewritten(
        self, certificate_service, mock_session, completed_enrollment,
        completed_record, course, now,
    ):
        issued = build_certificate(completed_enrollment, completed_record, course, now)
        row = _row(issued)
        row.is_verified = True
        lookup = SimpleNamespace(user_id=issued.user_id, course_id=issued.course_id)
        mock_session.aexecute = AsyncMock(side_effect=[_result(lookup), _result(row)])

        certificate = await certificate_service.verify_certificate(
            issued.verification_code
        )

        assert certificate.is_verified is True
        assert mock_session.aexecute.await_count == 2

    @pytest.mark.asyncio
    async def test_unknown_code(self, certificate_service, mock_session):
        mock_session.aexecute = AsyncMock(return_value=_result(None))

        with pytest.raises(CertificateNotFoundError):
            await certificate_service.verify_certificate("VERIFY-NOPE")


# ==============================================================================
# Endpoints
# ==============================================================================


@pytest.fixture
def mock_certificate_service():
    return Mock()


@pytest.fixture
def mock_progress_service():
    return Mock()


@pytest.fixture
def api(
    client: TestClient,
    mock_certificate_service,
    mock_progress_service,
    course: CourseDefinition,
):
    """Client with the services replaced by mocks."""
    course_service = Mock()
    course_service.get_course = AsyncMock(return_value=course)
    app.dependency_overrides[get_certificate_service] = lambda: mock_certificate_service
    app.dependency_overrides[get_progress_service] = lambda: mock_progress_service
    app.dependency_overrides[get_course_service] = lambda: course_service
    yield client
    app.dependency_overrides.clear()


class TestCertificateEndpoints:
    """Tests for /v1/certificates."""

    def test_issue_before_completion(
        self, api, mock_certificate_service, mock_progress_service,
        record, course, user_id, now,
    ):
        mock_progress_service.get_enrollment = AsyncMock(
            return_value=new_enrollment(user_id, course.id, now)
        )
        mock_progress_service.get_course_progress = AsyncMock(return_value=record)
        mock_certificate_service.issue_certificate = AsyncMock(
            side_effect=CertificateNotEligibleError()
        )

        response = api.post(
            f"/v1/certificates/course/{course.id}",
            headers={"X-User-ID": str(user_id)},
        )

        assert response.status_code == 409

    def test_issue_without_enrollment(
        self, api, mock_progress_service, course, user_id
    ):
        mock_progress_service.get_enrollment = AsyncMock(return_value=None)

        response = api.post(
            f"/v1/certificates/course/{course.id}",
            headers={"X-User-ID": str(user_id)},
        )

        assert response.status_code == 404

    def test_issue(
        self, api, mock_certificate_service, mock_progress_service,
        completed_enrollment: Enrollment, completed_record, course, user_id, now,
    ):
        certificate = build_certificate(
            completed_enrollment, completed_record, course, now, "LearnHub"
        )
        mock_progress_service.get_enrollment = AsyncMock(return_value=completed_enrollment)
        mock_progress_service.get_course_progress = AsyncMock(return_value=completed_record)
        mock_certificate_service.issue_certificate = AsyncMock(return_value=certificate)

        response = api.post(
            f"/v1/certificates/course/{course.id}",
            headers={"X-User-ID": str(user_id)},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["grade"] == "B+"
        assert data["metadata"]["institution"] == "LearnHub"

    def test_get_missing_certificate(self, api, mock_certificate_service, course, user_id):
        mock_certificate_service.get_certificate = AsyncMock(return_value=None)

        response = api.get(
            f"/v1/certificates/course/{course.id}",
            headers={"X-User-ID": str(user_id)},
        )

        assert response.status_code == 404

    def test_verify_is_public(
        self, api, mock_certificate_service, completed_enrollment,
        completed_record, course, now,
    ):
        certificate = build_certificate(completed_enrollment, completed_record, course, now)
        mock_certificate_service.verify_certificate = AsyncMock(
            return_value=replace(certificate, is_verified=True)
        )

        response = api.get(f"/v1/certificates/verify/{certificate.verification_code}")

        assert response.status_code == 200
        data = response.json()
        assert data["is_valid"] is True
        assert data["is_expired"] is False

    def test_verify_unknown_code(self, api, mock_certificate_service):
        mock_certificate_service.verify_certificate = AsyncMock(
            side_effect=CertificateNotFoundError()
        )

        response = api.get("/v1/certificates/verify/VERIFY-NOPE")

        assert response.status_code == 404
