"""Tests for the progress and enrollment endpoints."""

from dataclasses import replace
from datetime import datetime
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from learnhub.certificates.dependencies import get_certificate_service
from learnhub.certificates.service import CertificateError
from learnhub.courses.dependencies import get_course_service
from learnhub.courses.models import CourseDefinition, QuizDefinition
from learnhub.main import app
from learnhub.progress.analytics import summarize_progress
from learnhub.progress.dependencies import get_progress_service
from learnhub.progress.enrollment import apply_progress, drop, new_enrollment
from learnhub.progress.exceptions import (
    AlreadyEnrolledError,
    EnrollmentClosedError,
    NotEnrolledError,
    QuizNotFoundError,
)
from learnhub.progress.gaps import collect_learning_gaps
from learnhub.progress.models import ProgressRecord
from learnhub.progress.service import ProgressUpdate
from learnhub.progress.tracking import (
    ModuleActivity,
    record_module_activity,
    submit_quiz_attempt,
)


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def mock_progress_service():
    return Mock()


@pytest.fixture
def mock_course_service(course: CourseDefinition):
    service = Mock()
    service.get_course = AsyncMock(return_value=course)
    return service


@pytest.fixture
def mock_certificate_service():
    service = Mock()
    service.issue_certificate = AsyncMock()
    return service


@pytest.fixture
def api(
    client: TestClient,
    mock_progress_service,
    mock_course_service,
    mock_certificate_service,
):
    """Client with the services replaced by mocks."""
    app.dependency_overrides[get_progress_service] = lambda: mock_progress_service
    app.dependency_overrides[get_course_service] = lambda: mock_course_service
    app.dependency_overrides[get_certificate_service] = lambda: mock_certificate_service
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def headers(user_id: UUID) -> dict[str, str]:
    return {"X-User-ID": str(user_id)}


def _completed_update(
    record: ProgressRecord, course: CourseDefinition, now: datetime
) -> ProgressUpdate:
    for module in course.modules:
        record = record_module_activity(
            record, module.id, ModuleActivity(completed=True, score=88), now
        )
    enrollment = apply_progress(
        new_enrollment(record.user_id, course.id, now), 100, now
    )
    return ProgressUpdate(record=record, enrollment=enrollment, newly_completed=True)


# ==============================================================================
# Identity
# ==============================================================================


class TestIdentity:
    def test_missing_user_header(self, api: TestClient):
        response = api.get("/v1/progress")

        assert response.status_code == 401
        assert response.json()["error"] is True

    def test_invalid_user_header(self, api: TestClient):
        response = api.get("/v1/progress", headers={"X-User-ID": "not-a-uuid"})

        assert response.status_code == 401

    def test_service_unavailable_without_database(self, client: TestClient, headers):
        response = client.get("/v1/progress", headers=headers)

        assert response.status_code == 503
        assert response.json()["message"] == "Progress service not available"


# ==============================================================================
# Module and quiz events
# ==============================================================================


class TestUpdateModuleProgress:
    """Tests for PUT /v1/progress/course/{course_id}/module/{module_id}."""

    def test_update_success(
        self, api, headers, mock_progress_service, mock_certificate_service,
        record, course, now,
    ):
        module_id = course.modules[0].id
        updated = record_module_activity(
            record, module_id, ModuleActivity(time_spent_delta=15, completed=True, score=90), now
        )
        enrollment = apply_progress(
            new_enrollment(record.user_id, course.id, now),
            updated.analytics.completion_rate,
            now,
        )
        mock_progress_service.record_module_activity = AsyncMock(
            return_value=ProgressUpdate(record=updated, enrollment=enrollment)
        )

        response = api.put(
            f"/v1/progress/course/{course.id}/module/{module_id}",
            json={"time_spent": 15, "completed": True, "score": 90},
            headers=headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["course_completed"] is False
        assert data["progress"]["analytics"]["completion_rate"] == 50
        assert data["enrollment"]["status"] == "in-progress"
        activity = mock_progress_service.record_module_activity.await_args.kwargs[
            "activity"
        ]
        assert activity == ModuleActivity(time_spent_delta=15, completed=True, score=90)
        mock_certificate_service.issue_certificate.assert_not_awaited()

    def test_completion_issues_certificate(
        self, api, headers, mock_progress_service, mock_certificate_service,
        record, course, now,
    ):
        update = _completed_update(record, course, now)
        mock_progress_service.record_module_activity = AsyncMock(return_value=update)

        response = api.put(
            f"/v1/progress/course/{course.id}/module/{course.modules[1].id}",
            json={"completed": True},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["course_completed"] is True
        mock_certificate_service.issue_certificate.assert_awaited_once_with(
            update.enrollment, update.record, course
        )

    def test_certificate_failure_keeps_completion(
        self, api, headers, mock_progress_service, mock_certificate_service,
        record, course, now,
    ):
        mock_progress_service.record_module_activity = AsyncMock(
            return_value=_completed_update(record, course, now)
        )
        mock_certificate_service.issue_certificate = AsyncMock(
            side_effect=CertificateError("Certificate could not be stored")
        )

        response = api.put(
            f"/v1/progress/course/{course.id}/module/{course.modules[1].id}",
            json={"completed": True},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["enrollment"]["status"] == "completed"

    @pytest.mark.parametrize(
        "payload",
        [{"score": 150}, {"score": -1}, {"time_spent": -5}],
    )
    def test_invalid_payload(self, api, headers, mock_progress_service, course, payload):
        mock_progress_service.record_module_activity = AsyncMock()

        response = api.put(
            f"/v1/progress/course/{course.id}/module/{course.modules[0].id}",
            json=payload,
            headers=headers,
        )

        assert response.status_code == 422
        assert response.json()["message"] == "Validation error"
        mock_progress_service.record_module_activity.assert_not_awaited()

    def test_not_enrolled(self, api, headers, mock_progress_service, course):
        mock_progress_service.record_module_activity = AsyncMock(
            side_effect=NotEnrolledError()
        )

        response = api.put(
            f"/v1/progress/course/{course.id}/module/{uuid4()}",
            json={"completed": True},
            headers=headers,
        )

        assert response.status_code == 404
        assert response.json()["message"] == "User is not enrolled in this course"

    def test_dropped_enrollment(self, api, headers, mock_progress_service, course):
        mock_progress_service.record_module_activity = AsyncMock(
            side_effect=EnrollmentClosedError()
        )

        response = api.put(
            f"/v1/progress/course/{course.id}/module/{course.modules[0].id}",
            json={"time_spent": 5},
            headers=headers,
        )

        assert response.status_code == 409


class TestSubmitQuizAttempt:
    """Tests for POST /v1/progress/course/{course_id}/quiz/{quiz_id}/attempt."""

    def test_submit_success(
        self, api, headers, mock_progress_service, record, course,
        quiz: QuizDefinition, now,
    ):
        updated, result = submit_quiz_attempt(record, quiz, [0, 1, 0], 4, now)
        enrollment = apply_progress(
            new_enrollment(record.user_id, course.id, now), 0, now
        )
        mock_progress_service.submit_quiz_attempt = AsyncMock(
            return_value=ProgressUpdate(
                record=updated, enrollment=enrollment, attempt=result
            )
        )

        response = api.post(
            f"/v1/progress/course/{course.id}/quiz/{quiz.id}/attempt",
            json={"answers": [0, 1, 0], "time_taken": 4},
            headers=headers,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["attempt_number"] == 1
        assert data["score"] == 67
        assert data["correct_answers"] == 2
        assert data["total_questions"] == 3
        assert data["passed"] is False
        assert data["best_score"] == 67

    def test_unknown_quiz(self, api, headers, mock_progress_service, course):
        mock_progress_service.submit_quiz_attempt = AsyncMock(
            side_effect=QuizNotFoundError()
        )

        response = api.post(
            f"/v1/progress/course/{course.id}/quiz/{uuid4()}/attempt",
            json={"answers": [0]},
            headers=headers,
        )

        assert response.status_code == 404

    def test_answers_required(self, api, headers, course, quiz):
        response = api.post(
            f"/v1/progress/course/{course.id}/quiz/{quiz.id}/attempt",
            json={"time_taken": 3},
            headers=headers,
        )

        assert response.status_code == 422


# ==============================================================================
# Queries
# ==============================================================================


class TestProgressQueries:
    def test_course_progress(self, api, headers, mock_progress_service, record, course):
        mock_progress_service.get_course_progress = AsyncMock(return_value=record)

        response = api.get(f"/v1/progress/course/{course.id}", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["course_id"] == str(course.id)
        assert len(data["module_progress"]) == 2
        assert [g["gap_type"] for g in data["learning_gaps"]] == [
            "incomplete",
            "incomplete",
        ]

    def test_course_progress_gaps_highest_priority_first(
        self, api, headers, mock_progress_service, record, course, now
    ):
        second = course.modules[1]
        record = record_module_activity(
            record, second.id, ModuleActivity(completed=True, score=50), now
        )
        mock_progress_service.get_course_progress = AsyncMock(return_value=record)

        response = api.get(f"/v1/progress/course/{course.id}", headers=headers)

        data = response.json()
        assert [g["gap_type"] for g in data["learning_gaps"]] == [
            "low_score",
            "incomplete",
        ]
        assert data["learning_gaps"][0]["priority"] == "high"
        # Stored order is untouched
        assert record.learning_gaps[0].gap_type.value == "incomplete"

    def test_overview(self, api, headers, mock_progress_service, record, user_id):
        mock_progress_service.get_student_overview = AsyncMock(
            return_value=summarize_progress([record])
        )

        response = api.get("/v1/progress", headers=headers)

        assert response.status_code == 200
        assert response.json()["total_courses"] == 1
        mock_progress_service.get_student_overview.assert_awaited_once_with(user_id)

    def test_gaps(self, api, headers, mock_progress_service, record, course):
        mock_progress_service.get_learning_gaps = AsyncMock(
            return_value=collect_learning_gaps([record], {course.id: course})
        )

        response = api.get("/v1/progress/gaps", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["total_gaps"] == 2
        assert data["learning_gaps"][0]["course_title"] == course.title


# ==============================================================================
# Enrollments
# ==============================================================================


class TestEnrollmentEndpoints:
    """Tests for /v1/enrollments."""

    def test_enroll(self, api, headers, mock_progress_service, user_id, course, now):
        mock_progress_service.enroll_user = AsyncMock(
            return_value=replace(new_enrollment(user_id, course.id, now), version=1)
        )

        response = api.post(
            "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers
        )

        assert response.status_code == 201
        assert response.json()["status"] == "enrolled"
        assert response.json()["progress"] == 0

    def test_enroll_twice(self, api, headers, mock_progress_service, course):
        mock_progress_service.enroll_user = AsyncMock(side_effect=AlreadyEnrolledError())

        response = api.post(
            "/v1/enrollments", json={"course_id": str(course.id)}, headers=headers
        )

        assert response.status_code == 409
        assert response.json()["message"] == "Already enrolled in this course"

    def test_enrollment_not_found(self, api, headers, mock_progress_service):
        mock_progress_service.get_enrollment = AsyncMock(return_value=None)

        response = api.get(f"/v1/enrollments/{uuid4()}", headers=headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Enrollment not found"

    def test_my_enrollments(self, api, headers, mock_progress_service, user_id, now):
        enrollments = [new_enrollment(user_id, uuid4(), now) for _ in range(2)]
        mock_progress_service.get_user_enrollments = AsyncMock(return_value=enrollments)

        response = api.get("/v1/enrollments/my", headers=headers)

        assert response.status_code == 200
        assert response.json()["total"] == 2

    def test_drop_completed_course(
        self, api, headers, mock_progress_service, course, user_id, now
    ):
        completed = apply_progress(new_enrollment(user_id, course.id, now), 100, now)
        mock_progress_service.drop_course = AsyncMock(return_value=drop(completed, now))

        response = api.put(f"/v1/enrollments/{course.id}/drop", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "dropped"
        assert data["progress"] == 100
        assert data["completed_at"] is None
