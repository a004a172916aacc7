"""Learner progress API endpoints.

Provides routes for:
- Module activity updates and quiz submissions
- Course enrollment lifecycle
- Progress, analytics and learning-gap queries
"""

from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, status

from learnhub.certificates.dependencies import CertificateServiceDep
from learnhub.certificates.service import CertificateError
from learnhub.core.context import set_course_id
from learnhub.core.dependencies import CurrentUserId
from learnhub.courses.dependencies import CourseServiceDep

from .dependencies import ProgressServiceDep, handle_progress_error
from .exceptions import ProgressError
from .schemas import (
    CourseProgressResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollRequest,
    LearningAnalyticsSummaryResponse,
    LearningGapReportResponse,
    ModuleUpdateResponse,
    ProgressOverviewResponse,
    QuizAttemptResultResponse,
    SubmitQuizRequest,
    UpdateModuleProgressRequest,
)
from .service import ProgressUpdate


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/v1/progress", tags=["progress"])
enrollments_router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


async def issue_certificate_on_completion(
    update: ProgressUpdate,
    course_service: CourseServiceDep,
    certificate_service: CertificateServiceDep,
) -> None:
    """Issue the certificate for the event that completed the course.

    A failure here does not undo the completion; the learner can request
    the certificate again through the certificates endpoint.
    """
    if not update.newly_completed:
        return

    course = await course_service.get_course(update.record.course_id)
    if course is None:
        return
    try:
        await certificate_service.issue_certificate(
            update.enrollment, update.record, course
        )
    except CertificateError as e:
        logger.warning(
            "certificate_issue_failed",
            course_id=str(update.record.course_id),
            error_code=e.code,
        )


# ==============================================================================
# Learning Event Endpoints
# ==============================================================================


@router.put(
    "/course/{course_id}/module/{module_id}",
    response_model=ModuleUpdateResponse,
    summary="Update module progress",
)
async def update_module_progress(
    course_id: UUID,
    module_id: UUID,
    data: UpdateModuleProgressRequest,
    progress_service: ProgressServiceDep,
    course_service: CourseServiceDep,
    certificate_service: CertificateServiceDep,
    user_id: CurrentUserId,
) -> ModuleUpdateResponse:
    """Record time spent, completion or score for a module.

    Every call counts as one attempt on the module. Completing the last
    module completes the enrollment and issues the certificate.
    """
    set_course_id(course_id)

    try:
        update = await progress_service.record_module_activity(
            user_id=user_id,
            course_id=course_id,
            module_id=module_id,
            activity=data.to_activity(),
        )
    except ProgressError as e:
        raise handle_progress_error(e) from e

    await issue_certificate_on_completion(update, course_service, certificate_service)

    return ModuleUpdateResponse(
        progress=CourseProgressResponse.from_entity(update.record),
        enrollment=EnrollmentResponse.from_entity(update.enrollment),
        course_completed=update.newly_completed,
    )


@router.post(
    "/course/{course_id}/quiz/{quiz_id}/attempt",
    response_model=QuizAttemptResultResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit quiz attempt",
)
async def submit_quiz_attempt(
    course_id: UUID,
    quiz_id: UUID,
    data: SubmitQuizRequest,
    progress_service: ProgressServiceDep,
    course_service: CourseServiceDep,
    certificate_service: CertificateServiceDep,
    user_id: CurrentUserId,
) -> QuizAttemptResultResponse:
    """Grade a quiz submission and record the attempt."""
    set_course_id(course_id)

    try:
        update = await progress_service.submit_quiz_attempt(
            user_id=user_id,
            course_id=course_id,
            quiz_id=quiz_id,
            answers=data.answers,
            time_taken=data.time_taken,
        )
    except ProgressError as e:
        raise handle_progress_error(e) from e

    await issue_certificate_on_completion(update, course_service, certificate_service)

    return QuizAttemptResultResponse.from_result(
        update.attempt, update.enrollment, update.record, update.newly_completed
    )


@router.post(
    "/course/{course_id}/recommendations/{recommendation_id}/complete",
    response_model=CourseProgressResponse,
    summary="Complete recommendation",
)
async def complete_recommendation(
    course_id: UUID,
    recommendation_id: str,
    progress_service: ProgressServiceDep,
    user_id: CurrentUserId,
) -> CourseProgressResponse:
    """Mark a recommendation as done."""
    try:
        record = await progress_service.complete_recommendation(
            user_id, course_id, recommendation_id
        )
        return CourseProgressResponse.from_entity(record)
    except ProgressError as e:
        raise handle_progress_error(e) from e


# ==============================================================================
# Progress Query Endpoints
# ==============================================================================


@router.get(
    "",
    response_model=ProgressOverviewResponse,
    summary="Get progress overview",
)
async def get_progress_overview(
    progress_service: ProgressServiceDep,
    user_id: CurrentUserId,
) -> ProgressOverviewResponse:
    """Overview across all of the learner's courses."""
    overview = await progress_service.get_student_overview(user_id)
    return ProgressOverviewResponse.from_overview(overview)


@router.get(
    "/course/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user_id: CurrentUserId,
) -> CourseProgressResponse:
    """Get complete progress for a course.

    The record is created from the course structure on first access.
    """
    try:
        record = await progress_service.get_course_progress(user_id, course_id)
        return CourseProgressResponse.from_entity(record)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.get(
    "/analytics",
    response_model=LearningAnalyticsSummaryResponse,
    summary="Get learning analytics",
)
async def get_learning_analytics(
    progress_service: ProgressServiceDep,
    user_id: CurrentUserId,
) -> LearningAnalyticsSummaryResponse:
    """Detailed analytics with category and level breakdowns."""
    summary = await progress_service.get_learning_analytics(user_id)
    return LearningAnalyticsSummaryResponse.from_summary(summary)


@router.get(
    "/gaps",
    response_model=LearningGapReportResponse,
    summary="Get learning gaps",
)
async def get_learning_gaps(
    progress_service: ProgressServiceDep,
    user_id: CurrentUserId,
) -> LearningGapReportResponse:
    """Learning gaps and recommendations, highest priority first."""
    report = await progress_service.get_learning_gaps(user_id)
    return LearningGapReportResponse.from_report(report)


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@enrollments_router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll_in_course(
    data: EnrollRequest,
    progress_service: ProgressServiceDep,
    user_id: CurrentUserId,
) -> EnrollmentResponse:
    """Enroll current user in a course."""
    try:
        enrollment = await progress_service.enroll_user(user_id, data.course_id)
        return EnrollmentResponse.from_entity(enrollment)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@enrollments_router.get(
    "/my",
    response_model=EnrollmentListResponse,
    summary="Get my enrollments",
)
async def get_my_enrollments(
    progress_service: ProgressServiceDep,
    user_id: CurrentUserId,
) -> EnrollmentListResponse:
    """Get all course enrollments for current user, newest first."""
    enrollments = await progress_service.get_user_enrollments(user_id)
    return EnrollmentListResponse(
        items=[EnrollmentResponse.from_entity(e) for e in enrollments],
        total=len(enrollments),
    )


@enrollments_router.get(
    "/{course_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment for course",
)
async def get_enrollment(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user_id: CurrentUserId,
) -> EnrollmentResponse:
    """Get enrollment status for a specific course."""
    enrollment = await progress_service.get_enrollment(user_id, course_id)
    if enrollment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Enrollment not found",
        )
    return EnrollmentResponse.from_entity(enrollment)


@enrollments_router.put(
    "/{course_id}/drop",
    response_model=EnrollmentResponse,
    summary="Drop course",
)
async def drop_course(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user_id: CurrentUserId,
) -> EnrollmentResponse:
    """Drop a course. Progress made so far is kept."""
    try:
        enrollment = await progress_service.drop_course(user_id, course_id)
        return EnrollmentResponse.from_entity(enrollment)
    except ProgressError as e:
        raise handle_progress_error(e) from e
