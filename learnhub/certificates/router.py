"""Certificate API endpoints."""

from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from learnhub.core.dependencies import CurrentUserId
from learnhub.courses.dependencies import CourseServiceDep
from learnhub.progress.dependencies import ProgressServiceDep, handle_progress_error
from learnhub.progress.exceptions import CourseNotFoundError, NotEnrolledError, ProgressError

from .dependencies import CertificateServiceDep, handle_certificate_error
from .schemas import CertificateResponse, CertificateVerificationResponse
from .service import CertificateError


router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


@router.post(
    "/course/{course_id}",
    response_model=CertificateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue certificate",
)
async def issue_certificate(
    course_id: UUID,
    certificate_service: CertificateServiceDep,
    progress_service: ProgressServiceDep,
    course_service: CourseServiceDep,
    user_id: CurrentUserId,
) -> CertificateResponse:
    """Issue (or return the already issued) certificate for a completed course."""
    try:
        enrollment = await progress_service.get_enrollment(user_id, course_id)
        if enrollment is None:
            raise NotEnrolledError
        course = await course_service.get_course(course_id)
        if course is None:
            raise CourseNotFoundError
        record = await progress_service.get_course_progress(user_id, course_id)
    except ProgressError as e:
        raise handle_progress_error(e) from e

    try:
        certificate = await certificate_service.issue_certificate(
            enrollment, record, course
        )
        return CertificateResponse.from_entity(certificate)
    except CertificateError as e:
        raise handle_certificate_error(e) from e


@router.get(
    "/course/{course_id}",
    response_model=CertificateResponse,
    summary="Get my certificate for a course",
)
async def get_certificate(
    course_id: UUID,
    certificate_service: CertificateServiceDep,
    user_id: CurrentUserId,
) -> CertificateResponse:
    certificate = await certificate_service.get_certificate(user_id, course_id)
    if certificate is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Certificate not found",
        )
    return CertificateResponse.from_entity(certificate)


@router.get(
    "/verify/{code}",
    response_model=CertificateVerificationResponse,
    summary="Verify certificate",
)
async def verify_certificate(
    code: str,
    certificate_service: CertificateServiceDep,
) -> CertificateVerificationResponse:
    """Public check of a verification code. Marks the certificate verified."""
    try:
        certificate = await certificate_service.verify_certificate(code)
    except CertificateError as e:
        raise handle_certificate_error(e) from e

    return CertificateVerificationResponse.from_entity(certificate, datetime.now(UTC))
