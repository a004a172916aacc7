"""Certificate issuing and verification service."""

from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from learnhub.courses.models import CourseDefinition
from learnhub.progress.analytics import round_half_up
from learnhub.progress.models import Enrollment, ProgressRecord

from .models import (
    CERTIFICATE_VALIDITY_YEARS,
    Certificate,
    CertificateMetadata,
    add_years,
    calculate_grade,
    generate_certificate_id,
    generate_verification_code,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

MINUTES_PER_HOUR = 60


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CertificateError(Exception):
    """Base certificate error."""

    def __init__(self, message: str, code: str = "certificate_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CertificateNotFoundError(CertificateError):
    def __init__(self, message: str = "Certificate not found"):
        super().__init__(message, "certificate_not_found")


class CertificateNotEligibleError(CertificateError):
    """Enrollment is not completed yet."""

    def __init__(
        self, message: str = "Course must be completed before a certificate is issued"
    ):
        super().__init__(message, "certificate_not_eligible")


def build_certificate(
    enrollment: Enrollment,
    record: ProgressRecord,
    course: CourseDefinition,
    now: datetime,
    institution: str | None = None,
) -> Certificate:
    """Snapshot a completed enrollment into a new certificate."""
    final_score = round_half_up(record.analytics.average_score, 1)
    return Certificate(
        certificate_id=generate_certificate_id(enrollment.user_id, course.id, now),
        user_id=enrollment.user_id,
        course_id=course.id,
        final_score=final_score,
        grade=calculate_grade(final_score),
        issued_at=now,
        expires_at=add_years(now, CERTIFICATE_VALIDITY_YEARS),
        completion_date=enrollment.completed_at or now,
        total_modules=len(record.module_progress),
        completed_modules=sum(1 for m in record.module_progress if m.completed),
        total_time_spent=round_half_up(
            record.analytics.total_time_spent / MINUTES_PER_HOUR, 2
        ),
        verification_code=generate_verification_code(),
        metadata=CertificateMetadata(
            course_category=course.category,
            course_level=course.level,
            instructor=course.instructor,
            institution=institution,
        ),
    )


# ==============================================================================
# Certificate Service
# ==============================================================================


class CertificateService:
    """Service for course completion certificates."""

    def __init__(self, session: "Session", keyspace: str, institution: str | None = None):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.institution = institution
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_certificate = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates
            WHERE user_id = ? AND course_id = ?
        """)

        self._insert_certificate = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates
            (user_id, course_id, certificate_id, issued_at, expires_at,
             final_score, grade, completion_date, total_modules,
             completed_modules, total_time_spent, is_verified,
             verification_code, course_category, course_level, instructor,
             institution)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._mark_verified = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates
            SET is_verified = true
            WHERE user_id = ? AND course_id = ?
        """)

        # Certificates by verification code (lookup)
        self._get_by_code = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates_by_code
            WHERE verification_code = ?
        """)

        self._insert_by_code = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_code
            (verification_code, user_id, course_id)
            VALUES (?, ?, ?)
        """)

    async def issue_certificate(
        self,
        enrollment: Enrollment,
        record: ProgressRecord,
        course: CourseDefinition,
    ) -> Certificate:
        """Issue the certificate for a completed enrollment.

        Issuing twice returns the certificate issued the first time.

        Raises:
            CertificateNotEligibleError: If the enrollment is not completed
        """
        if not enrollment.is_completed:
            raise CertificateNotEligibleError

        existing = await self.get_certificate(enrollment.user_id, course.id)
        if existing:
            return existing

        certificate = build_certificate(
            enrollment, record, course, datetime.now(UTC), self.institution
        )
        result = await self.session.aexecute(
            self._insert_certificate,
            [
                certificate.user_id,
                certificate.course_id,
                certificate.certificate_id,
                certificate.issued_at,
                certificate.expires_at,
                certificate.final_score,
                certificate.grade,
                certificate.completion_date,
                certificate.total_modules,
                certificate.completed_modules,
                certificate.total_time_spent,
                certificate.is_verified,
                certificate.verification_code,
                certificate.metadata.course_category,
                certificate.metadata.course_level,
                certificate.metadata.instructor,
                certificate.metadata.institution,
            ],
        )
        if not result.was_applied:
            # Issued concurrently; the stored one wins
            stored = await self.get_certificate(enrollment.user_id, course.id)
            if stored is None:
                raise CertificateError("Certificate could not be stored")
            return stored

        await self.session.aexecute(
            self._insert_by_code,
            [certificate.verification_code, certificate.user_id, certificate.course_id],
        )

        logger.info(
            "certificate_issued",
            certificate_id=certificate.certificate_id,
            user_id=str(certificate.user_id),
            course_id=str(certificate.course_id),
            grade=certificate.grade,
            final_score=certificate.final_score,
        )

        return certificate

    async def get_certificate(self, user_id: UUID, course_id: UUID) -> Certificate | None:
        """Get the certificate for a user's course, if issued."""
        result = await self.session.aexecute(self._get_certificate, [user_id, course_id])
        row = result.one()
        return Certificate.from_row(row) if row else None

    async def get_by_verification_code(self, code: str) -> Certificate | None:
        """Get certificate by its public verification code."""
        result = await self.session.aexecute(self._get_by_code, [code])
        row = result.one()
        if not row:
            return None
        return await self.get_certificate(row.user_id, row.course_id)

    async def verify_certificate(self, code: str) -> Certificate:
        """Look up a certificate by code and mark it verified.

        Raises:
            CertificateNotFoundError: If no certificate has this code
        """
        certificate = await self.get_by_verification_code(code)
        if certificate is None:
            raise CertificateNotFoundError

        if not certificate.is_verified:
            await self.session.aexecute(
                self._mark_verified, [certificate.user_id, certificate.course_id]
            )
            certificate = replace(certificate, is_verified=True)
            logger.info(
                "certificate_verified",
                certificate_id=certificate.certificate_id,
            )

        return certificate
