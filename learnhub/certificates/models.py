"""Course completion certificates.

One certificate per completed enrollment. The verification code is
generated at issue time and never changes; ``is_verified`` is flipped once
someone checks the code through the verification endpoint.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from learnhub.progress.models import ensure_utc_aware


CERTIFICATE_VALIDITY_YEARS = 5

GRADE_BREAKPOINTS = (
    (97, "A+"),
    (93, "A"),
    (90, "A-"),
    (87, "B+"),
    (83, "B"),
    (80, "B-"),
    (77, "C+"),
    (73, "C"),
    (70, "C-"),
    (67, "D"),
)
FAILING_GRADE = "F"


def calculate_grade(final_score: float) -> str:
    """Letter grade for a 0-100 final score."""
    for threshold, grade in GRADE_BREAKPOINTS:
        if final_score >= threshold:
            return grade
    return FAILING_GRADE


def add_years(moment: datetime, years: int) -> datetime:
    """Same calendar date ``years`` later; 29 Feb becomes 28 Feb."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


def generate_verification_code() -> str:
    return f"VERIFY-{secrets.token_hex(8).upper()}"


def generate_certificate_id(user_id: UUID, course_id: UUID, issued_at: datetime) -> str:
    return f"CERT-{user_id}-{course_id}-{int(issued_at.timestamp() * 1000)}"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# One certificate per (user, course); created with IF NOT EXISTS
CERTIFICATES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates (
    user_id UUID,
    course_id UUID,
    certificate_id TEXT,
    issued_at TIMESTAMP,
    expires_at TIMESTAMP,
    final_score DOUBLE,
    grade TEXT,
    completion_date TIMESTAMP,
    total_modules INT,
    completed_modules INT,
    total_time_spent DOUBLE,
    is_verified BOOLEAN,
    verification_code TEXT,
    course_category TEXT,
    course_level TEXT,
    instructor TEXT,
    institution TEXT,
    PRIMARY KEY ((user_id, course_id))
)
"""

# Lookup: certificate by verification code
CERTIFICATES_BY_CODE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_code (
    verification_code TEXT PRIMARY KEY,
    user_id UUID,
    course_id UUID
)
"""

CERTIFICATES_TABLES_CQL = [
    CERTIFICATES_TABLE_CQL,
    CERTIFICATES_BY_CODE_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass(frozen=True)
class CertificateMetadata:
    course_category: str | None = None
    course_level: str | None = None
    instructor: str | None = None
    institution: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "course_category": self.course_category,
            "course_level": self.course_level,
            "instructor": self.instructor,
            "institution": self.institution,
        }


@dataclass(frozen=True)
class Certificate:
    """Completion certificate entity.

    Attributes:
        certificate_id: Human-readable ID (CERT-<user>-<course>-<ms>)
        user_id: Learner UUID
        course_id: Course UUID
        final_score: Average module score at completion
        grade: Letter grade derived from final_score
        issued_at: Issue timestamp
        expires_at: issued_at + 5 years
        completion_date: When the enrollment was completed
        total_modules: Modules in the course
        completed_modules: Modules completed at issue time
        total_time_spent: Hours spent across modules
        verification_code: Public code used to verify the certificate
        is_verified: Set once the code has been checked
        metadata: Course and institution details
    """

    certificate_id: str
    user_id: UUID
    course_id: UUID
    final_score: float
    grade: str
    issued_at: datetime
    expires_at: datetime
    completion_date: datetime
    total_modules: int
    completed_modules: int
    total_time_spent: float
    verification_code: str
    is_verified: bool = False
    metadata: CertificateMetadata = field(default_factory=CertificateMetadata)

    def is_expired(self, now: datetime) -> bool:
        """Expired from ``expires_at`` onwards; valid strictly before it."""
        return now >= self.expires_at

    def is_valid(self, now: datetime) -> bool:
        return self.is_verified and not self.is_expired(now)

    @classmethod
    def from_row(cls, row: Any) -> "Certificate":
        """Create Certificate instance from Cassandra row."""
        return cls(
            certificate_id=row.certificate_id,
            user_id=row.user_id,
            course_id=row.course_id,
            final_score=row.final_score or 0,
            grade=row.grade,
            issued_at=ensure_utc_aware(row.issued_at),
            expires_at=ensure_utc_aware(row.expires_at),
            completion_date=ensure_utc_aware(row.completion_date),
            total_modules=row.total_modules or 0,
            completed_modules=row.completed_modules or 0,
            total_time_spent=row.total_time_spent or 0,
            verification_code=row.verification_code,
            is_verified=bool(row.is_verified),
            metadata=CertificateMetadata(
                course_category=row.course_category,
                course_level=row.course_level,
                instructor=row.instructor,
                institution=row.institution,
            ),
        )

    def __repr__(self) -> str:
        return f"<Certificate {self.certificate_id} {self.grade}>"
