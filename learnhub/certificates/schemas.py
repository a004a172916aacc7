"""Pydantic schemas for certificates."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .models import Certificate


class CertificateMetadataResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    course_category: str | None = None
    course_level: str | None = None
    instructor: str | None = None
    institution: str | None = None


class CertificateResponse(BaseModel):
    """Certificate response."""

    model_config = ConfigDict(from_attributes=True)

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
    is_verified: bool
    metadata: CertificateMetadataResponse

    @classmethod
    def from_entity(cls, entity: Certificate) -> "CertificateResponse":
        """Create response from entity."""
        return cls.model_validate(entity)


class CertificateVerificationResponse(BaseModel):
    """Public verification result."""

    certificate: CertificateResponse
    is_valid: bool
    is_expired: bool

    @classmethod
    def from_entity(
        cls, entity: Certificate, now: datetime
    ) -> "CertificateVerificationResponse":
        return cls(
            certificate=CertificateResponse.from_entity(entity),
            is_valid=entity.is_valid(now),
            is_expired=entity.is_expired(now),
        )
