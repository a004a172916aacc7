"""Course completion certificates."""

from .models import (
    CERTIFICATES_TABLES_CQL,
    Certificate,
    CertificateMetadata,
    calculate_grade,
)


__all__ = [
    "CERTIFICATES_TABLES_CQL",
    "Certificate",
    "CertificateMetadata",
    "calculate_grade",
]
