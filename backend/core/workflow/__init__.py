from .certification import (
    ALLOWED_TRANSITIONS,
    Application,
    ApplicationStatus,
    Certificate,
    CertificateStatus,
    CertificationWorkflow,
    validate_transition,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "Application",
    "ApplicationStatus",
    "Certificate",
    "CertificateStatus",
    "CertificationWorkflow",
    "validate_transition",
]
