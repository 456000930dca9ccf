from .verification_schema import CertificationBody, VerificationMethod, VerificationResult, VerificationRule
from .halal_verification import HalalVerificationService

__all__ = [
    "CertificationBody",
    "VerificationMethod",
    "VerificationResult",
    "VerificationRule",
    "HalalVerificationService",
]
