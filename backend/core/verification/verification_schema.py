"""
Verification service contract: results, rule matchers, certification bodies.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from core.models.classification import Reference


class VerificationMethod(str, Enum):
    DATABASE = "database"
    CERTIFICATION_BODY = "certification_body"
    SCHOLARLY_CONSULTATION = "scholarly_consultation"
    CONTEMPORARY_FATWA = "contemporary_fatwa"


@dataclass
class VerificationResult:
    confidence: int
    references: list[Reference]
    verification_method: VerificationMethod
    last_verified: float  # epoch seconds
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "confidence": self.confidence,
            "references": [r.to_dict() for r in self.references],
            "verification_method": self.verification_method.value,
            "last_verified": self.last_verified,
            "notes": list(self.notes),
        }


@dataclass(frozen=True)
class VerificationRule:
    """Substring predicate over the lowercased name plus the canned result it yields."""
    id: str
    keywords: tuple[str, ...]
    confidence: int
    method: VerificationMethod
    references: tuple[Reference, ...] = ()
    notes: tuple[str, ...] = ()

    def matches(self, ingredient: str) -> bool:
        name = ingredient.lower()
        return any(kw in name for kw in self.keywords)

    @classmethod
    def from_dict(cls, d: dict) -> "VerificationRule":
        return cls(
            id=d["id"],
            keywords=tuple(k.lower() for k in d.get("keywords", [])),
            confidence=int(d["confidence"]),
            method=VerificationMethod(d["method"]),
            references=tuple(Reference.from_dict(r) for r in d.get("references", []) or []),
            notes=tuple(d.get("notes", []) or []),
        )


@dataclass(frozen=True)
class CertificationBody:
    name: str
    country: str
    standards: tuple[str, ...]
    credibility: int
    website: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "country": self.country,
            "standards": list(self.standards),
            "credibility": self.credibility,
            "website": self.website,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "CertificationBody":
        return cls(
            name=d["name"],
            country=d.get("country", ""),
            standards=tuple(d.get("standards", []) or []),
            credibility=int(d.get("credibility", 0)),
            website=d.get("website"),
        )
