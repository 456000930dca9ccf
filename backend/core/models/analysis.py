"""
Product-level analysis result. Single format for /analyze, /scan and event responses.
"""
from dataclasses import dataclass, field
from typing import Any, Optional

from core.models.classification import EnhancedClassification, HalalStatus


@dataclass
class IslamicCompliance:
    total: int = 0
    halal: int = 0
    haram: int = 0
    mashbooh: int = 0
    needs_verification: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "halal": self.halal,
            "haram": self.haram,
            "mashbooh": self.mashbooh,
            "needs_verification": self.needs_verification,
        }


@dataclass
class AnalysisResult:
    product_name: str
    overall_status: HalalStatus
    confidence_score: float
    ingredients: list[EnhancedClassification] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    islamic_compliance: IslamicCompliance = field(default_factory=IslamicCompliance)
    scholarly_notes: Optional[list[str]] = None
    analysis_id: Optional[str] = None
    created_at: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "analysis_id": self.analysis_id,
            "product_name": self.product_name,
            "overall_status": self.overall_status.value,
            "confidence_score": self.confidence_score,
            "ingredients": [i.to_dict() for i in self.ingredients],
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
            "islamic_compliance": self.islamic_compliance.to_dict(),
            "scholarly_notes": list(self.scholarly_notes) if self.scholarly_notes is not None else None,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "AnalysisResult":
        notes = d.get("scholarly_notes")
        return cls(
            product_name=d["product_name"],
            overall_status=HalalStatus(d["overall_status"]),
            confidence_score=float(d.get("confidence_score", 0)),
            ingredients=[EnhancedClassification.from_dict(i) for i in d.get("ingredients", [])],
            warnings=list(d.get("warnings", [])),
            recommendations=list(d.get("recommendations", [])),
            islamic_compliance=IslamicCompliance(**d.get("islamic_compliance", {})),
            scholarly_notes=list(notes) if notes is not None else None,
            analysis_id=d.get("analysis_id"),
            created_at=d.get("created_at"),
        )
