"""
Ingredient classification contract shared by the knowledge base, analyzer and agent.
References are immutable; classifications handed across layers are copied before mutation.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class HalalStatus(str, Enum):
    HALAL = "HALAL"
    HARAM = "HARAM"
    MASHBOOH = "MASHBOOH"
    # Product-facing only; never produced by the knowledge base
    VERIFY_SOURCE = "VERIFY_SOURCE"


class ReferenceSource(str, Enum):
    QURAN = "Quran"
    HADITH = "Hadith"
    SCHOLARLY_CONSENSUS = "Scholarly_Consensus"
    CONTEMPORARY_FATWA = "Contemporary_Fatwa"


class Madhab(str, Enum):
    HANAFI = "Hanafi"
    MALIKI = "Maliki"
    SHAFI = "Shafi"
    HANBALI = "Hanbali"
    GENERAL = "General"


class MatchType(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    FUZZY = "fuzzy"
    CATEGORY = "category"
    UNKNOWN = "unknown"
    AI = "ai"


@dataclass(frozen=True)
class Reference:
    source: ReferenceSource
    reference: str
    translation: str
    arabic: Optional[str] = None
    transliteration: Optional[str] = None
    school: Optional[Madhab] = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "source": self.source.value,
            "reference": self.reference,
            "translation": self.translation,
        }
        if self.arabic:
            d["arabic"] = self.arabic
        if self.transliteration:
            d["transliteration"] = self.transliteration
        if self.school is not None:
            d["school"] = self.school.value
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Reference":
        school = d.get("school")
        return cls(
            source=ReferenceSource(d["source"]),
            reference=d["reference"],
            translation=d["translation"],
            arabic=d.get("arabic"),
            transliteration=d.get("transliteration"),
            school=Madhab(school) if school else None,
        )


@dataclass
class IngredientClassification:
    name: str
    status: HalalStatus
    category: str
    confidence: int
    reasoning: str
    islamic_references: list[Reference] = field(default_factory=list)
    alternative_suggestions: list[str] = field(default_factory=list)
    requires_verification: bool = False

    def copy(self) -> "IngredientClassification":
        """Detached copy; reference list may be appended without touching the original."""
        return IngredientClassification(
            name=self.name,
            status=self.status,
            category=self.category,
            confidence=self.confidence,
            reasoning=self.reasoning,
            islamic_references=list(self.islamic_references),
            alternative_suggestions=list(self.alternative_suggestions),
            requires_verification=self.requires_verification,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "category": self.category,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "islamic_references": [r.to_dict() for r in self.islamic_references],
            "alternative_suggestions": list(self.alternative_suggestions),
            "requires_verification": self.requires_verification,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "IngredientClassification":
        return cls(
            name=d["name"],
            status=HalalStatus(d["status"]),
            category=d.get("category", "Unknown"),
            confidence=int(d.get("confidence", 0)),
            reasoning=d.get("reasoning", ""),
            islamic_references=[Reference.from_dict(r) for r in d.get("islamic_references", []) or []],
            alternative_suggestions=list(d.get("alternative_suggestions", []) or []),
            requires_verification=bool(d.get("requires_verification", False)),
        )


@dataclass
class EnhancedClassification(IngredientClassification):
    match_type: MatchType = MatchType.UNKNOWN
    matched_name: Optional[str] = None  # knowledge-base entry the query resolved to
    contextual_notes: list[str] = field(default_factory=list)
    similar_ingredients: list[str] = field(default_factory=list)

    @classmethod
    def from_classification(
        cls,
        base: IngredientClassification,
        match_type: MatchType,
        matched_name: Optional[str] = None,
    ) -> "EnhancedClassification":
        c = base.copy()
        return cls(
            name=c.name,
            status=c.status,
            category=c.category,
            confidence=c.confidence,
            reasoning=c.reasoning,
            islamic_references=c.islamic_references,
            alternative_suggestions=c.alternative_suggestions,
            requires_verification=c.requires_verification,
            match_type=match_type,
            matched_name=matched_name,
        )

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["match_type"] = self.match_type.value
        d["matched_name"] = self.matched_name
        d["contextual_notes"] = list(self.contextual_notes)
        d["similar_ingredients"] = list(self.similar_ingredients)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "EnhancedClassification":
        base = IngredientClassification.from_dict(d)
        out = cls.from_classification(
            base, MatchType(d.get("match_type", "unknown")), d.get("matched_name"),
        )
        out.contextual_notes = list(d.get("contextual_notes", []) or [])
        out.similar_ingredients = list(d.get("similar_ingredients", []) or [])
        return out


@dataclass
class AnalysisContext:
    madhab: Optional[Madhab] = None
    strictness_level: Optional[str] = None  # strict | moderate | lenient
    include_scholarly_differences: bool = False
    product_type: Optional[str] = None
    manufacturing_process: Optional[str] = None
    source_country: Optional[str] = None

    @property
    def has_specific_madhab(self) -> bool:
        return self.madhab is not None and self.madhab != Madhab.GENERAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "madhab": self.madhab.value if self.madhab else None,
            "strictness_level": self.strictness_level,
            "include_scholarly_differences": self.include_scholarly_differences,
            "product_type": self.product_type,
            "manufacturing_process": self.manufacturing_process,
            "source_country": self.source_country,
        }

    @classmethod
    def from_dict(cls, d: Optional[dict]) -> "AnalysisContext":
        d = d or {}
        madhab = d.get("madhab")
        return cls(
            madhab=Madhab(madhab) if madhab else None,
            strictness_level=d.get("strictness_level"),
            include_scholarly_differences=bool(d.get("include_scholarly_differences", False)),
            product_type=d.get("product_type"),
            manufacturing_process=d.get("manufacturing_process"),
            source_country=d.get("source_country"),
        )
