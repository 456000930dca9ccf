"""
Per-school rulings and the consensus derived from them.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from core.models.classification import HalalStatus, Madhab, Reference


class ConsensusLevel(str, Enum):
    UNANIMOUS = "unanimous"
    MAJORITY = "majority"
    DIVIDED = "divided"
    UNCLEAR = "unclear"


@dataclass(frozen=True)
class MadhabRuling:
    madhab: Madhab
    ruling: HalalStatus
    confidence: int
    reasoning: str
    references: tuple[Reference, ...] = ()
    scholars: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "madhab": self.madhab.value,
            "ruling": self.ruling.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "references": [r.to_dict() for r in self.references],
            "scholars": list(self.scholars),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "MadhabRuling":
        return cls(
            madhab=Madhab(d["madhab"]),
            ruling=HalalStatus(d["ruling"]),
            confidence=int(d.get("confidence", 0)),
            reasoning=d.get("reasoning", ""),
            references=tuple(Reference.from_dict(r) for r in d.get("references", []) or []),
            scholars=tuple(d.get("scholars", []) or []),
        )


@dataclass
class ConsensusAnalysis:
    ingredient: str
    consensus_level: ConsensusLevel
    madhab_rulings: list[MadhabRuling] = field(default_factory=list)
    recommended_approach: str = ""
    alternative_opinions: list[str] = field(default_factory=list)
    category: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ingredient": self.ingredient,
            "category": self.category,
            "consensus_level": self.consensus_level.value,
            "madhab_rulings": [r.to_dict() for r in self.madhab_rulings],
            "recommended_approach": self.recommended_approach,
            "alternative_opinions": list(self.alternative_opinions),
        }
