"""
Typed payloads per event type. The bus carries plain dicts; these classes build and
parse them so handlers never trust an untyped shape.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from core.models.classification import AnalysisContext, Madhab, Reference


class EventType(str, Enum):
    ANALYSIS_REQUESTED = "ingredient-analysis-requested"
    ANALYSIS_RESPONSE = "analysis-response"
    ANALYSIS_COMPLETED = "islamic-analysis-completed"
    FATWA_REQUESTED = "fatwa-consultation-requested"
    FATWA_RESPONSE = "fatwa-response"


@dataclass
class AnalysisRequested:
    product_name: str
    ingredients: list[str]
    context: AnalysisContext = field(default_factory=AnalysisContext)
    request_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "product_name": self.product_name,
            "ingredients": list(self.ingredients),
            "context": self.context.to_dict(),
        }
        if self.request_id is not None:
            d["request_id"] = self.request_id
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "AnalysisRequested":
        ingredients = d.get("ingredients")
        if not isinstance(ingredients, list):
            raise ValueError("ingredients must be a list of strings")
        return cls(
            product_name=str(d.get("product_name", "")),
            ingredients=[str(i) for i in ingredients],
            context=AnalysisContext.from_dict(d.get("context")),
            request_id=d.get("request_id"),
        )


@dataclass
class AnalysisResponse:
    request_id: Optional[str]
    result: Optional[dict[str, Any]]
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"request_id": self.request_id, "result": self.result}
        if self.error is not None:
            d["error"] = self.error
        return d


@dataclass
class AnalysisCompleted:
    product_name: str
    result: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"product_name": self.product_name, "result": self.result}


@dataclass
class FatwaRequested:
    ingredient: str
    madhab: Madhab
    request_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"ingredient": self.ingredient, "madhab": self.madhab.value}
        if self.request_id is not None:
            d["request_id"] = self.request_id
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "FatwaRequested":
        return cls(
            ingredient=str(d["ingredient"]),
            madhab=Madhab(d["madhab"]),
            request_id=d.get("request_id"),
        )


@dataclass
class FatwaResponse:
    request_id: Optional[str]
    ruling: Optional[Reference]

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "ruling": self.ruling.to_dict() if self.ruling else None,
        }
