"""
Ingredient analyzer: resolve one ingredient string against the knowledge base.

Strategy order (first success wins):
    exact -> partial (substring) -> fuzzy (edit distance) -> category keyword -> unknown.
Results are always copies; the knowledge base's canonical entries are never mutated.
"""
import logging
import math
from collections import Counter
from typing import Optional, Protocol

from core.config import (
    CATEGORY_MATCH_CONFIDENCE,
    FUZZY_MATCH_THRESHOLD,
    SIMILAR_MIN_SIMILARITY,
)
from core.evaluation.similarity import similarity
from core.models.classification import (
    AnalysisContext,
    EnhancedClassification,
    HalalStatus,
    IngredientClassification,
    Madhab,
    MatchType,
    Reference,
    ReferenceSource,
)
from core.normalization.normalizer import normalize_ingredient_name
from core.ontology.knowledge_base import IslamicKnowledgeBase, get_knowledge_base, unknown_classification

logger = logging.getLogger(__name__)

# Keyword in the ingredient name -> knowledge-base category (checked in this order)
CATEGORY_KEYWORDS: dict[str, str] = {
    "oil": "Plant Oils",
    "fat": "Animal Fats",
    "vitamin": "Vitamins",
    "color": "Colorants",
    "flavoring": "Flavorings",
    "preservative": "Preservatives",
    "emulsifier": "Emulsifiers",
    "thickener": "Thickeners",
    "sweetener": "Sweeteners",
}

SUGGESTION_LIMIT = 3


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def contextual_notes(context: Optional[AnalysisContext]) -> list[str]:
    """Human-readable hints derived from request context. No decision impact."""
    if context is None:
        return []
    notes: list[str] = []
    if context.product_type:
        notes.append(f"Product type: {context.product_type} - may require specific halal standards")
    if context.manufacturing_process:
        notes.append(f"Manufacturing process: {context.manufacturing_process} - verify equipment cleanliness")
    if context.source_country:
        notes.append(f"Source country: {context.source_country} - verify local halal standards")
    if context.has_specific_madhab:
        notes.append(f"{context.madhab.value} school interpretation may have specific rulings")
    return notes


class IngredientResolver(Protocol):
    def analyze_ingredient(
        self,
        name: str,
        context: Optional[AnalysisContext] = None,
    ) -> EnhancedClassification:
        ...

    def analyze_bulk_ingredients(
        self,
        names: list[str],
        context: Optional[AnalysisContext] = None,
    ) -> list[EnhancedClassification]:
        ...


class IngredientAnalyzer:
    def __init__(
        self,
        knowledge_base: Optional[IslamicKnowledgeBase] = None,
        unknown_log=None,
    ):
        self.knowledge_base = knowledge_base or get_knowledge_base()
        self.knowledge_base.load()
        self._unknown_log = unknown_log

    def analyze_ingredient(
        self,
        name: str,
        context: Optional[AnalysisContext] = None,
    ) -> EnhancedClassification:
        """Resolve one ingredient. Never raises for ordinary input; worst case is the unknown fallback."""
        normalized = normalize_ingredient_name(name)
        result: Optional[EnhancedClassification] = None
        if normalized:
            result = (
                self._find_exact(normalized)
                or self._find_partial(normalized)
                or self._find_fuzzy(normalized)
                or self._find_category(normalized)
            )
        if result is None:
            result = self._unknown(name, normalized, context)
        else:
            logger.debug(
                "ANALYZER match_type=%s raw=%s matched=%s confidence=%s",
                result.match_type.value, name[:60], result.matched_name, result.confidence,
            )
        result.name = name
        if result.match_type in (MatchType.FUZZY, MatchType.CATEGORY, MatchType.UNKNOWN):
            result.similar_ingredients = self.get_similar_ingredients(name, SUGGESTION_LIMIT)
        return result

    def analyze_bulk_ingredients(
        self,
        names: list[str],
        context: Optional[AnalysisContext] = None,
    ) -> list[EnhancedClassification]:
        """Analyze many ingredients; output order matches input order."""
        results = [self.analyze_ingredient(n, context) for n in names]
        counts = Counter(r.status for r in results)
        logger.info(
            "ANALYZER bulk total=%d halal=%d haram=%d mashbooh=%d",
            len(results), counts[HalalStatus.HALAL], counts[HalalStatus.HARAM], counts[HalalStatus.MASHBOOH],
        )
        return results

    def get_similar_ingredients(self, name: str, limit: int = 5) -> list[str]:
        """Names with similarity strictly between SIMILAR_MIN_SIMILARITY and 1.0, best first."""
        normalized = normalize_ingredient_name(name)
        scored = []
        for entry in self.knowledge_base.get_all_classifications():
            s = similarity(normalized, entry.name.lower())
            if SIMILAR_MIN_SIMILARITY < s < 1.0:
                scored.append((s, entry.name))
        scored.sort(key=lambda t: t[0], reverse=True)
        return [n for _, n in scored[:limit]]

    # --- strategies ---

    def _find_exact(self, normalized: str) -> Optional[EnhancedClassification]:
        entry = self.knowledge_base.get_exact(normalized)
        if entry is None:
            return None
        return EnhancedClassification.from_classification(entry, MatchType.EXACT, entry.name)

    def _find_partial(self, normalized: str) -> Optional[EnhancedClassification]:
        for entry in self.knowledge_base.get_all_classifications():
            stored = entry.name.lower()
            if normalized in stored or stored in normalized:
                return EnhancedClassification.from_classification(entry, MatchType.PARTIAL, entry.name)
        return None

    def _find_fuzzy(self, normalized: str) -> Optional[EnhancedClassification]:
        for entry in self.knowledge_base.get_all_classifications():
            s = similarity(normalized, entry.name.lower())
            if s >= FUZZY_MATCH_THRESHOLD:
                out = EnhancedClassification.from_classification(entry, MatchType.FUZZY, entry.name)
                out.confidence = _round_half_up(entry.confidence * s)
                logger.info(
                    "ANALYZER match_type=fuzzy raw=%s matched=%s similarity=%.2f",
                    normalized[:60], entry.name, s,
                )
                return out
        return None

    def _find_category(self, normalized: str) -> Optional[EnhancedClassification]:
        for keyword, category in CATEGORY_KEYWORDS.items():
            if keyword not in normalized:
                continue
            members = self.knowledge_base.get_by_category(category)
            if not members:
                continue
            # most_common keeps first-seen order on ties
            majority = Counter(e.status for e in members).most_common(1)[0][0]
            base = IngredientClassification(
                name=normalized,
                status=majority,
                category=category,
                confidence=CATEGORY_MATCH_CONFIDENCE,
                reasoning=f"Categorized as {category}. General analysis based on category patterns.",
                islamic_references=[
                    Reference(
                        source=ReferenceSource.SCHOLARLY_CONSENSUS,
                        reference="Category-based Analysis",
                        translation=f"Ingredients in the {category} category require individual verification.",
                        school=Madhab.GENERAL,
                    )
                ],
                requires_verification=True,
            )
            return EnhancedClassification.from_classification(base, MatchType.CATEGORY)
        return None

    def _unknown(
        self,
        raw: str,
        normalized: str,
        context: Optional[AnalysisContext],
    ) -> EnhancedClassification:
        out = EnhancedClassification.from_classification(unknown_classification(raw), MatchType.UNKNOWN)
        out.contextual_notes = contextual_notes(context)
        logger.info("UNKNOWN_INGREDIENT raw=%s normalized_key=%s", raw[:60], normalized)
        if self._unknown_log is not None and normalized:
            self._unknown_log.record(
                raw, normalized,
                madhab=context.madhab.value if context and context.madhab else None,
            )
        return out
