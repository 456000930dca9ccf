"""
Islamic Analysis Agent: product-level orchestration over analyzer, consensus and verification.

Per ingredient: analyzer result -> (optional) AI fallback for unknowns -> madhab reference
when a specific school is requested -> verification override when the ingredient needs it.
Aggregation is HARAM-absorbing: any HARAM makes the product HARAM, else any MASHBOOH makes
it MASHBOOH, else HALAL.

The agent also answers bus requests:
    ingredient-analysis-requested -> analysis-response
    fatwa-consultation-requested  -> fatwa-response
"""
import asyncio
import logging
import time
from collections import Counter
from typing import Optional

from core.config import AI_FALLBACK_ENABLED
from core.evaluation.ingredient_analyzer import IngredientAnalyzer, IngredientResolver
from core.events import (
    AnalysisCompleted,
    AnalysisRequested,
    AnalysisResponse,
    Event,
    EventPublisher,
    EventType,
    FatwaRequested,
    FatwaResponse,
)
from core.models.analysis import AnalysisResult, IslamicCompliance
from core.models.classification import (
    AnalysisContext,
    EnhancedClassification,
    HalalStatus,
    Madhab,
    MatchType,
)
from core.scholarly import ScholarlyConsensusService
from core.verification import HalalVerificationService

logger = logging.getLogger(__name__)

AGENT_SOURCE = "islamic-analysis-agent"


def overall_status(ingredients: list[EnhancedClassification]) -> HalalStatus:
    statuses = {i.status for i in ingredients}
    if HalalStatus.HARAM in statuses:
        return HalalStatus.HARAM
    if HalalStatus.MASHBOOH in statuses:
        return HalalStatus.MASHBOOH
    return HalalStatus.HALAL


def confidence_score(ingredients: list[EnhancedClassification]) -> float:
    """Arithmetic mean of ingredient confidences; 0 for an empty list."""
    if not ingredients:
        return 0
    return sum(i.confidence for i in ingredients) / len(ingredients)


def build_recommendations(ingredients: list[EnhancedClassification]) -> list[str]:
    recs: list[str] = []
    haram = [i for i in ingredients if i.status == HalalStatus.HARAM]
    if haram:
        recs.append(
            f"This product contains {len(haram)} haram ingredient(s): "
            f"{', '.join(i.name for i in haram)}. It should not be consumed by Muslims."
        )
    mashbooh = [i for i in ingredients if i.status == HalalStatus.MASHBOOH]
    if mashbooh:
        recs.append(
            f"This product contains {len(mashbooh)} doubtful ingredient(s): "
            f"{', '.join(i.name for i in mashbooh)}. Further verification from the manufacturer is recommended."
        )
        for i in mashbooh:
            if i.requires_verification:
                recs.append(f"For {i.name}: Request source certification from manufacturer.")
    for i in ingredients:
        if i.alternative_suggestions:
            recs.append(f"Consider alternatives to {i.name}: {', '.join(i.alternative_suggestions)}")
    return recs


def build_warnings(ingredients: list[EnhancedClassification]) -> list[str]:
    """Flags for results a reviewer should not take at face value."""
    warnings: list[str] = []
    haram = [i.name for i in ingredients if i.status == HalalStatus.HARAM]
    if haram:
        warnings.append(f"Product contains {len(haram)} prohibited ingredient(s): {', '.join(haram)}")
    for i in ingredients:
        if i.match_type == MatchType.FUZZY:
            warnings.append(f"'{i.name}' was matched approximately to '{i.matched_name}'; confirm the ingredient name.")
        elif i.match_type == MatchType.CATEGORY:
            warnings.append(
                f"'{i.name}' was classified by category ({i.category}) only; individual verification required."
            )
        elif i.match_type == MatchType.UNKNOWN:
            warnings.append(f"'{i.name}' is not in the knowledge base; treated as doubtful until verified.")
        elif i.match_type == MatchType.AI:
            warnings.append(f"'{i.name}' was classified by AI-assisted analysis; scholarly review required.")
    return warnings


def scholarly_notes(ingredients: list[EnhancedClassification]) -> list[str]:
    """One line per ingredient listing its school-specific references."""
    notes: list[str] = []
    for i in ingredients:
        parts = [
            f"{r.school.value}: {r.translation}"
            for r in i.islamic_references
            if r.school is not None and r.school != Madhab.GENERAL
        ]
        if parts:
            notes.append(f"{i.name} - {'; '.join(parts)}")
    return notes


def compliance_summary(ingredients: list[EnhancedClassification]) -> IslamicCompliance:
    counts = Counter(i.status for i in ingredients)
    return IslamicCompliance(
        total=len(ingredients),
        halal=counts[HalalStatus.HALAL],
        haram=counts[HalalStatus.HARAM],
        mashbooh=counts[HalalStatus.MASHBOOH],
        needs_verification=sum(1 for i in ingredients if i.requires_verification),
    )


class IslamicAnalysisAgent:
    def __init__(
        self,
        event_bus: EventPublisher,
        analyzer: Optional[IngredientResolver] = None,
        consensus: Optional[ScholarlyConsensusService] = None,
        verification: Optional[HalalVerificationService] = None,
        llm_classifier=None,
        ai_fallback: bool = AI_FALLBACK_ENABLED,
    ):
        self.event_bus = event_bus
        self.analyzer = analyzer or IngredientAnalyzer()
        self.consensus = consensus or ScholarlyConsensusService()
        self.verification = verification or HalalVerificationService()
        self.llm_classifier = llm_classifier
        self.ai_fallback = ai_fallback and llm_classifier is not None
        self._subscriptions = [
            event_bus.subscribe(EventType.ANALYSIS_REQUESTED.value, self._handle_analysis_request, source=AGENT_SOURCE),
            event_bus.subscribe(EventType.FATWA_REQUESTED.value, self._handle_fatwa_request, source=AGENT_SOURCE),
        ]
        logger.info("ISLAMIC_ANALYSIS agent ready ai_fallback=%s", self.ai_fallback)

    def shutdown(self) -> None:
        for sub_id in self._subscriptions:
            self.event_bus.unsubscribe(sub_id)
        self._subscriptions = []

    async def process(
        self,
        product_name: str,
        ingredients: list[str],
        context: Optional[AnalysisContext] = None,
    ) -> AnalysisResult:
        """
        Analyze a product. Unknown ingredients never fail the call; unexpected errors are
        logged and re-raised so no partial result is returned as success.
        """
        context = context or AnalysisContext()
        t0 = time.perf_counter()
        try:
            # resolution may append to the unknown-ingredients file
            results = await asyncio.to_thread(self.analyzer.analyze_bulk_ingredients, ingredients, context)
            if self.ai_fallback:
                results = await self._apply_ai_fallback(results)
            for r in results:
                self._augment(r, context)
            result = AnalysisResult(
                product_name=product_name,
                overall_status=overall_status(results),
                confidence_score=confidence_score(results),
                ingredients=results,
                warnings=build_warnings(results),
                recommendations=build_recommendations(results),
                islamic_compliance=compliance_summary(results),
                scholarly_notes=scholarly_notes(results) if context.include_scholarly_differences else None,
                created_at=time.time(),
            )
        except Exception:
            logger.error("ISLAMIC_ANALYSIS failed product=%s", product_name[:60], exc_info=True)
            raise

        logger.info(
            "ISLAMIC_ANALYSIS product=%s ingredients=%d status=%s confidence=%.1f latency_ms=%d",
            product_name[:60], len(results), result.overall_status.value,
            result.confidence_score, int((time.perf_counter() - t0) * 1000),
        )
        await self.event_bus.emit(
            EventType.ANALYSIS_COMPLETED.value,
            AnalysisCompleted(product_name=product_name, result=result.to_dict()).to_dict(),
            source=AGENT_SOURCE,
        )
        return result

    def _augment(self, item: EnhancedClassification, context: AnalysisContext) -> None:
        if context.has_specific_madhab:
            ruling = self.consensus.get_madhab_specific_ruling(item.name, context.madhab)
            if ruling is not None:
                item.islamic_references.append(ruling)
        if item.requires_verification:
            verified = self.verification.verify_ingredient(item.name)
            if verified is not None:
                item.confidence = verified.confidence
                item.islamic_references.extend(verified.references)

    async def _apply_ai_fallback(self, results: list[EnhancedClassification]) -> list[EnhancedClassification]:
        unknown = list(dict.fromkeys(r.name for r in results if r.match_type == MatchType.UNKNOWN))
        if not unknown:
            return results
        # classify() does blocking HTTP
        resolved = await asyncio.to_thread(self.llm_classifier.classify, unknown)
        out: list[EnhancedClassification] = []
        for r in results:
            ai = resolved.get(r.name) if r.match_type == MatchType.UNKNOWN else None
            if ai is None:
                out.append(r)
                continue
            enhanced = EnhancedClassification.from_classification(ai, MatchType.AI)
            enhanced.contextual_notes = list(r.contextual_notes)
            enhanced.similar_ingredients = list(r.similar_ingredients)
            out.append(enhanced)
        logger.info("ISLAMIC_ANALYSIS ai_fallback unknown=%d resolved=%d", len(unknown), len(resolved))
        return out

    # --- bus handlers ---

    async def _handle_analysis_request(self, event: Event) -> None:
        request_id = event.data.get("request_id")
        try:
            req = AnalysisRequested.from_dict(event.data)
            result = await self.process(req.product_name, req.ingredients, req.context)
            response = AnalysisResponse(request_id=request_id, result=result.to_dict())
        except Exception as e:
            logger.warning("ISLAMIC_ANALYSIS request_failed request_id=%s error=%s", request_id, e)
            response = AnalysisResponse(request_id=request_id, result=None, error=str(e))
        await self.event_bus.emit(EventType.ANALYSIS_RESPONSE.value, response.to_dict(), source=AGENT_SOURCE)

    async def _handle_fatwa_request(self, event: Event) -> None:
        req = FatwaRequested.from_dict(event.data)
        ruling = self.consensus.get_madhab_specific_ruling(req.ingredient, req.madhab)
        await self.event_bus.emit(
            EventType.FATWA_RESPONSE.value,
            FatwaResponse(request_id=req.request_id, ruling=ruling).to_dict(),
            source=AGENT_SOURCE,
        )
