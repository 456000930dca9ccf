"""
AI-assisted fallback for ingredients the knowledge base cannot classify.

One batched call to Ollama; the response must be a JSON array whose items validate
against LLMIngredient. Transport failure, unparseable output or schema mismatch falls
back to local keyword patterns. Nothing here ever defaults an ingredient to HALAL:
names no pattern recognises are left unresolved for the caller's precautionary default.
"""
import json
import logging
import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.config import LLM_CLASSIFY_TIMEOUT, get_ollama_model, get_ollama_url
from core.external_apis.http_retry import post_json_with_retries
from core.models.classification import (
    HalalStatus,
    IngredientClassification,
    Madhab,
    Reference,
    ReferenceSource,
)

logger = logging.getLogger(__name__)

AI_MAX_CONFIDENCE = 90

_SYSTEM_PROMPT = """You are a conservative halal food ingredient classifier. Classify each ingredient you are given.

Return ONLY a JSON array. One object per ingredient with these fields:
- "name": the ingredient exactly as given
- "status": one of "HALAL", "HARAM", "MASHBOOH"
- "confidence": integer between 30 and 90
- "reasoning": one short sentence
- "category": a short category such as "Emulsifiers", "Meat", "Plant Oils"
- "requiresVerification": true or false

RULES:
- Pork and anything derived from swine is HARAM.
- Alcohol and alcohol-derived ingredients are HARAM.
- All meat and poultry is MASHBOOH unless certified halal.
- Vanilla extract, natural flavors, gelatin, lecithin, enzymes and rennet are MASHBOOH.
- E-numbers that may be of animal origin are MASHBOOH.
- Only clearly plant-based, mineral or synthetic ingredients are HALAL.
- When unsure, answer MASHBOOH. Be conservative.
- Return ONLY valid JSON. No markdown, no explanation."""

_PORK_REFERENCE = Reference(
    source=ReferenceSource.QURAN,
    reference="Q2:173",
    translation="He has only forbidden you carrion, blood, swine flesh, and that over which any name other than Allah's has been invoked.",
    school=Madhab.GENERAL,
)
_ALCOHOL_REFERENCE = Reference(
    source=ReferenceSource.QURAN,
    reference="Q5:90",
    translation="Intoxicants, gambling, idolatrous practices, and divining arrows are abominations devised by Satan. Avoid them so that you may prosper.",
    school=Madhab.GENERAL,
)
_AI_REFERENCE = Reference(
    source=ReferenceSource.CONTEMPORARY_FATWA,
    reference="AI-assisted Classification",
    translation="Automated classifications must be confirmed by qualified scholars before reliance.",
    school=Madhab.GENERAL,
)

_PORK_PATTERN = re.compile(r"\b(pork|pig|swine|ham|bacon|lard|porcine)\b", re.IGNORECASE)
_ALCOHOL_PATTERN = re.compile(r"\b(alcohol|ethanol|wine|beer|rum|liquor|brandy)\b(?!-free)", re.IGNORECASE)
_DOUBTFUL_PATTERN = re.compile(
    r"\b(beef|chicken|lamb|meat|poultry|vanilla|gelatine?|lecithin|enzymes?|natural flavou?rs?|rennet)\b",
    re.IGNORECASE,
)


class LLMIngredient(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    status: Literal["HALAL", "HARAM", "MASHBOOH"]
    confidence: int = Field(ge=0, le=100)
    reasoning: str = ""
    category: str = "Unknown"
    requires_verification: bool = Field(default=True, alias="requiresVerification")


def _haram_reference(name: str) -> Reference:
    return _ALCOHOL_REFERENCE if _ALCOHOL_PATTERN.search(name) else _PORK_REFERENCE


def classify_with_patterns(names: list[str]) -> dict[str, IngredientClassification]:
    """Local keyword rules. Unrecognised names are omitted, never defaulted to HALAL."""
    out: dict[str, IngredientClassification] = {}
    for name in names:
        if _PORK_PATTERN.search(name):
            out[name] = IngredientClassification(
                name=name,
                status=HalalStatus.HARAM,
                category="Animal Derivatives",
                confidence=95,
                reasoning="Contains a pork-derived component, which is explicitly forbidden.",
                islamic_references=[_PORK_REFERENCE],
                requires_verification=True,
            )
        elif _ALCOHOL_PATTERN.search(name):
            out[name] = IngredientClassification(
                name=name,
                status=HalalStatus.HARAM,
                category="Alcoholic Substances",
                confidence=95,
                reasoning="Alcohol-derived ingredient; intoxicants are prohibited.",
                islamic_references=[_ALCOHOL_REFERENCE],
                requires_verification=True,
            )
        elif _DOUBTFUL_PATTERN.search(name):
            out[name] = IngredientClassification(
                name=name,
                status=HalalStatus.MASHBOOH,
                category="Requires Verification",
                confidence=30,
                reasoning="Source may be animal-derived or processed with alcohol; verification required.",
                islamic_references=[_AI_REFERENCE],
                requires_verification=True,
            )
    logger.info("LLM_CLASSIFY pattern_fallback requested=%d resolved=%d", len(names), len(out))
    return out


def _parse_json_array(raw: str) -> Optional[list]:
    """Extract a JSON array from LLM output (may contain markdown fences)."""
    if not raw:
        return None
    cleaned = re.sub(r"```(?:json)?\s*", "", raw)
    cleaned = cleaned.strip().rstrip("`")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        match = re.search(r"\[.*\]", cleaned, re.DOTALL)
        if not match:
            logger.warning("LLM_CLASSIFY could not parse JSON from: %s", raw[:200])
            return None
        try:
            data = json.loads(match.group())
        except json.JSONDecodeError:
            logger.warning("LLM_CLASSIFY could not parse JSON from: %s", raw[:200])
            return None
    if isinstance(data, dict) and isinstance(data.get("ingredients"), list):
        data = data["ingredients"]
    return data if isinstance(data, list) else None


def _to_classification(item: LLMIngredient, name: str) -> IngredientClassification:
    status = HalalStatus(item.status)
    refs = [_AI_REFERENCE]
    if status == HalalStatus.HARAM:
        refs.insert(0, _haram_reference(name))
    return IngredientClassification(
        name=name,
        status=status,
        category=item.category or "Unknown",
        confidence=max(0, min(item.confidence, AI_MAX_CONFIDENCE)),
        reasoning=item.reasoning or "Classified by AI-assisted analysis.",
        islamic_references=refs,
        requires_verification=True,
    )


class LLMClassifier:
    def __init__(self, timeout: int = LLM_CLASSIFY_TIMEOUT):
        self.timeout = timeout

    def _call_ollama(self, names: list[str]) -> Optional[str]:
        prompt = "Classify these ingredients:\n" + "\n".join(f"- {n}" for n in names)
        resp, error = post_json_with_retries(
            get_ollama_url(),
            {
                "model": get_ollama_model(),
                "prompt": prompt,
                "system": _SYSTEM_PROMPT,
                "stream": False,
                "options": {"temperature": 0.0},
            },
            timeout=self.timeout,
        )
        if resp is None:
            logger.warning("LLM_CLASSIFY ollama call failed: %s", error)
            return None
        try:
            body = resp.json()
        except ValueError as e:
            logger.warning("LLM_CLASSIFY ollama returned non-JSON body: %s", e)
            return None
        if not isinstance(body, dict):
            logger.warning("LLM_CLASSIFY ollama returned %s body, expected object", type(body).__name__)
            return None
        return str(body.get("response", "")).strip()

    def classify(self, names: list[str]) -> dict[str, IngredientClassification]:
        """
        Classify names via the LLM; returns {input name: classification}.
        Names the LLM did not answer for fall through to the pattern rules.
        """
        if not names:
            return {}
        raw = self._call_ollama(names)
        items = _parse_json_array(raw) if raw else None
        if items is None:
            return classify_with_patterns(names)

        by_key = {n.lower().strip(): n for n in names}
        out: dict[str, IngredientClassification] = {}
        try:
            for obj in items:
                item = LLMIngredient.model_validate(obj)
                name = by_key.get(item.name.lower().strip())
                if name is not None and name not in out:
                    out[name] = _to_classification(item, name)
        except ValidationError as e:
            logger.warning("LLM_CLASSIFY schema mismatch, using pattern rules: %s", e.errors()[:3])
            return classify_with_patterns(names)

        missing = [n for n in names if n not in out]
        if missing:
            out.update(classify_with_patterns(missing))
        logger.info("LLM_CLASSIFY requested=%d llm_resolved=%d", len(names), len(names) - len(missing))
        return out
