"""
Scholarly consensus resolver. Loads per-category madhab rulings from data/madhab_rulings.json.

Lookup: direct category key, else first category whose keyword is a substring of the
lowercased ingredient (table order). Consensus is recomputed per call; the table never
changes at runtime.
"""
from collections import Counter
from pathlib import Path
from typing import Optional
import json
import logging
import math

from .madhab_schema import ConsensusAnalysis, ConsensusLevel, MadhabRuling
from core.config import get_madhab_rulings_path
from core.models.classification import Madhab, Reference

logger = logging.getLogger(__name__)

NO_MATCH_APPROACH = "Consult qualified Islamic scholars for this specific ingredient."
NO_MATCH_OPINIONS = ["Seek contemporary fatwa from recognized Islamic authorities"]


def determine_consensus_level(rulings: list[MadhabRuling]) -> ConsensusLevel:
    """
    unanimous: all agree; majority: some status holds >= ceil(n/2); divided: otherwise.
    Fewer than two rulings is unclear.
    """
    if len(rulings) < 2:
        return ConsensusLevel.UNCLEAR
    counts = Counter(r.ruling for r in rulings)
    if len(counts) == 1:
        return ConsensusLevel.UNANIMOUS
    threshold = math.ceil(len(rulings) / 2)
    if any(c >= threshold for c in counts.values()):
        return ConsensusLevel.MAJORITY
    return ConsensusLevel.DIVIDED


def _majority_ruling(rulings: list[MadhabRuling]) -> str:
    return Counter(r.ruling for r in rulings).most_common(1)[0][0].value


def _recommended_approach(rulings: list[MadhabRuling], level: ConsensusLevel) -> str:
    if level == ConsensusLevel.UNANIMOUS:
        return f"All major schools agree this is {rulings[0].ruling.value}. Follow the unanimous scholarly opinion."
    if level == ConsensusLevel.MAJORITY:
        return (
            f"Majority of scholars consider this {_majority_ruling(rulings)}. "
            "Follow the majority opinion while respecting minority views."
        )
    if level == ConsensusLevel.DIVIDED:
        return "Scholarly opinion is divided. Follow the most cautious approach or consult your local imam."
    return "Insufficient scholarly consensus available. Seek guidance from qualified contemporary scholars."


class ScholarlyConsensusService:
    def __init__(self, path: Optional[Path] = None):
        self._path = path or get_madhab_rulings_path()
        self._rulings: dict[str, list[MadhabRuling]] = {}
        self._category_keywords: dict[str, list[str]] = {}
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            logger.warning("Madhab rulings file not found at %s; consensus table empty.", self._path)
            return
        with open(self._path, encoding="utf-8") as f:
            data = json.load(f)
        self._category_keywords = {
            k.lower(): [kw.lower() for kw in v]
            for k, v in data.get("category_keywords", {}).items()
        }
        for category, items in data.get("rulings", {}).items():
            self._rulings[category.lower()] = [MadhabRuling.from_dict(i) for i in items]
        logger.info(
            "Loaded madhab rulings for %d categories (%d keyword categories) from %s",
            len(self._rulings), len(self._category_keywords), self._path,
        )

    def find_category(self, ingredient: str) -> Optional[str]:
        """First category (table order) with a keyword contained in the ingredient."""
        normalized = (ingredient or "").lower().strip()
        for category, keywords in self._category_keywords.items():
            if any(kw in normalized for kw in keywords):
                return category
        return None

    def _rulings_for(self, ingredient: str) -> tuple[Optional[str], list[MadhabRuling]]:
        normalized = (ingredient or "").lower().strip()
        if normalized in self._rulings:
            return normalized, self._rulings[normalized]
        category = self.find_category(normalized)
        if category is None:
            return None, []
        return category, self._rulings.get(category, [])

    def get_madhab_specific_ruling(self, ingredient: str, madhab: Madhab) -> Optional[Reference]:
        """First reference of the school's ruling for the ingredient's category, or None."""
        category, rulings = self._rulings_for(ingredient)
        for ruling in rulings:
            if ruling.madhab == madhab and ruling.references:
                logger.debug(
                    "CONSENSUS madhab_ruling ingredient=%s madhab=%s category=%s",
                    ingredient[:60], madhab.value, category,
                )
                return ruling.references[0]
        return None

    def get_consensus_analysis(self, ingredient: str) -> ConsensusAnalysis:
        category, rulings = self._rulings_for(ingredient)
        if not rulings:
            return ConsensusAnalysis(
                ingredient=ingredient,
                consensus_level=ConsensusLevel.UNCLEAR,
                recommended_approach=NO_MATCH_APPROACH,
                alternative_opinions=list(NO_MATCH_OPINIONS),
                category=category,
            )
        level = determine_consensus_level(rulings)
        return ConsensusAnalysis(
            ingredient=ingredient,
            consensus_level=level,
            madhab_rulings=list(rulings),
            recommended_approach=_recommended_approach(rulings, level),
            alternative_opinions=[
                f"{r.madhab.value} school: {r.ruling.value} - {r.reasoning}" for r in rulings
            ],
            category=category,
        )

    def get_scholarly_differences(self, ingredient: str) -> list[str]:
        return self.get_consensus_analysis(ingredient).alternative_opinions

    def generate_madhab_comparison(self, ingredient: str) -> str:
        """Markdown comparison of the four schools for one ingredient."""
        analysis = self.get_consensus_analysis(ingredient)
        lines = [f"# Madhab Comparison for {ingredient}", ""]
        if not analysis.madhab_rulings:
            lines.append("No specific madhab rulings available for this ingredient.")
            return "\n".join(lines) + "\n"

        lines += [f"**Consensus Level:** {analysis.consensus_level.value.upper()}", ""]
        for r in analysis.madhab_rulings:
            lines.append(f"## {r.madhab.value} School")
            lines.append(f"**Ruling:** {r.ruling.value}")
            lines.append(f"**Confidence:** {r.confidence}%")
            lines.append(f"**Reasoning:** {r.reasoning}")
            if r.references:
                lines.append("**References:**")
                for ref in r.references:
                    lines.append(f"- {ref.source.value}: {ref.reference}")
                    lines.append(f"  *{ref.translation}*")
            if r.scholars:
                lines.append(f"**Key Scholars:** {', '.join(r.scholars)}")
            lines.append("")
        lines += ["## Recommended Approach", analysis.recommended_approach]
        return "\n".join(lines) + "\n"
