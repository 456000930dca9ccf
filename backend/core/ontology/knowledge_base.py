"""
Islamic knowledge base: ingredient name -> halal classification with references.
Loads from data/halal_ingredients.json. Table is read-only after load().

Returned entries are the canonical table objects; callers copy() before mutating.
"""
from pathlib import Path
from typing import Optional
import json
import logging
import threading

from core.config import get_ingredients_path, UNKNOWN_CONFIDENCE
from core.models.classification import (
    HalalStatus,
    IngredientClassification,
    Madhab,
    Reference,
    ReferenceSource,
)
from core.normalization.normalizer import normalize_lookup_key

logger = logging.getLogger(__name__)

PRECAUTIONARY_REFERENCE = Reference(
    source=ReferenceSource.SCHOLARLY_CONSENSUS,
    reference="Precautionary Principle",
    translation="When in doubt about the permissibility of something, it is better to avoid it until clarity is obtained.",
    school=Madhab.GENERAL,
)


def unknown_classification(name: str) -> IngredientClassification:
    """Precautionary classification for anything not in the table. Never HALAL."""
    return IngredientClassification(
        name=name,
        status=HalalStatus.MASHBOOH,
        category="Unknown",
        confidence=UNKNOWN_CONFIDENCE,
        reasoning="This ingredient is not in our database. Further investigation required to determine halal status.",
        islamic_references=[PRECAUTIONARY_REFERENCE],
        requires_verification=True,
    )


class IslamicKnowledgeBase:
    """
    O(1) exact lookup by lowercased name; linear partial scan in insertion order.
    load() is idempotent and thread-safe.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = path or get_ingredients_path()
        self._by_key: dict[str, IngredientClassification] = {}
        self._quranic: dict[str, Reference] = {}
        self._version: str = "0"
        self._loaded = False
        self._lock = threading.Lock()

    def load(self) -> None:
        with self._lock:
            if self._loaded:
                return
            self._load()
            self._loaded = True

    def _load(self) -> None:
        if not self._path.exists():
            logger.warning("Knowledge base file not found at %s; table empty.", self._path)
            return
        with open(self._path, encoding="utf-8") as f:
            data = json.load(f)
        self._version = data.get("version", "0")
        for item in data.get("quranic_references", []):
            ref = Reference.from_dict(item)
            self._quranic[ref.reference] = ref
        for item in data.get("ingredients", []):
            entry = IngredientClassification.from_dict(item)
            if entry.status == HalalStatus.HARAM and not entry.islamic_references:
                logger.warning("KNOWLEDGE_BASE rejected HARAM entry without reference name=%s", entry.name)
                continue
            key = normalize_lookup_key(entry.name)
            if key and key not in self._by_key:
                self._by_key[key] = entry
        logger.info(
            "Loaded %d ingredient classifications and %d Quranic references from %s",
            len(self._by_key), len(self._quranic), self._path,
        )

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def get_exact(self, name: str) -> Optional[IngredientClassification]:
        """Exact lowercased-name lookup, or None."""
        self._ensure_loaded()
        return self._by_key.get(normalize_lookup_key(name))

    def get_partial(self, name: str) -> Optional[IngredientClassification]:
        """First entry (insertion order) whose key contains name or is contained in it."""
        self._ensure_loaded()
        key = normalize_lookup_key(name)
        if not key:
            return None
        for stored_key, entry in self._by_key.items():
            if key in stored_key or stored_key in key:
                return entry
        return None

    def get_classification(self, name: str) -> IngredientClassification:
        """
        Resolve: 1) exact 2) substring either direction 3) precautionary unknown.
        Never raises for unknown input.
        """
        entry = self.get_exact(name)
        if entry is not None:
            return entry
        entry = self.get_partial(name)
        if entry is not None:
            return entry
        return unknown_classification(name)

    def get_quranic_reference(self, verse: str) -> Optional[Reference]:
        self._ensure_loaded()
        return self._quranic.get(verse)

    def get_all_classifications(self) -> list[IngredientClassification]:
        self._ensure_loaded()
        return list(self._by_key.values())

    def search_ingredients(self, query: str) -> list[IngredientClassification]:
        q = (query or "").lower()
        return [
            e for e in self.get_all_classifications()
            if q in e.name.lower() or q in e.category.lower()
        ]

    def get_by_status(self, status: HalalStatus) -> list[IngredientClassification]:
        return [e for e in self.get_all_classifications() if e.status == status]

    def get_by_category(self, category: str) -> list[IngredientClassification]:
        return [e for e in self.get_all_classifications() if e.category == category]

    def get_version(self) -> str:
        self._ensure_loaded()
        return self._version

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._by_key)


_default_kb: Optional[IslamicKnowledgeBase] = None


def get_knowledge_base() -> IslamicKnowledgeBase:
    global _default_kb
    if _default_kb is None:
        _default_kb = IslamicKnowledgeBase()
        _default_kb.load()
    return _default_kb
