"""
Log table of unknown ingredients: raw input, normalized key, frequency, madhab context.
Feeds knowledge-base maintenance (which names to classify next).
"""
import logging
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.config import get_unknown_ingredients_log_path
from core.storage import load_json_or_quarantine, write_json_atomic

logger = logging.getLogger(__name__)


class UnknownIngredientsLog:
    """
    In-memory log of unknown ingredients with optional persist to JSON.
    Keys by normalized_key; each entry has raw_inputs (list), frequency, first_seen, last_seen, madhabs.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = path or get_unknown_ingredients_log_path()
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        data = load_json_or_quarantine(self._path)
        if isinstance(data, dict):
            self._entries = data.get("unknown_ingredients", {})

    def _save(self) -> None:
        write_json_atomic(self._path, {"unknown_ingredients": self._entries, "version": "1.0"})

    def record(
        self,
        raw_input: str,
        normalized_key: str,
        madhab: Optional[str] = None,
        persist: bool = True,
    ) -> None:
        """Record or update an unknown ingredient."""
        if not normalized_key:
            return
        now = time.time()
        with self._lock:
            if normalized_key not in self._entries:
                self._entries[normalized_key] = {
                    "normalized_key": normalized_key,
                    "raw_inputs": [],
                    "frequency": 0,
                    "first_seen": now,
                    "last_seen": now,
                    "madhabs": [],
                }
            ent = self._entries[normalized_key]
            if raw_input and raw_input not in ent["raw_inputs"]:
                ent["raw_inputs"] = (ent["raw_inputs"] + [raw_input])[:20]
            ent["frequency"] = ent.get("frequency", 0) + 1
            ent["last_seen"] = now
            if madhab and madhab not in ent.setdefault("madhabs", []):
                ent["madhabs"].append(madhab)
            if persist:
                self._save()
        logger.info(
            "UNKNOWN_INGREDIENT logged raw=%s normalized_key=%s frequency=%s",
            raw_input[:50], normalized_key, ent["frequency"],
        )

    def get_entries(self) -> Dict[str, Dict[str, Any]]:
        return dict(self._entries)

    def get_keys_for_review(self, min_frequency: int = 1) -> List[str]:
        """Normalized keys seen at least min_frequency times, most frequent first."""
        keys = [
            k for k, v in self._entries.items()
            if v.get("frequency", 0) >= min_frequency
        ]
        return sorted(keys, key=lambda k: self._entries[k].get("frequency", 0), reverse=True)


_default_log: Optional[UnknownIngredientsLog] = None


def get_unknown_log(path: Optional[Path] = None) -> UnknownIngredientsLog:
    global _default_log
    if _default_log is None:
        _default_log = UnknownIngredientsLog(path)
    return _default_log
