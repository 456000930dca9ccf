"""
JSON-file record store for analyses, applications and certificates.
- One file per record kind (data/analyses.json, data/applications.json, data/certificates.json).
- Records are plain dicts keyed by opaque string ids from generate_id().
- Whole-file read/modify/write under a lock; fine for the record volumes a single service sees.
- Writes go through a temp file and os.replace(); an unparsable file is set aside, never overwritten.
"""
import json
import logging
import os
import random
import string
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_uppercase + string.digits


def generate_id(prefix: str) -> str:
    """'ANL' -> 'ANL-1718000000000-K3J9ZQ'"""
    suffix = "".join(random.choices(_ID_ALPHABET, k=6))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def write_json_atomic(path: Path, data: Any) -> None:
    """Write to a temp file in the same directory, then os.replace() it over path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix=path.stem)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def load_json_or_quarantine(path: Path) -> Optional[Any]:
    """
    Parsed JSON from path, or None when the file is missing or unreadable as JSON.
    An unparsable file is renamed to <name>.corrupt-<ms> so the next write cannot overwrite it.
    """
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except ValueError as e:
        quarantined = path.with_name(f"{path.name}.corrupt-{int(time.time() * 1000)}")
        os.replace(path, quarantined)
        logger.error("STORE_CORRUPT file=%s moved_to=%s error=%s", path, quarantined.name, e)
        return None


class RecordStore:
    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.Lock()

    def _load_all(self) -> dict:
        return load_json_or_quarantine(self._path) or {}

    def _save_all(self, data: dict) -> None:
        write_json_atomic(self._path, data)

    def get(self, record_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            return self._load_all().get(record_id)

    def save(self, record_id: str, record: dict[str, Any]) -> None:
        """Insert or overwrite one record; other records are untouched."""
        with self._lock:
            data = self._load_all()
            data[record_id] = record
            self._save_all(data)
        logger.info("STORE_SAVE file=%s id=%s", self._path.name, record_id)

    def list(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._load_all().values())

    def delete(self, record_id: str) -> bool:
        with self._lock:
            data = self._load_all()
            if record_id not in data:
                return False
            del data[record_id]
            self._save_all(data)
        logger.info("STORE_DELETE file=%s id=%s", self._path.name, record_id)
        return True
