"""
Halal verification service: rule-based verifier for doubtful ingredients with a
time-bounded in-memory cache (keyed by lowercased name), plus simulated
certification-body lookups that are never cached.
"""
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional
import json
import logging
import threading
import time

from .verification_schema import CertificationBody, VerificationMethod, VerificationResult, VerificationRule
from core.config import (
    CERTIFICATION_CONFIDENCE_CAP,
    VERIFICATION_CACHE_TTL_DAYS,
    get_certification_bodies_path,
    get_verification_rules_path,
)
from core.models.classification import Madhab, Reference, ReferenceSource
from core.normalization.normalizer import normalize_lookup_key

logger = logging.getLogger(__name__)

_SECONDS_PER_DAY = 24 * 60 * 60


def _load_json(path: Path, key: str) -> list[dict]:
    if not path.exists():
        logger.warning("Verification data file not found at %s", path)
        return []
    with open(path, encoding="utf-8") as f:
        return json.load(f).get(key, [])


class HalalVerificationService:
    """
    verify_ingredient: cache hit if age < TTL, else evaluate ordered rules; the first match
    is cached. No match returns None and is not cached ("no additional data", not a negative).
    """

    def __init__(
        self,
        rules_path: Optional[Path] = None,
        bodies_path: Optional[Path] = None,
        ttl_days: int = VERIFICATION_CACHE_TTL_DAYS,
        clock: Callable[[], float] = time.time,
    ):
        self._rules = [
            VerificationRule.from_dict(d)
            for d in _load_json(rules_path or get_verification_rules_path(), "rules")
        ]
        self._bodies = [
            CertificationBody.from_dict(d)
            for d in _load_json(bodies_path or get_certification_bodies_path(), "certification_bodies")
        ]
        self._ttl_seconds = ttl_days * _SECONDS_PER_DAY
        self._clock = clock
        self._cache: dict[str, VerificationResult] = {}
        self._lock = threading.Lock()
        logger.info(
            "Loaded %d verification rules and %d certification bodies (cache ttl=%dd)",
            len(self._rules), len(self._bodies), ttl_days,
        )

    def _is_fresh(self, result: VerificationResult) -> bool:
        return (self._clock() - result.last_verified) < self._ttl_seconds

    def verify_ingredient(self, name: str) -> Optional[VerificationResult]:
        key = normalize_lookup_key(name)
        if not key:
            return None
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                if self._is_fresh(cached):
                    logger.debug("VERIFICATION cache_hit key=%s", key[:60])
                    return cached
                del self._cache[key]
                logger.debug("VERIFICATION cache_stale key=%s", key[:60])

            result = self._perform_verification(key)
            if result is not None:
                self._cache[key] = result
        logger.info(
            "VERIFICATION key=%s matched=%s confidence=%s",
            key[:60], result is not None, result.confidence if result else None,
        )
        return result

    def _perform_verification(self, name: str) -> Optional[VerificationResult]:
        for rule in self._rules:
            if rule.matches(name):
                return VerificationResult(
                    confidence=rule.confidence,
                    references=list(rule.references),
                    verification_method=rule.method,
                    last_verified=self._clock(),
                    notes=list(rule.notes),
                )
        return None

    def get_certification_bodies(self) -> list[CertificationBody]:
        """Most credible first."""
        return sorted(self._bodies, key=lambda b: b.credibility, reverse=True)

    def request_certification_body_verification(
        self,
        name: str,
        body_name: str,
    ) -> Optional[VerificationResult]:
        """Simulated external lookup. Always fresh, never cached. Unknown body -> None."""
        body = next((b for b in self._bodies if b.name == body_name), None)
        if body is None:
            logger.warning("VERIFICATION unknown certification body=%s", body_name)
            return None
        logger.info("VERIFICATION requesting body=%s ingredient=%s", body.name, name[:60])
        standards = ", ".join(body.standards)
        return VerificationResult(
            confidence=min(body.credibility, CERTIFICATION_CONFIDENCE_CAP),
            references=[
                Reference(
                    source=ReferenceSource.CONTEMPORARY_FATWA,
                    reference=f"{body.name} Verification",
                    translation=f"Verified according to {standards} standards.",
                    school=Madhab.GENERAL,
                )
            ],
            verification_method=VerificationMethod.CERTIFICATION_BODY,
            last_verified=self._clock(),
            notes=[f"Verified by {body.name}", f"Standards: {standards}"],
        )

    def generate_verification_report(self, name: str, result: VerificationResult) -> str:
        """Markdown report for one verification result."""
        verified = datetime.fromtimestamp(result.last_verified).strftime("%Y-%m-%d")
        lines = [
            "# Halal Verification Report",
            "",
            f"**Ingredient:** {name}",
            f"**Verification Date:** {verified}",
            f"**Confidence Level:** {result.confidence}%",
            f"**Verification Method:** {result.verification_method.value.replace('_', ' ').upper()}",
            "",
            "## Islamic References",
            "",
        ]
        for i, ref in enumerate(result.references, start=1):
            lines.append(f"{i}. **{ref.source.value}** - {ref.reference}")
            if ref.arabic:
                lines.append(f"   *Arabic:* {ref.arabic}")
            if ref.transliteration:
                lines.append(f"   *Transliteration:* {ref.transliteration}")
            lines.append(f"   *Translation:* {ref.translation}")
            if ref.school and ref.school != Madhab.GENERAL:
                lines.append(f"   *School:* {ref.school.value}")
            lines.append("")
        if result.notes:
            lines += ["## Notes", ""]
            lines += [f"- {n}" for n in result.notes]
        return "\n".join(lines) + "\n"

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
        logger.info("VERIFICATION cache cleared")

    def get_cache_size(self) -> int:
        return len(self._cache)
