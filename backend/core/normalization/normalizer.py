"""
Deterministic normalization only. No LLM, no matching.
Produces the keys used by the knowledge base, the analyzer and the verification cache.
"""
import re
import logging

logger = logging.getLogger(__name__)

# Everything except word characters, whitespace, hyphens and parentheses
_STRIP_PUNCTUATION = re.compile(r"[^\w\s\-()]")
_WHITESPACE = re.compile(r"\s+")


def normalize_lookup_key(text: str) -> str:
    """Lowercase + trim. Key format for the knowledge-base table and verification cache."""
    if not text or not isinstance(text, str):
        return ""
    return text.lower().strip()


def normalize_ingredient_name(text: str) -> str:
    """
    Normalize a raw ingredient string for matching.
    - Lowercase, trim.
    - Strip punctuation except parentheses and hyphens.
    - Collapse whitespace.
    """
    if not text or not isinstance(text, str):
        return ""
    t = text.lower().strip()
    t = _STRIP_PUNCTUATION.sub("", t)
    t = _WHITESPACE.sub(" ", t)
    return t.strip()

