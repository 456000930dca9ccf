"""
Flatten ingredient-list text into individual ingredient names:
split on commas (Latin or Arabic) and semicolons outside parentheses, flatten parenthesised sub-ingredients.
"""
import re
import logging
from typing import List

logger = logging.getLogger(__name__)

# "12%", "(3.5 %)", "min. 40%"
_PERCENT = re.compile(r"(?:min\.?\s*)?\d+(?:[.,]\d+)?\s*%", re.IGNORECASE)
_TRAILING = re.compile(r"[\s.:*]+$")
_LEADING = re.compile(r"^[\s.:*\-]+")


def _split_by_parentheses(text: str) -> List[str]:
    """
    Split by top-level parentheses; commas inside parentheses become separate items.
    'Emulsifier (Soy Lecithin, E471)' -> ['Emulsifier', 'Soy Lecithin', 'E471']
    """
    if not text or not text.strip():
        return []
    out: List[str] = []
    depth = 0
    start = 0
    i = 0
    while i < len(text):
        if text[i] == "(":
            if depth == 0 and i > start:
                chunk = text[start:i].strip()
                if chunk:
                    out.append(chunk)
            depth += 1
            if depth == 1:
                start = i + 1
            i += 1
        elif text[i] == ")":
            depth -= 1
            if depth == 0:
                inner = text[start:i].strip()
                if inner:
                    for part in re.split(r"\s*[,;،]\s*", inner):
                        part = part.strip()
                        if part:
                            out.extend(_split_by_parentheses(part))
                start = i + 1
            i += 1
        else:
            i += 1
    if depth == 0 and start < len(text):
        chunk = text[start:].strip()
        if chunk:
            out.append(chunk)
    elif depth > 0:
        # Unbalanced "(": keep the remainder as one item
        chunk = text[start:].strip()
        if chunk:
            out.append(chunk)
    return out


def _clean(item: str) -> str:
    item = _PERCENT.sub("", item)
    item = _TRAILING.sub("", item)
    item = _LEADING.sub("", item)
    return re.sub(r"\s+", " ", item).strip()


def split_ingredient_list(raw_str: str) -> List[str]:
    """
    Split an ingredient section into display names, order preserved, duplicates dropped
    (case-insensitive).

    - "Sugar, Emulsifier (Soy Lecithin, E471), Cocoa Butter 12%."
      -> ["Sugar", "Emulsifier", "Soy Lecithin", "E471", "Cocoa Butter"]
    """
    if not raw_str or not isinstance(raw_str, str):
        return []
    raw_str = raw_str.strip()
    if not raw_str:
        return []

    flat: List[str] = []
    segments = re.split(r"[,;،](?![^(]*\))", raw_str)
    for seg in segments:
        seg = seg.strip()
        if not seg:
            continue
        for p in _split_by_parentheses(seg):
            p = _clean(p)
            if p:
                flat.append(p)

    seen: set[str] = set()
    result: List[str] = []
    for item in flat:
        key = item.lower()
        if key not in seen:
            seen.add(key)
            result.append(item)
    return result
