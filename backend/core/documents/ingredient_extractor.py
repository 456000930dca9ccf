"""
Label/document text -> ingredient list and halal certificate mentions.

Section lookup tries header patterns in order (English, Arabic, Polish, French, Italian,
German); if none match, the line with the most commas (at least 2) is taken as the list.
Extraction is deterministic; OCR lives in ocr_engine.py and only hands over ExtractedText.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from core.normalization.parser import split_ingredient_list

logger = logging.getLogger(__name__)

PROCESSING_METHODS = ("ocr", "text", "manual")

# Section ends at a newline, a following label section, or end of text
_END_EN = r"(?=\n|nutrition|allergen|contains|may contain|$)"
SECTION_PATTERNS: list[re.Pattern] = [
    re.compile(r"\bingredients?\s*[:\s]\s*(.+?)" + _END_EN, re.IGNORECASE),
    re.compile(r"\bcomposition\s*[:\s]\s*(.+?)" + _END_EN, re.IGNORECASE),
    re.compile(r"مكونات\s*[:\s]\s*(.+?)(?=\n|معلومات غذائية|$)"),
    re.compile(r"\bskładniki\s*[:\s]\s*(.+?)(?=\n|wartości odżywcze|$)", re.IGNORECASE),
    re.compile(r"\bingrédients\s*[:\s]\s*(.+?)(?=\n|valeurs nutritionnelles|$)", re.IGNORECASE),
    re.compile(r"\bingredienti\s*[:\s]\s*(.+?)(?=\n|valori nutrizionali|$)", re.IGNORECASE),
    re.compile(r"\bzutaten\s*[:\s]\s*(.+?)(?=\n|nährwerte|$)", re.IGNORECASE),
    re.compile(r"\bcontains\s*[:\s]\s*(.+?)(?=\n|$)", re.IGNORECASE),
]

# "Sugar, milk. Store in a cool place" -> stop at the sentence break
_SENTENCE_END = re.compile(r"\.(?:\s+(?=[A-Z])|\s*$)")
_MIN_FALLBACK_COMMAS = 2

ISSUERS = {
    "HFA": "Halal Food Authority",
    "JAKIM": "Department of Islamic Development Malaysia",
    "ISNA": "Islamic Society of North America",
    "MUI": "Indonesian Ulema Council",
    "ESMA": "Emirates Authority for Standardization and Metrology",
}

_CERTIFIED_BY = re.compile(r"HALAL\s+CERTIFIED\s*(?:BY)?\s*:?\s*([^\n]+)", re.IGNORECASE)
_CERTIFICATE_NO = re.compile(r"CERTIFICATE\s+(?:NO\.?|NUMBER)\s*:?\s*([A-Z0-9][A-Z0-9\-/]*)", re.IGNORECASE)
_ISSUER_CODE = re.compile(r"\b(HFA|JAKIM|ISNA|MUI|ESMA)\b[ \t]*[:\-]?[ \t]*([A-Z0-9][A-Z0-9\-/]*\d[A-Z0-9\-/]*)", re.IGNORECASE)
_VALID_UNTIL = re.compile(r"(?:VALID\s+UNTIL|EXPIRES?)\s*:?\s*(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})", re.IGNORECASE)


@dataclass
class ExtractedText:
    text: str
    processing_method: str
    confidence: float
    quality: str = "low"

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "processing_method": self.processing_method,
            "confidence": self.confidence,
            "quality": self.quality,
        }


@dataclass
class Certificate:
    type: str
    issuer: str
    certificate_number: Optional[str] = None
    valid_until: Optional[date] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "issuer": self.issuer,
            "certificate_number": self.certificate_number,
            "valid_until": self.valid_until.isoformat() if self.valid_until else None,
        }


@dataclass
class ExtractedDocument:
    source: ExtractedText
    ingredient_section: Optional[str]
    ingredients: list[str] = field(default_factory=list)
    certificates: list[Certificate] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.to_dict(),
            "ingredient_section": self.ingredient_section,
            "ingredients": list(self.ingredients),
            "certificates": [c.to_dict() for c in self.certificates],
        }


def quality_for(confidence: float) -> str:
    if confidence >= 80:
        return "high"
    if confidence >= 50:
        return "medium"
    return "low"


def find_ingredient_section(text: str) -> Optional[str]:
    """Ingredient-list substring, or None when nothing list-like is present."""
    if not text or not text.strip():
        return None
    for pattern in SECTION_PATTERNS:
        m = pattern.search(text)
        if m:
            section = _SENTENCE_END.split(m.group(1), maxsplit=1)[0].strip()
            if section:
                logger.debug("EXTRACTOR section_header pattern=%s", pattern.pattern[:30])
                return section

    best: Optional[str] = None
    best_commas = _MIN_FALLBACK_COMMAS - 1
    for line in text.splitlines():
        commas = line.count(",")
        if commas > best_commas:
            best, best_commas = line.strip(), commas
    if best:
        logger.info("EXTRACTOR section_fallback commas=%d", best_commas)
    return best


def extract_ingredients(text: str) -> list[str]:
    section = find_ingredient_section(text)
    return split_ingredient_list(section) if section else []


def identify_issuer(text: str, default: Optional[str] = None) -> str:
    """Full issuer name for a known code in text; otherwise default, or the text itself."""
    upper = text.upper()
    for code, full_name in ISSUERS.items():
        if re.search(rf"\b{code}\b", upper):
            return full_name
    return default if default is not None else text.strip()


def extract_certificates(text: str) -> list[Certificate]:
    if not text:
        return []
    certs: list[Certificate] = []
    m = _CERTIFIED_BY.search(text)
    if m:
        certs.append(Certificate(type="Halal", issuer=identify_issuer(m.group(1))))
    m = _CERTIFICATE_NO.search(text)
    if m:
        certs.append(Certificate(type="Halal", issuer=identify_issuer(text, default="Unknown"), certificate_number=m.group(1)))
    m = _ISSUER_CODE.search(text)
    if m:
        number = m.group(2)
        if not any(c.certificate_number == number for c in certs):
            certs.append(Certificate(type="Halal", issuer=ISSUERS[m.group(1).upper()], certificate_number=number))

    valid = _VALID_UNTIL.search(text)
    if valid and certs:
        day, month, year = (int(g) for g in valid.groups())
        try:
            certs[0].valid_until = date(year, month, day)
        except ValueError:
            logger.warning("EXTRACTOR invalid certificate date=%s", valid.group(0))
    return certs


def estimate_extraction_confidence(text: str, ingredients: list[str], certificates: list[Certificate]) -> int:
    confidence = 50
    if ingredients:
        confidence += 20
    if certificates:
        confidence += 15
    if len(text or "") < 100:
        confidence -= 20
    return max(0, min(100, confidence))


def extract_from_text(
    text: str,
    processing_method: str = "text",
    source_confidence: Optional[float] = None,
) -> ExtractedDocument:
    """
    Full extraction over already-extracted text. For OCR input, the reported confidence
    is the lower of OCR confidence and extraction confidence.
    """
    if processing_method not in PROCESSING_METHODS:
        raise ValueError(f"Unknown processing method: {processing_method}")
    section = find_ingredient_section(text)
    ingredients = split_ingredient_list(section) if section else []
    certificates = extract_certificates(text)
    confidence: float = estimate_extraction_confidence(text, ingredients, certificates)
    if source_confidence is not None:
        confidence = min(confidence, source_confidence)
    logger.info(
        "EXTRACTOR method=%s chars=%d ingredients=%d certificates=%d confidence=%s",
        processing_method, len(text or ""), len(ingredients), len(certificates), confidence,
    )
    return ExtractedDocument(
        source=ExtractedText(
            text=text or "",
            processing_method=processing_method,
            confidence=confidence,
            quality=quality_for(confidence),
        ),
        ingredient_section=section,
        ingredients=ingredients,
        certificates=certificates,
    )
