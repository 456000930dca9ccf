from .ingredient_extractor import (
    Certificate,
    ExtractedDocument,
    ExtractedText,
    estimate_extraction_confidence,
    extract_certificates,
    extract_from_text,
    extract_ingredients,
    find_ingredient_section,
    quality_for,
)

__all__ = [
    "Certificate",
    "ExtractedDocument",
    "ExtractedText",
    "estimate_extraction_confidence",
    "extract_certificates",
    "extract_from_text",
    "extract_ingredients",
    "find_ingredient_section",
    "quality_for",
]
