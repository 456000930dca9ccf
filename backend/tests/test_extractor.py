"""
Document extraction: ingredient section lookup, certificate mentions, OCR engine wrapper.
Run from backend: python -m pytest tests/test_extractor.py -v
"""
from datetime import date

import pytest
from unittest.mock import MagicMock, patch

LABEL = (
    "Choco Crunch Bar\n"
    "Ingredients: Sugar, Wheat Flour, Palm Oil, Emulsifier (Soy Lecithin, E471), Salt.\n"
    "Nutrition facts per 100g: Energy 2000kJ\n"
    "HALAL CERTIFIED BY: JAKIM\n"
    "Certificate No: JK-2024-0012\n"
    "Valid until: 31/12/2026\n"
)


def test_english_header():
    from core.documents import find_ingredient_section
    assert find_ingredient_section(LABEL) == "Sugar, Wheat Flour, Palm Oil, Emulsifier (Soy Lecithin, E471), Salt"


def test_section_stops_at_next_label_section():
    from core.documents import find_ingredient_section
    text = "INGREDIENTS: water, sugar, citric acid Allergens: none"
    assert find_ingredient_section(text) == "water, sugar, citric acid"


def test_section_stops_at_sentence_break():
    from core.documents import find_ingredient_section
    text = "Ingredients: milk, cocoa min. 40%, sugar. Store in a cool place."
    assert find_ingredient_section(text) == "milk, cocoa min. 40%, sugar"


@pytest.mark.parametrize("text,expected", [
    ("Zutaten: Zucker, Weizenmehl, Kakaobutter", ["Zucker", "Weizenmehl", "Kakaobutter"]),
    ("Ingrédients : sucre, farine de blé, sel", ["sucre", "farine de blé", "sel"]),
    ("Ingredienti: zucchero, farina, sale", ["zucchero", "farina", "sale"]),
    ("Składniki: cukier, mąka, sól", ["cukier", "mąka", "sól"]),
    ("مكونات: ماء، سكر، ملح", ["ماء", "سكر", "ملح"]),
])
def test_localized_headers(text, expected):
    from core.documents import extract_ingredients
    assert extract_ingredients(text) == expected


def test_comma_fallback_picks_line_with_most_commas():
    from core.documents import find_ingredient_section
    text = "Tasty Snack\nBest before: 01, 2027\nrice, corn, salt, paprika\nNet 100g"
    assert find_ingredient_section(text) == "rice, corn, salt, paprika"


def test_no_list_like_text():
    from core.documents import extract_ingredients, find_ingredient_section
    assert find_ingredient_section("Net weight 100g\nMade in Malaysia") is None
    assert find_ingredient_section("") is None
    assert extract_ingredients("   ") == []


def test_certificates_and_validity():
    from core.documents import extract_certificates
    certs = extract_certificates(LABEL)
    assert certs[0].issuer == "Department of Islamic Development Malaysia"
    assert certs[0].valid_until == date(2026, 12, 31)
    assert any(c.certificate_number == "JK-2024-0012" for c in certs)
    assert all(c.type == "Halal" for c in certs)


def test_issuer_code_with_number():
    from core.documents import extract_certificates
    certs = extract_certificates("Certified halal HFA-12345 for export")
    assert len(certs) == 1
    assert certs[0].issuer == "Halal Food Authority"
    assert certs[0].certificate_number == "12345"


def test_unknown_issuer_is_kept_verbatim():
    from core.documents import extract_certificates
    certs = extract_certificates("Halal certified by Local Mosque Council")
    assert certs[0].issuer == "Local Mosque Council"


def test_invalid_validity_date_is_ignored():
    from core.documents import extract_certificates
    certs = extract_certificates("Halal certified by ISNA\nValid until: 45/13/2026")
    assert certs[0].valid_until is None


def test_extract_from_text_confidence():
    from core.documents import extract_from_text
    doc = extract_from_text(LABEL)
    assert doc.ingredients[:3] == ["Sugar", "Wheat Flour", "Palm Oil"]
    assert "E471" in doc.ingredients
    # 50 + 20 ingredients + 15 certificates
    assert doc.source.confidence == 85
    assert doc.source.quality == "high"
    assert doc.to_dict()["certificates"][0]["valid_until"] == "2026-12-31"


def test_short_text_penalty():
    from core.documents import extract_from_text
    doc = extract_from_text("Ingredients: water, salt", processing_method="manual")
    assert doc.source.confidence == 50
    assert doc.source.quality == "medium"


def test_ocr_confidence_caps_extraction_confidence():
    from core.documents import extract_from_text
    doc = extract_from_text(LABEL, processing_method="ocr", source_confidence=42.5)
    assert doc.source.confidence == 42.5
    assert doc.source.quality == "low"


def test_unknown_processing_method():
    from core.documents import extract_from_text
    with pytest.raises(ValueError, match="Unknown processing method"):
        extract_from_text("Ingredients: water", processing_method="fax")


@pytest.mark.parametrize("confidence,quality", [(100, "high"), (80, "high"), (79.9, "medium"), (50, "medium"), (0, "low")])
def test_quality_for(confidence, quality):
    from core.documents import quality_for
    assert quality_for(confidence) == quality


def _engine():
    from ocr_engine import OCREngine
    engine = OCREngine.__new__(OCREngine)
    engine.ocr = MagicMock()
    return engine


def test_ocr_engine_joins_lines_and_averages_scores():
    from ocr_engine import OCREngine
    engine = _engine()
    box = [[0, 0], [1, 0], [1, 1], [0, 1]]
    engine.ocr.ocr.return_value = [[
        [box, ("Ingredients: sugar, salt", 0.9)],
        [box, ("HALAL CERTIFIED BY: HFA", 0.8)],
    ]]
    with patch.object(OCREngine, "_to_array", return_value="pixels"):
        out = engine.extract_text(b"fake-image")
    assert out.text == "Ingredients: sugar, salt\nHALAL CERTIFIED BY: HFA"
    assert out.confidence == 85.0
    assert out.quality == "high"
    assert out.processing_method == "ocr"


def test_ocr_engine_empty_result():
    from ocr_engine import OCREngine
    engine = _engine()
    engine.ocr.ocr.return_value = [None]
    with patch.object(OCREngine, "_to_array", return_value="pixels"):
        out = engine.extract_text(b"blank")
    assert out.text == ""
    assert out.confidence == 0


def test_ocr_engine_failure_returns_empty_text():
    from ocr_engine import OCREngine
    engine = _engine()
    engine.ocr.ocr.side_effect = RuntimeError("model crashed")
    with patch.object(OCREngine, "_to_array", return_value="pixels"):
        out = engine.extract_text(b"broken")
    assert out.text == ""
    assert out.confidence == 0
    assert out.quality == "low"
