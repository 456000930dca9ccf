"""
Unit tests: split_ingredient_list (parentheses, percentages, duplicates), name normalization.
Run from backend: python -m pytest tests/test_normalization.py -v
"""
import pytest


def test_split_flattens_parentheses():
    """Parser splits parentheses and commas inside them."""
    from core.normalization.parser import split_ingredient_list
    out = split_ingredient_list("Sugar, Emulsifier (Soy Lecithin, E471), Cocoa Butter 12%.")
    assert out == ["Sugar", "Emulsifier", "Soy Lecithin", "E471", "Cocoa Butter"]


def test_split_enriched_flour_full():
    from core.normalization.parser import split_ingredient_list
    raw = "Enriched Wheat Flour (Wheat Flour, Niacin, Reduced Iron, Thiamine Mononitrate, Riboflavin, Folic Acid)"
    out = split_ingredient_list(raw)
    assert out[0] == "Enriched Wheat Flour"
    assert "Reduced Iron" in out
    assert "Folic Acid" in out
    assert len(out) == 7


def test_split_drops_duplicates_case_insensitive():
    from core.normalization.parser import split_ingredient_list
    assert split_ingredient_list("Salt, sugar; SALT, Sugar") == ["Salt", "sugar"]


def test_split_arabic_comma():
    from core.normalization.parser import split_ingredient_list
    assert split_ingredient_list("ماء، سكر، ملح") == ["ماء", "سكر", "ملح"]


def test_split_strips_percentages():
    from core.normalization.parser import split_ingredient_list
    assert split_ingredient_list("Milk chocolate min. 40%, hazelnuts (3.5 %)") == ["Milk chocolate", "hazelnuts"]


def test_split_unbalanced_parenthesis_kept():
    from core.normalization.parser import split_ingredient_list
    out = split_ingredient_list("Flour, Spices (pepper")
    assert out[0] == "Flour"
    assert len(out) == 2


@pytest.mark.parametrize("raw", [None, "", "   ", 42])
def test_split_empty_input(raw):
    from core.normalization.parser import split_ingredient_list
    assert split_ingredient_list(raw) == []


@pytest.mark.parametrize("raw,expected", [
    ("  Cane Sugar!! ", "cane sugar"),
    ("Mono-  and   Diglycerides", "mono- and diglycerides"),
    ("E120 (Cochineal)", "e120 (cochineal)"),
    ("Vitamin C.", "vitamin c"),
    ("", ""),
])
def test_normalize_ingredient_name(raw, expected):
    from core.normalization.normalizer import normalize_ingredient_name
    assert normalize_ingredient_name(raw) == expected


def test_lookup_key_only_lowercases_and_trims():
    from core.normalization.normalizer import normalize_lookup_key
    assert normalize_lookup_key("  E471 (Mono-) ") == "e471 (mono-)"
    assert normalize_lookup_key(None) == ""
