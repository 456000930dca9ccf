"""
Knowledge base: loading, resolution order, listings.
Run from backend: python -m pytest tests/test_knowledge_base.py -v
"""
import json
import pytest


def _kb():
    from core.ontology.knowledge_base import IslamicKnowledgeBase
    kb = IslamicKnowledgeBase()
    kb.load()
    return kb


def test_load_is_idempotent():
    kb = _kb()
    first = [e.name for e in kb.get_all_classifications()]
    kb.load()
    kb.load()
    assert [e.name for e in kb.get_all_classifications()] == first
    assert len(kb) == len(first)


def test_exact_lookup_is_case_insensitive():
    from core.models.classification import HalalStatus
    kb = _kb()
    entry = kb.get_classification("  PORK Gelatin ")
    assert entry.name == "Pork Gelatin"
    assert entry.status == HalalStatus.HARAM
    assert any(r.reference == "Q2:173" for r in entry.islamic_references)


def test_partial_lookup_either_direction():
    kb = _kb()
    # query contained in stored name
    assert kb.get_classification("e471").name == "E471 (Mono- and Diglycerides)"
    # stored name contained in query
    assert kb.get_classification("organic cane sugar").name == "Cane Sugar"


def test_partial_lookup_prefers_insertion_order():
    """'wine vinegar' is stored before 'wine', so a query containing both resolves to it."""
    kb = _kb()
    assert kb.get_classification("red wine vinegar").name == "Wine Vinegar"


def test_unknown_returns_precautionary_classification():
    from core.models.classification import HalalStatus
    kb = _kb()
    entry = kb.get_classification("xyzzy quux")
    assert entry.status == HalalStatus.MASHBOOH
    assert entry.confidence == 10
    assert entry.requires_verification is True
    assert entry.islamic_references[0].reference == "Precautionary Principle"


def test_every_haram_entry_has_reference():
    from core.models.classification import HalalStatus
    kb = _kb()
    haram = kb.get_by_status(HalalStatus.HARAM)
    assert haram
    assert all(e.islamic_references for e in haram)


def test_haram_entry_without_reference_is_rejected(tmp_path):
    from core.ontology.knowledge_base import IslamicKnowledgeBase
    path = tmp_path / "kb.json"
    path.write_text(json.dumps({
        "version": "test",
        "ingredients": [
            {"name": "Mystery Meat", "status": "HARAM", "category": "Meat", "confidence": 90,
             "reasoning": "no source given", "islamic_references": []},
            {"name": "Water", "status": "HALAL", "category": "Minerals", "confidence": 100,
             "reasoning": "pure"},
        ],
    }), encoding="utf-8")
    kb = IslamicKnowledgeBase(path)
    kb.load()
    assert kb.get_exact("mystery meat") is None
    assert kb.get_exact("water") is not None
    assert kb.get_version() == "test"


def test_missing_file_gives_empty_table(tmp_path):
    from core.ontology.knowledge_base import IslamicKnowledgeBase
    kb = IslamicKnowledgeBase(tmp_path / "missing.json")
    kb.load()
    assert len(kb) == 0
    assert kb.get_classification("water").confidence == 10


def test_quranic_reference_index():
    kb = _kb()
    ref = kb.get_quranic_reference("Q5:90")
    assert ref is not None
    assert ref.source.value == "Quran"
    assert kb.get_quranic_reference("Q99:99") is None


def test_listing_filters():
    kb = _kb()
    emulsifiers = kb.get_by_category("Emulsifiers")
    assert {e.name for e in emulsifiers} >= {"Lecithin", "Polysorbate 80"}
    found = kb.search_ingredients("oil")
    assert "Olive Oil" in [e.name for e in found]
    assert all("oil" in e.name.lower() or "oil" in e.category.lower() for e in found)
