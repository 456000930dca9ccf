"""
Unit tests for knowledge-base maintenance: unknown log, review script, LLM health check.
Run from backend: python -m pytest tests/test_enrichment.py -v
"""
import json
import sys
import tempfile
import pytest
from pathlib import Path
from unittest.mock import patch


def test_unknown_log_record_and_save():
    """Unknown ingredients log records and persists."""
    from core.enrichment.unknown_log import UnknownIngredientsLog
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "unknowns.json"
        log = UnknownIngredientsLog(path=path)
        log.record("Xyzzy Quux", "xyzzy quux", madhab="Hanafi", persist=True)
        log.record("XYZZY QUUX!", "xyzzy quux", madhab="Hanafi", persist=True)
        entries = log.get_entries()
        assert entries["xyzzy quux"]["frequency"] == 2
        assert entries["xyzzy quux"]["raw_inputs"] == ["Xyzzy Quux", "XYZZY QUUX!"]
        assert entries["xyzzy quux"]["madhabs"] == ["Hanafi"]
        data = json.loads(path.read_text())
        assert "xyzzy quux" in data["unknown_ingredients"]

        reloaded = UnknownIngredientsLog(path=path)
        assert reloaded.get_entries()["xyzzy quux"]["frequency"] == 2


def test_unknown_log_sets_corrupt_file_aside(tmp_path):
    from core.enrichment.unknown_log import UnknownIngredientsLog
    path = tmp_path / "unknowns.json"
    path.write_text('{"unknown_ingredients": {"old key": {"frequency": 9}}', encoding="utf-8")
    log = UnknownIngredientsLog(path=path)
    assert log.get_entries() == {}
    log.record("New Thing", "new thing")
    assert list(json.loads(path.read_text(encoding="utf-8"))["unknown_ingredients"]) == ["new thing"]
    corrupt = list(tmp_path.glob("unknowns.json.corrupt-*"))
    assert len(corrupt) == 1
    assert "old key" in corrupt[0].read_text(encoding="utf-8")


def test_unknown_log_ignores_empty_key():
    from core.enrichment.unknown_log import UnknownIngredientsLog
    with tempfile.TemporaryDirectory() as tmp:
        log = UnknownIngredientsLog(path=Path(tmp) / "unknowns.json")
        log.record("!!!", "")
        assert log.get_entries() == {}


def test_unknown_log_keys_for_review():
    """get_keys_for_review returns keys above min_frequency, most frequent first."""
    from core.enrichment.unknown_log import UnknownIngredientsLog
    with tempfile.TemporaryDirectory() as tmp:
        log = UnknownIngredientsLog(path=Path(tmp) / "unknowns.json")
        log.record("a", "a", persist=False)
        log.record("b", "b", persist=False)
        log.record("b", "b", persist=False)
        log.record("c", "c", persist=False)
        log.record("c", "c", persist=False)
        log.record("c", "c", persist=False)
        assert log.get_keys_for_review() == ["c", "b", "a"]
        assert log.get_keys_for_review(min_frequency=2) == ["c", "b"]


def test_build_review_rows():
    from scripts.review_unknown_ingredients import build_review
    from core.external_apis import classify_with_patterns
    entries = {"pork floss": {"frequency": 3, "raw_inputs": ["Pork Floss"], "madhabs": []}}
    rows = build_review(entries, ["pork floss", "quinoa"], classify_with_patterns(["pork floss", "quinoa"]))
    assert rows[0]["frequency"] == 3
    assert rows[0]["suggested"]["status"] == "HARAM"
    assert rows[1]["frequency"] == 0
    assert rows[1]["suggested"] is None


def test_review_script_writes_output(tmp_path):
    from core.enrichment.unknown_log import UnknownIngredientsLog
    from scripts import review_unknown_ingredients
    log = UnknownIngredientsLog(path=tmp_path / "unknowns.json")
    log.record("Lamb Stock", "lamb stock", persist=False)
    out = tmp_path / "review.json"
    with patch.object(sys, "argv", ["review_unknown_ingredients.py", "--output", str(out)]), \
            patch("core.enrichment.get_unknown_log", return_value=log):
        assert review_unknown_ingredients.main() == 0
    rows = json.loads(out.read_text(encoding="utf-8"))["unknown_ingredients"]
    assert rows[0]["normalized_key"] == "lamb stock"
    assert rows[0]["suggested"]["status"] == "MASHBOOH"


def test_review_script_nothing_to_review(tmp_path):
    from core.enrichment.unknown_log import UnknownIngredientsLog
    from scripts import review_unknown_ingredients
    log = UnknownIngredientsLog(path=tmp_path / "unknowns.json")
    with patch.object(sys, "argv", ["review_unknown_ingredients.py", "--min-frequency", "5"]), \
            patch("core.enrichment.get_unknown_log", return_value=log):
        assert review_unknown_ingredients.main() == 0


def test_llm_health_check_script():
    """Script check_llm_service: usable answer -> exit 0; unreachable -> exit 1."""
    from scripts.check_llm_service import main
    with patch("scripts.check_llm_service.check_ollama", return_value=(True, "ok (2 item(s))")):
        assert main() == 0
    with patch("scripts.check_llm_service.check_ollama", return_value=(False, "endpoint unreachable")):
        assert main() == 1


def test_check_ollama_parses_sample_answer():
    from scripts.check_llm_service import check_ollama
    with patch("core.external_apis.llm_classifier.LLMClassifier._call_ollama", return_value='[{"name": "x"}]'):
        ok, msg = check_ollama()
    assert ok is True
    assert msg == "ok (1 item(s))"
    with patch("core.external_apis.llm_classifier.LLMClassifier._call_ollama", return_value="I cannot help"):
        ok, _ = check_ollama()
    assert ok is False
    with patch("core.external_apis.llm_classifier.LLMClassifier._call_ollama", return_value=None):
        ok, msg = check_ollama()
    assert ok is False
    assert "unreachable" in msg
