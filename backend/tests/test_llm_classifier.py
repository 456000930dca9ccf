"""
LLM classifier: Ollama response parsing, schema validation, pattern fallback.
Run from backend: python -m pytest tests/test_llm_classifier.py -v
"""
import json
import pytest
from unittest.mock import MagicMock, patch

import requests


def _ollama_response(text: str) -> MagicMock:
    resp = MagicMock()
    resp.status_code = 200
    resp.raise_for_status.return_value = None
    resp.json.return_value = {"response": text}
    return resp


def test_valid_array_is_clamped_and_flagged():
    from core.external_apis import LLMClassifier
    from core.models.classification import HalalStatus
    body = json.dumps([
        {"name": "Porcine Plasma", "status": "HARAM", "confidence": 99, "reasoning": "pig",
         "category": "Animal Derivatives", "requiresVerification": False},
        {"name": "quinoa flakes", "status": "HALAL", "confidence": 85, "reasoning": "plant",
         "category": "Grains", "requiresVerification": False},
    ])
    with patch("core.external_apis.http_retry.requests.post", return_value=_ollama_response(body)):
        out = LLMClassifier().classify(["porcine plasma", "Quinoa Flakes"])
    assert set(out) == {"porcine plasma", "Quinoa Flakes"}
    haram = out["porcine plasma"]
    assert haram.status == HalalStatus.HARAM
    assert haram.confidence == 90
    assert haram.requires_verification is True
    assert haram.islamic_references[0].reference == "Q2:173"
    assert out["Quinoa Flakes"].confidence == 85
    assert out["Quinoa Flakes"].requires_verification is True


def test_fenced_json_is_accepted():
    from core.external_apis import LLMClassifier
    body = '```json\n[{"name": "rice wine", "status": "HARAM", "confidence": 80}]\n```'
    with patch("core.external_apis.http_retry.requests.post", return_value=_ollama_response(body)):
        out = LLMClassifier().classify(["rice wine"])
    assert out["rice wine"].islamic_references[0].reference == "Q5:90"


def test_wrapped_ingredients_object_is_accepted():
    from core.external_apis.llm_classifier import _parse_json_array
    assert _parse_json_array('{"ingredients": [{"name": "x"}]}') == [{"name": "x"}]
    assert _parse_json_array("Sure! [1, 2] hope that helps") == [1, 2]
    assert _parse_json_array("no json here") is None
    assert _parse_json_array("") is None


def test_schema_mismatch_falls_back_to_patterns():
    from core.external_apis import LLMClassifier
    from core.models.classification import HalalStatus
    body = json.dumps([{"name": "bacon bits", "status": "PROBABLY_FINE", "confidence": 50}])
    with patch("core.external_apis.http_retry.requests.post", return_value=_ollama_response(body)):
        out = LLMClassifier().classify(["bacon bits"])
    assert out["bacon bits"].status == HalalStatus.HARAM
    assert out["bacon bits"].confidence == 95


def test_transport_failure_falls_back_to_patterns():
    from core.external_apis import LLMClassifier
    from core.models.classification import HalalStatus
    with patch("core.external_apis.http_retry.requests.post", side_effect=requests.ConnectionError("refused")), \
            patch("core.external_apis.http_retry.time.sleep"):
        out = LLMClassifier().classify(["chicken stock", "beer batter", "blorptang"])
    assert out["chicken stock"].status == HalalStatus.MASHBOOH
    assert out["beer batter"].status == HalalStatus.HARAM
    assert "blorptang" not in out


@pytest.mark.parametrize("payload", [[{"unexpected": "shape"}], "plain string", None])
def test_non_object_body_falls_back_to_patterns(payload):
    """A JSON body that is not an object (e.g. wrong endpoint) is treated as a failed call."""
    from core.external_apis import LLMClassifier
    from core.models.classification import HalalStatus
    resp = _ollama_response("")
    resp.json.return_value = payload
    with patch("core.external_apis.http_retry.requests.post", return_value=resp):
        out = LLMClassifier().classify(["pork rind"])
    assert out["pork rind"].status == HalalStatus.HARAM


def test_names_missing_from_llm_answer_use_patterns():
    from core.external_apis import LLMClassifier
    body = json.dumps([{"name": "quinoa", "status": "HALAL", "confidence": 80}])
    with patch("core.external_apis.http_retry.requests.post", return_value=_ollama_response(body)):
        out = LLMClassifier().classify(["quinoa", "pork rind", "zzz"])
    assert out["quinoa"].category == "Unknown"
    assert out["pork rind"].category == "Animal Derivatives"
    assert "zzz" not in out


def test_empty_input_makes_no_call():
    from core.external_apis import LLMClassifier
    with patch("core.external_apis.http_retry.requests.post") as post:
        assert LLMClassifier().classify([]) == {}
    post.assert_not_called()


@pytest.mark.parametrize("name,expected", [
    ("pork rind", "HARAM"),
    ("porcine collagen", "HARAM"),
    ("ethanol", "HARAM"),
    ("alcohol-free vanilla", "MASHBOOH"),
    ("natural flavours", "MASHBOOH"),
    ("rennet", "MASHBOOH"),
])
def test_pattern_rules(name, expected):
    from core.external_apis import classify_with_patterns
    assert classify_with_patterns([name])[name].status.value == expected


def test_pattern_rules_never_default_to_halal():
    from core.external_apis import classify_with_patterns
    assert classify_with_patterns(["hamburger bun", "quinoa"]) == {}


def test_http_error_is_not_retried():
    from core.external_apis import post_json_with_retries
    resp = MagicMock()
    resp.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
    with patch("core.external_apis.http_retry.requests.post", return_value=resp) as post:
        out, err = post_json_with_retries("http://localhost:11434/api/generate", {}, max_retries=3)
    assert out is None
    assert err.startswith("HTTPError")
    assert post.call_count == 1


def test_timeout_is_retried_with_backoff():
    from core.external_apis import post_json_with_retries
    ok = _ollama_response("[]")
    with patch("core.external_apis.http_retry.requests.post", side_effect=[requests.Timeout("slow"), ok]) as post, \
            patch("core.external_apis.http_retry.time.sleep") as sleep:
        out, err = post_json_with_retries("http://x", {}, max_retries=2, initial_backoff=0.5)
    assert out is ok
    assert err is None
    assert post.call_count == 2
    sleep.assert_called_once_with(0.5)
