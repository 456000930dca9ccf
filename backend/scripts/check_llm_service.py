#!/usr/bin/env python3
"""
Check that the Ollama endpoint used for AI-assisted classification is reachable and
returns a usable classification.
Run from backend: python scripts/check_llm_service.py
Exit 0 if the LLM answered with a valid classification; 1 otherwise.
"""
import sys
from pathlib import Path
from typing import Tuple

# Add backend to path when run as script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# Short timeout for health check
HEALTH_TIMEOUT = 15
CHECK_INGREDIENTS = ["cane sugar", "pork gelatin"]


def check_ollama() -> Tuple[bool, str]:
    """Return (success, message)."""
    from core.external_apis.llm_classifier import LLMClassifier, _parse_json_array

    classifier = LLMClassifier(timeout=HEALTH_TIMEOUT)
    raw = classifier._call_ollama(CHECK_INGREDIENTS)
    if raw is None:
        return False, "endpoint unreachable or returned an error"
    items = _parse_json_array(raw)
    if items is None:
        return False, f"response is not a JSON array: {raw[:80]!r}"
    return True, f"ok ({len(items)} item(s))"


def main() -> int:
    from core.config import AI_FALLBACK_ENABLED, get_ollama_model, get_ollama_url
    print(f"Checking LLM service at {get_ollama_url()} (model={get_ollama_model()})...")
    ok, msg = check_ollama()
    print(f"  Ollama: {'OK' if ok else 'FAIL'} - {msg}")
    if not AI_FALLBACK_ENABLED:
        print("  Note: AI_FALLBACK_ENABLED is off; analyses will not call the LLM.")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
