#!/usr/bin/env python3
"""
Knowledge-base maintenance: list unknown ingredients seen in analyses, most frequent first,
with a suggested classification (LLM when --use-llm, else local pattern rules).
Suggestions are for scholarly review; nothing is written to the knowledge base.
Usage: cd backend && python scripts/review_unknown_ingredients.py [--min-frequency 2] [--use-llm] [--output FILE]
"""
import argparse
import json
import logging
import sys
from pathlib import Path

# Ensure backend is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def build_review(entries: dict, keys: list, suggestions: dict) -> list:
    rows = []
    for key in keys:
        entry = entries.get(key) or {}
        suggestion = suggestions.get(key)
        rows.append({
            "normalized_key": key,
            "frequency": entry.get("frequency", 0),
            "raw_inputs": entry.get("raw_inputs", []),
            "madhabs": entry.get("madhabs", []),
            "suggested": suggestion.to_dict() if suggestion else None,
        })
    return rows


def main() -> int:
    parser = argparse.ArgumentParser(description="Review unknown ingredients for knowledge-base additions")
    parser.add_argument("--min-frequency", type=int, default=1, help="Min times seen to include")
    parser.add_argument("--use-llm", action="store_true", help="Ask the LLM for suggestions (falls back to patterns)")
    parser.add_argument("--output", type=Path, default=None, help="Write review JSON here instead of stdout")
    args = parser.parse_args()

    from core.enrichment import get_unknown_log
    from core.external_apis import LLMClassifier, classify_with_patterns

    log = get_unknown_log()
    keys = log.get_keys_for_review(min_frequency=args.min_frequency)
    if not keys:
        logger.info("No unknown ingredients to review")
        return 0

    suggestions = LLMClassifier().classify(keys) if args.use_llm else classify_with_patterns(keys)
    rows = build_review(log.get_entries(), keys, suggestions)
    payload = json.dumps({"unknown_ingredients": rows}, indent=2, ensure_ascii=False)
    if args.output:
        args.output.write_text(payload + "\n", encoding="utf-8")
        logger.info("Wrote %d review rows to %s", len(rows), args.output)
    else:
        print(payload)
    logger.info("Review complete: %d keys, %d with suggestions", len(keys), len(suggestions))
    return 0


if __name__ == "__main__":
    sys.exit(main())
