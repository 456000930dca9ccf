"""
External service connectors: LLM-assisted classification for unknown ingredients.
"""
from .http_retry import post_json_with_retries
from .llm_classifier import LLMClassifier, LLMIngredient, classify_with_patterns

__all__ = [
    "post_json_with_retries",
    "LLMClassifier",
    "LLMIngredient",
    "classify_with_patterns",
]
