"""
Tuning constants, paths, and centralized configuration.
All resolution relative to the backend directory.
"""
import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Repo root: backend/core/config.py -> parent=core, parent.parent=backend, parent.parent.parent=repo
_BACKEND_DIR = Path(__file__).resolve().parent.parent
_REPO_ROOT = _BACKEND_DIR.parent


def _env_float(name: str, default: str) -> float:
    return float(os.environ.get(name, default))


def _env_int(name: str, default: str) -> int:
    return int(os.environ.get(name, default))


# --- Feature flags ---
AI_FALLBACK_ENABLED = os.environ.get("AI_FALLBACK_ENABLED", "").lower() in ("1", "true", "yes")

# --- Matching thresholds ---
FUZZY_MATCH_THRESHOLD = _env_float("FUZZY_MATCH_THRESHOLD", "0.7")
SIMILAR_MIN_SIMILARITY = _env_float("SIMILAR_MIN_SIMILARITY", "0.3")
CATEGORY_MATCH_CONFIDENCE = _env_int("CATEGORY_MATCH_CONFIDENCE", "20")
UNKNOWN_CONFIDENCE = _env_int("UNKNOWN_CONFIDENCE", "10")

# --- Verification ---
VERIFICATION_CACHE_TTL_DAYS = _env_int("VERIFICATION_CACHE_TTL_DAYS", "30")
CERTIFICATION_CONFIDENCE_CAP = _env_int("CERTIFICATION_CONFIDENCE_CAP", "85")

# --- Event bus ---
EVENT_HISTORY_SIZE = _env_int("EVENT_HISTORY_SIZE", "1000")
EVENT_WAIT_TIMEOUT = _env_float("EVENT_WAIT_TIMEOUT", "30")  # seconds

# Certificates issued by the workflow are valid for this many days
CERTIFICATE_VALIDITY_DAYS = _env_int("CERTIFICATE_VALIDITY_DAYS", "365")


# --- Data paths ---
# Static tables ship in data/; runtime records default there too but can be redirected
def get_records_dir() -> Path:
    return Path(os.environ.get("HALALCHECK_RECORDS_DIR", str(_REPO_ROOT / "data")))

def get_ingredients_path() -> Path:
    return _REPO_ROOT / "data" / "halal_ingredients.json"

def get_madhab_rulings_path() -> Path:
    return _REPO_ROOT / "data" / "madhab_rulings.json"

def get_verification_rules_path() -> Path:
    return _REPO_ROOT / "data" / "verification_rules.json"

def get_certification_bodies_path() -> Path:
    return _REPO_ROOT / "data" / "certification_bodies.json"

def get_unknown_ingredients_log_path() -> Path:
    return get_records_dir() / "unknown_ingredients_log.json"

def get_analyses_path() -> Path:
    return get_records_dir() / "analyses.json"

def get_applications_path() -> Path:
    return get_records_dir() / "applications.json"

def get_certificates_path() -> Path:
    return get_records_dir() / "certificates.json"


# --- LLM / Ollama ---
def get_ollama_url() -> str:
    return os.environ.get("OLLAMA_API_URL", "http://localhost:11434/api/generate")

def get_ollama_model() -> str:
    return os.environ.get("OLLAMA_MODEL", "llama3.2:3b")

# LLM timeout default (seconds)
LLM_CLASSIFY_TIMEOUT = _env_int("LLM_CLASSIFY_TIMEOUT", "30")


# --- Startup logging ---
def log_config() -> None:
    logger.info(
        "CONFIG: ingredients=%s madhab_rulings=%s verification_rules=%s cert_bodies=%s "
        "fuzzy_threshold=%s verification_ttl_days=%s cert_cap=%s event_history=%s "
        "ai_fallback=%s ollama_model=%s llm_classify_timeout=%ds",
        get_ingredients_path().exists(), get_madhab_rulings_path().exists(),
        get_verification_rules_path().exists(), get_certification_bodies_path().exists(),
        FUZZY_MATCH_THRESHOLD, VERIFICATION_CACHE_TTL_DAYS, CERTIFICATION_CONFIDENCE_CAP,
        EVENT_HISTORY_SIZE, AI_FALLBACK_ENABLED, get_ollama_model(), LLM_CLASSIFY_TIMEOUT,
    )
