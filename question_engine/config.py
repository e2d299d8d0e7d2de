"""
Runtime configuration for the generation engine.

Values come from the process environment. The application entry point
(main.py) calls load_dotenv() before importing this package, so a local
.env file works the same way as exported variables.
"""

import os

# ── Credentials ────────────────────────────────────────────────────────────────
# Checked in this order; every source may hold a delimited list of keys.
API_KEY_ENV_VARS = ("QGEN_API_KEYS", "OPENAI_API_KEYS", "OPENAI_API_KEY")

# ── Models ─────────────────────────────────────────────────────────────────────
PRIMARY_MODEL = os.getenv("QGEN_PRIMARY_MODEL", "gpt-4o")
FALLBACK_MODEL = os.getenv("QGEN_FALLBACK_MODEL", "gpt-4o-mini")

# ── Retry / pacing ─────────────────────────────────────────────────────────────
MIN_ATTEMPTS = 3
BACKOFF_SECONDS = float(os.getenv("QGEN_BACKOFF_SECONDS", "2.0"))
SUBJECT_DELAY_SECONDS = float(os.getenv("QGEN_SUBJECT_DELAY_SECONDS", "20"))

# ── Sampling ───────────────────────────────────────────────────────────────────
TEMPERATURE = float(os.getenv("QGEN_TEMPERATURE", "0.95"))
TOP_P = float(os.getenv("QGEN_TOP_P", "0.9"))
MAX_TOKENS = int(os.getenv("QGEN_MAX_TOKENS", "8192"))

SYSTEM_PROMPT = (
    "You are an expert competitive-exam coach and question setter. "
    "Generate HIGHLY UNIQUE, ORIGINAL, concept-heavy problems, never common textbook ones. "
    "Use LaTeX for all math. Output must match the requested JSON structure exactly."
)
