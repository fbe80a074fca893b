"""Configuration constants, language names, and .env loading.

WHY: Centralizes every tunable value (API endpoints, models, rate limits,
retry policy, compiler path) so it is easy to find and override. The
language name table is plain data, not buried in the prompt logic.

HOW: python-dotenv loads the .env file on import. Constants are
module-level values read from the environment with sensible defaults.
load_gemini_api_key() and load_elevenlabs_api_key() give a clear error
when a key is missing.

RULES:
- API keys are loaded from .env via python-dotenv, never hardcoded
- All defaults can be overridden via environment variables
- LANGUAGE_NAMES maps ISO 639-3 codes to English display names
- Unknown language codes fall back to "English"
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

# Load .env from the project root (where the app is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Text-enhancement service (Google Gemini)
# ---------------------------------------------------------------------------

GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "learnlm-1.5-pro-experimental")
GEMINI_TIMEOUT_S = float(os.getenv("GEMINI_TIMEOUT_S", "120"))

# ---------------------------------------------------------------------------
# Speech-to-text service (ElevenLabs)
# ---------------------------------------------------------------------------

ELEVENLABS_BASE_URL = os.getenv("ELEVENLABS_BASE_URL", "https://api.elevenlabs.io/v1")
ELEVENLABS_MODEL = os.getenv("ELEVENLABS_MODEL", "scribe_v1")
ELEVENLABS_TIMEOUT_S = float(os.getenv("ELEVENLABS_TIMEOUT_S", "600"))
DEFAULT_TRANSCRIPTION_LANGUAGE = os.getenv("DEFAULT_TRANSCRIPTION_LANGUAGE", "ita")

# ---------------------------------------------------------------------------
# Pipeline tuning
# ---------------------------------------------------------------------------

RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "15"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_DELAY_S = float(os.getenv("RETRY_DELAY_S", "60"))
SENTENCES_PER_PARAGRAPH = int(os.getenv("SENTENCES_PER_PARAGRAPH", "10"))
DEFAULT_DOCUMENT_LANGUAGE = os.getenv("DEFAULT_DOCUMENT_LANGUAGE", "eng")

# ---------------------------------------------------------------------------
# PDF compiler
# ---------------------------------------------------------------------------

TECTONIC_PATH = os.getenv("TECTONIC_PATH", "tectonic")
TECTONIC_TIMEOUT_S = float(os.getenv("TECTONIC_TIMEOUT_S", "300"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "info")

# ---------------------------------------------------------------------------
# Language display names: ISO 639-3 → English name
# ---------------------------------------------------------------------------

LANGUAGE_NAMES: dict[str, str] = {
    "afr": "Afrikaans", "amh": "Amharic", "ara": "Arabic", "hye": "Armenian",
    "asm": "Assamese", "ast": "Asturian", "aze": "Azerbaijani", "bel": "Belarusian",
    "ben": "Bengali", "bos": "Bosnian", "bul": "Bulgarian", "mya": "Burmese",
    "yue": "Cantonese", "cat": "Catalan", "ceb": "Cebuano", "nya": "Chichewa",
    "hrv": "Croatian", "ces": "Czech", "dan": "Danish", "nld": "Dutch",
    "eng": "English", "est": "Estonian", "fil": "Filipino", "fin": "Finnish",
    "fra": "French", "ful": "Fulah", "glg": "Galician", "lug": "Ganda",
    "kat": "Georgian", "deu": "German", "ell": "Greek", "guj": "Gujarati",
    "hau": "Hausa", "heb": "Hebrew", "hin": "Hindi", "hun": "Hungarian",
    "isl": "Icelandic", "ibo": "Igbo", "ind": "Indonesian", "gle": "Irish",
    "ita": "Italian", "jpn": "Japanese", "jav": "Javanese", "kea": "Kabuverdianu",
    "kan": "Kannada", "kaz": "Kazakh", "khm": "Khmer", "kor": "Korean",
    "kur": "Kurdish", "kir": "Kyrgyz", "lao": "Lao", "lav": "Latvian",
    "lin": "Lingala", "lit": "Lithuanian", "luo": "Luo", "ltz": "Luxembourgish",
    "mkd": "Macedonian", "msa": "Malay", "mal": "Malayalam", "mlt": "Maltese",
    "cmn": "Mandarin Chinese", "mri": "Māori", "mar": "Marathi", "mon": "Mongolian",
    "nep": "Nepali", "nso": "Northern Sotho", "nor": "Norwegian", "oci": "Occitan",
    "ori": "Odia", "pus": "Pashto", "fas": "Persian", "pol": "Polish",
    "por": "Portuguese", "pan": "Punjabi", "ron": "Romanian", "rus": "Russian",
    "srp": "Serbian", "sna": "Shona", "snd": "Sindhi", "slk": "Slovak",
    "slv": "Slovenian", "som": "Somali", "spa": "Spanish", "swa": "Swahili",
    "swe": "Swedish", "tam": "Tamil", "tgk": "Tajik", "tel": "Telugu",
    "tha": "Thai", "tur": "Turkish", "ukr": "Ukrainian", "umb": "Umbundu",
    "urd": "Urdu", "uzb": "Uzbek", "vie": "Vietnamese", "cym": "Welsh",
    "wol": "Wolof", "xho": "Xhosa", "zul": "Zulu",
}

DEFAULT_LANGUAGE_NAME = "English"


def language_display_name(code: str | None) -> str:
    """Map an ISO 639-3 code to its English display name.

    WHY: The enhancement prompt tells the model which language the
    rewritten text must stay in. Models follow "Italian" more reliably
    than "ita".

    RULES:
    - Lookup is case-insensitive
    - Unknown or missing codes return "English"
    """
    if not code:
        return DEFAULT_LANGUAGE_NAME
    return LANGUAGE_NAMES.get(code.strip().lower(), DEFAULT_LANGUAGE_NAME)


def load_gemini_api_key() -> str:
    """Load the Gemini API key from the environment.

    RULES:
    - Raises ValueError if GEMINI_API_KEY is missing or empty
    - Never returns a default/placeholder value
    """
    key = os.getenv("GEMINI_API_KEY", "").strip()
    if not key:
        raise ValueError(
            "Gemini API key not configured. "
            "Add GEMINI_API_KEY to the .env file in the app folder."
        )
    return key


def load_elevenlabs_api_key() -> str:
    """Load the ElevenLabs API key from the environment.

    RULES:
    - Raises ValueError if ELEVENLABS_API_KEY is missing or empty
    """
    key = os.getenv("ELEVENLABS_API_KEY", "").strip()
    if not key:
        raise ValueError(
            "API key not found. Please set ELEVENLABS_API_KEY in your .env file."
        )
    return key


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the CLI and API entry points.

    HOW: stdlib logging.basicConfig with a timestamped format. The level
    comes from the argument, else LOG_LEVEL, else INFO.
    """
    name = (level or LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
