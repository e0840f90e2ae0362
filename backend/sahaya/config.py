from __future__ import annotations
import os
from pathlib import Path
from dotenv import load_dotenv

# Ensure environment variables (.env) are loaded before any services read them
load_dotenv()


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_flag(name: str, default: bool = True) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw not in {"0", "false", "FALSE", "no"}


# OCR.Space (remote OCR)
OCR_SPACE_URL = os.getenv("OCR_SPACE_URL", "https://api.ocr.space/parse/image")
OCR_SPACE_API_KEY = os.getenv("OCR_SPACE_API_KEY")
OCR_SPACE_LANGUAGE = os.getenv("OCR_SPACE_LANGUAGE", "eng")
OCR_SPACE_TIMEOUT = _env_float("OCR_SPACE_TIMEOUT", 90.0)

# Tesseract (local OCR fallback)
TESSERACT_CMD = os.getenv("TESSERACT_CMD")
TESSERACT_LANGS = os.getenv("TESSERACT_LANGS", "eng")
TESSERACT_CONFIG = os.getenv("TESSERACT_CONFIG", "--oem 1 --psm 3")

# MyMemory (translation)
MYMEMORY_URL = os.getenv("MYMEMORY_URL", "https://api.mymemory.translated.net/get")
MYMEMORY_EMAIL = os.getenv("MYMEMORY_EMAIL")
TRANSLATE_TIMEOUT = _env_float("TRANSLATE_TIMEOUT", 30.0)
SOURCE_LANGUAGE = os.getenv("SOURCE_LANGUAGE", "en")

# Image enhancement
ENHANCE_MAX_DIM = int(os.getenv("ENHANCE_MAX_DIM", "1600"))
ENHANCE_CONTRAST = _env_float("ENHANCE_CONTRAST", 1.12)
ENHANCE_BRIGHTNESS = _env_float("ENHANCE_BRIGHTNESS", -6.0)
ENHANCE_FINAL_CONTRAST = _env_float("ENHANCE_FINAL_CONTRAST", 1.10)
ENHANCE_SHARPEN = _env_flag("ENHANCE_SHARPEN", True)

# Speech output
AUDIO_DIR = Path(os.getenv("AUDIO_DIR", "sahaya_audio"))
DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "te")

# Web
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
# Oldest sessions are dropped past this many
SESSION_LIMIT = int(os.getenv("SESSION_LIMIT", "200"))
