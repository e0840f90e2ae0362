from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import AsyncIterator, Callable, List, Optional, Protocol, Sequence

import cv2
import httpx
import numpy as np
import pytesseract
from PIL import Image

from .. import config
from ..errors import LocalOcrError, RemoteServiceError
from .enhance import enhance_image

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]
StatusCallback = Callable[[str], None]

NO_TEXT_MESSAGE = "Local OCR couldn't extract text. Try a clearer image."
ALL_FAILED_MESSAGE = "Both OCR methods failed."

UPLOAD_CHUNK_SIZE = 64 * 1024


def _noop(_value) -> None:
    return None


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return " ".join(text.split())


@dataclass
class OcrJob:
    image: bytes
    filename: str
    on_progress: ProgressCallback
    preview: Optional[bytes] = None


@dataclass
class OcrOutcome:
    text: str
    message: str = ""
    strategy: Optional[str] = None
    preview: Optional[bytes] = None

    @property
    def ok(self) -> bool:
        return bool(self.text)


class OcrStrategy(Protocol):
    name: str
    empty_message: str
    error_message: str

    async def run(self, job: OcrJob) -> str: ...


# ---------------------------------------------------------
# Remote OCR (OCR.Space)
# ---------------------------------------------------------
async def _upload_chunks(body: bytes, on_progress: ProgressCallback) -> AsyncIterator[bytes]:
    total = len(body) or 1
    sent = 0
    for start in range(0, len(body), UPLOAD_CHUNK_SIZE):
        chunk = body[start:start + UPLOAD_CHUNK_SIZE]
        sent += len(chunk)
        yield chunk
        on_progress(min(100, round(sent * 100 / total)))


def _parsed_text(payload: dict) -> str:
    if payload.get("IsErroredOnProcessing"):
        detail = payload.get("ErrorMessage") or "OCR.Space could not process the image"
        if isinstance(detail, list):
            detail = "; ".join(str(d) for d in detail)
        raise RemoteServiceError(str(detail))
    results = payload.get("ParsedResults") or []
    if not results:
        return ""
    return results[0].get("ParsedText") or ""


class RemoteOcrStrategy:
    """Enhance the upload and send it to OCR.Space as a multipart POST."""

    name = "remote"
    empty_message = "OCR.Space returned no text, falling back to local OCR."
    error_message = "OCR.Space error; trying local OCR fallback."

    def __init__(
        self,
        api_key: Optional[str] = config.OCR_SPACE_API_KEY,
        url: str = config.OCR_SPACE_URL,
        language: str = config.OCR_SPACE_LANGUAGE,
        timeout: float = config.OCR_SPACE_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        enhancer: Callable = enhance_image,
    ):
        self.api_key = api_key
        self.url = url
        self.language = language
        self.timeout = timeout
        self.transport = transport
        self.enhancer = enhancer

    async def run(self, job: OcrJob) -> str:
        enhanced = await asyncio.to_thread(self.enhancer, job.image)
        job.preview = enhanced.data

        if not self.api_key:
            raise RemoteServiceError("OCR_SPACE_API_KEY is not configured.")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            multipart = client.build_request(
                "POST",
                self.url,
                data={"language": self.language, "isOverlayRequired": "false"},
                files={"file": ("enhanced.png", enhanced.data, enhanced.media_type)},
                headers={"apikey": self.api_key},
            )
            body = multipart.read()
            request = client.build_request(
                "POST",
                self.url,
                content=_upload_chunks(body, job.on_progress),
                headers=multipart.headers,
            )
            resp = await client.send(request)
        resp.raise_for_status()
        return _parsed_text(resp.json())


# ---------------------------------------------------------
# Local OCR (Tesseract)
# ---------------------------------------------------------
def _configure_tesseract():
    if config.TESSERACT_CMD:
        pytesseract.pytesseract.tesseract_cmd = config.TESSERACT_CMD


def _preprocess(img: np.ndarray) -> np.ndarray:
    """Simple preprocessing - just normalize the image."""
    gray = cv2.cvtColor(img, cv2.COLOR_RGB2GRAY)
    return cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX)


class TesseractEngine:
    def __init__(self, config_flags: str = config.TESSERACT_CONFIG):
        self.config_flags = config_flags

    def recognize(self, image_bytes: bytes, lang: str, on_progress: ProgressCallback) -> str:
        _configure_tesseract()
        try:
            img = Image.open(BytesIO(image_bytes))
            img.load()
        except Exception as e:
            raise LocalOcrError(f"Could not decode image: {e}") from e
        on_progress(20)
        np_img = np.array(img.convert("RGB"))
        text = pytesseract.image_to_string(_preprocess(np_img), lang=lang, config=self.config_flags)
        on_progress(100)
        return text


class LocalOcrStrategy:
    """Run Tesseract on the original (non-enhanced) upload."""

    name = "local"
    empty_message = "Local OCR returned no text."
    error_message = "Local OCR failed."

    def __init__(self, engine=None, lang: str = config.TESSERACT_LANGS):
        self.engine = engine or TesseractEngine()
        self.lang = lang

    async def run(self, job: OcrJob) -> str:
        job.on_progress(5)
        return await asyncio.to_thread(self.engine.recognize, job.image, self.lang, job.on_progress)


def default_strategies() -> List[OcrStrategy]:
    return [RemoteOcrStrategy(), LocalOcrStrategy()]


class OcrOrchestrator:
    """
    Try each OCR strategy in order and stop at the first one that yields text.
    Progress is always forced to 100 when the attempt ends.
    """

    def __init__(self, strategies: Optional[Sequence[OcrStrategy]] = None):
        self.strategies = list(strategies) if strategies is not None else default_strategies()

    async def extract(
        self,
        image: bytes,
        filename: str = "",
        on_progress: Optional[ProgressCallback] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> OcrOutcome:
        on_progress = on_progress or _noop
        on_status = on_status or _noop
        job = OcrJob(image=image, filename=filename, on_progress=on_progress)
        failed = False

        on_progress(2)
        try:
            for i, strategy in enumerate(self.strategies):
                has_next = i + 1 < len(self.strategies)
                try:
                    raw = await strategy.run(job)
                except Exception as e:
                    failed = True
                    logger.warning("OCR strategy %r failed for %r: %s", strategy.name, filename, e)
                    if has_next:
                        on_status(strategy.error_message)
                    continue

                failed = False
                text = normalize_whitespace(raw or "")
                if text:
                    logger.info("OCR strategy %r extracted %d chars from %r", strategy.name, len(text), filename)
                    return OcrOutcome(text=text, strategy=strategy.name, preview=job.preview)
                logger.info("OCR strategy %r returned no text for %r", strategy.name, filename)
                if has_next:
                    on_status(strategy.empty_message)

            message = ALL_FAILED_MESSAGE if failed else NO_TEXT_MESSAGE
            return OcrOutcome(text="", message=message, preview=job.preview)
        finally:
            on_progress(100)
