"""
Session state for the SahayaAI page and the controller that drives it.

State changes go through the small pure transition functions below; the
controller owns one SessionState and swaps it for the result of each
transition as user actions and service calls complete.
"""
from __future__ import annotations
import asyncio
import logging
import uuid
from collections import OrderedDict
from typing import Awaitable, Callable, Optional

from . import config
from .errors import EmptyTextError, SahayaError
from .models import LANGUAGES, SessionState, SessionView
from .services.ocr import ALL_FAILED_MESSAGE, OcrOrchestrator, OcrOutcome
from .services.speech import SpeechTrigger
from .services.translate import EMPTY_TEXT_MESSAGE, FAILED_MESSAGE, translate_text

logger = logging.getLogger(__name__)

SPEECH_FAILED_MESSAGE = "Speech failed, please try again."
COPY_FAILED_MESSAGE = "Copy failed."
COPIED_MESSAGE = "Copied translated text."
DOWNLOAD_FILENAME = "translation.txt"

Translator = Callable[[str, str], Awaitable[str]]


# ---------------------------------------------------------
# Transitions
# ---------------------------------------------------------
def new_state(session_id: Optional[str] = None) -> SessionState:
    return SessionState(session_id=session_id or uuid.uuid4().hex)


def with_error(state: SessionState, message: str) -> SessionState:
    return state.model_copy(update={"error_message": message, "status_message": ""})


def with_status(state: SessionState, message: str) -> SessionState:
    return state.model_copy(update={"status_message": message})


def with_progress(state: SessionState, percent: int) -> SessionState:
    return state.model_copy(update={"ocr_progress": max(0, min(100, int(percent)))})


def set_input_text(state: SessionState, text: str) -> SessionState:
    return state.model_copy(update={"input_text": text})


def set_language(state: SessionState, language: str) -> SessionState:
    if language not in LANGUAGES:
        raise ValueError(f"Unsupported language: {language}")
    return state.model_copy(update={"target_language": language})


def begin_extraction(state: SessionState, filename: str) -> SessionState:
    return state.model_copy(update={
        "is_extracting": True,
        "ocr_progress": 2,
        "error_message": "",
        "status_message": "",
        "source_file_name": filename or "",
    })


def finish_extraction(state: SessionState, outcome: OcrOutcome) -> SessionState:
    update = {"error_message": outcome.message, "status_message": ""}
    if outcome.ok:
        update["input_text"] = outcome.text
        update["error_message"] = ""
    if outcome.preview is not None:
        update["preview_image"] = outcome.preview
    return state.model_copy(update=update)


def end_extraction(state: SessionState) -> SessionState:
    return state.model_copy(update={"is_extracting": False, "ocr_progress": 100})


def begin_translation(state: SessionState) -> SessionState:
    return state.model_copy(update={"is_translating": True, "translated_text": "", "error_message": "", "audio_url": None})


def finish_translation(state: SessionState, translated: str) -> SessionState:
    return state.model_copy(update={"translated_text": translated, "error_message": ""})


def end_translation(state: SessionState) -> SessionState:
    return state.model_copy(update={"is_translating": False})


def speech_started(state: SessionState, audio_url: Optional[str]) -> SessionState:
    return state.model_copy(update={"audio_url": audio_url, "error_message": ""})


def clipboard_result(state: SessionState, ok: bool) -> SessionState:
    if ok:
        return state.model_copy(update={"error_message": "", "status_message": COPIED_MESSAGE})
    return with_error(state, COPY_FAILED_MESSAGE)


def view(state: SessionState) -> SessionView:
    data = state.model_dump()
    data["has_preview"] = state.preview_image is not None
    return SessionView(**data)


# ---------------------------------------------------------
# Controller
# ---------------------------------------------------------
class SessionController:
    def __init__(
        self,
        state: Optional[SessionState] = None,
        ocr: Optional[OcrOrchestrator] = None,
        speech: Optional[SpeechTrigger] = None,
        translator: Translator = translate_text,
    ):
        self.state = state or new_state()
        self.ocr = ocr or OcrOrchestrator()
        self.speech = speech or SpeechTrigger()
        self.translator = translator

    def _on_progress(self, percent: int) -> None:
        self.state = with_progress(self.state, percent)

    def _on_status(self, message: str) -> None:
        self.state = with_status(self.state, message)

    def set_input_text(self, text: str) -> SessionState:
        self.state = set_input_text(self.state, text)
        return self.state

    def set_language(self, language: str) -> SessionState:
        self.state = set_language(self.state, language)
        return self.state

    async def extract(self, image: bytes, filename: str = "") -> SessionState:
        self.state = begin_extraction(self.state, filename)
        try:
            outcome = await self.ocr.extract(image, filename, on_progress=self._on_progress, on_status=self._on_status)
            self.state = finish_extraction(self.state, outcome)
        except Exception:
            logger.exception("OCR for %r failed unexpectedly", filename)
            self.state = with_error(self.state, ALL_FAILED_MESSAGE)
        finally:
            self.state = end_extraction(self.state)
        return self.state

    async def translate(self) -> SessionState:
        text = self.state.input_text.strip()
        if not text:
            self.state = with_error(self.state, EMPTY_TEXT_MESSAGE)
            return self.state

        self.state = begin_translation(self.state)
        try:
            translated = await self.translator(text, self.state.target_language)
            self.state = finish_translation(self.state, translated)
        except SahayaError as e:
            self.state = with_error(self.state, str(e))
        except Exception:
            logger.exception("Translation failed unexpectedly")
            self.state = with_error(self.state, FAILED_MESSAGE)
        finally:
            self.state = end_translation(self.state)
        return self.state

    async def speak(self) -> SessionState:
        try:
            utterance = await asyncio.to_thread(
                self.speech.speak, self.state.translated_text, self.state.target_language
            )
        except EmptyTextError as e:
            self.state = with_error(self.state, str(e))
        except Exception:
            logger.exception("Speech synthesis failed")
            self.state = with_error(self.state, SPEECH_FAILED_MESSAGE)
        else:
            audio_url = f"/audio/{utterance.audio_name}" if utterance.audio_name else None
            self.state = speech_started(self.state, audio_url)
        return self.state

    def report_clipboard(self, ok: bool) -> SessionState:
        self.state = clipboard_result(self.state, ok)
        return self.state

    def download(self) -> tuple[str, bytes]:
        return DOWNLOAD_FILENAME, (self.state.translated_text or "").encode("utf-8")


class SessionStore:
    """
    In-memory sessions; nothing survives a restart. Holds at most max_sessions,
    dropping the least recently used one (and its audio) when full.
    """

    def __init__(
        self,
        factory: Optional[Callable[[SessionState], SessionController]] = None,
        max_sessions: Optional[int] = None,
    ):
        self._sessions: "OrderedDict[str, SessionController]" = OrderedDict()
        self._ocr: Optional[OcrOrchestrator] = None
        self._factory = factory or self._default_factory
        self.max_sessions = max_sessions or config.SESSION_LIMIT

    def _default_factory(self, state: SessionState) -> SessionController:
        if self._ocr is None:
            self._ocr = OcrOrchestrator()
        return SessionController(state=state, ocr=self._ocr, speech=SpeechTrigger())

    def create(self) -> SessionController:
        controller = self._factory(new_state())
        self._sessions[controller.state.session_id] = controller
        logger.info("Created session %s", controller.state.session_id)
        while len(self._sessions) > self.max_sessions:
            oldest, evicted = self._sessions.popitem(last=False)
            logger.info("Evicting session %s", oldest)
            self._close(evicted)
        return controller

    def get(self, session_id: str) -> SessionController:
        controller = self._sessions[session_id]
        self._sessions.move_to_end(session_id)
        return controller

    def remove(self, session_id: str) -> None:
        """Drop a session and delete its audio. Raises KeyError if unknown."""
        controller = self._sessions.pop(session_id)
        logger.info("Removed session %s", session_id)
        self._close(controller)

    @staticmethod
    def _close(controller: SessionController) -> None:
        controller.speech.synthesizer.cancel()

    def __len__(self) -> int:
        return len(self._sessions)
