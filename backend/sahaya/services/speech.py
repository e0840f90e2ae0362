from __future__ import annotations
import logging
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from gtts import gTTS

from .. import config
from ..errors import EmptyTextError

logger = logging.getLogger(__name__)

EMPTY_TEXT_MESSAGE = "Please translate first before playing audio."
DEFAULT_LOCALE = "en-IN"

LOCALES = {
    "te": "te-IN",
    "hi": "hi-IN",
    "ta": "ta-IN",
    "kn": "kn-IN",
    "ml": "ml-IN",
    "bn": "bn-IN",
}


def locale_for(language: str) -> str:
    return LOCALES.get((language or "").lower(), DEFAULT_LOCALE)


@dataclass
class Utterance:
    text: str
    locale: str
    audio_path: Optional[Path] = None
    cancelled: bool = False

    @property
    def audio_name(self) -> Optional[str]:
        return self.audio_path.name if self.audio_path else None


class Synthesizer(Protocol):
    def cancel(self) -> None: ...

    def speak(self, text: str, locale: str) -> Utterance: ...


class GTTSSynthesizer:
    """
    Render utterances to MP3 with gTTS. Only one utterance is active at a time;
    cancel() drops the active one and removes its audio file.
    """

    def __init__(self, output_dir: Path = config.AUDIO_DIR, tld: str = "co.in"):
        self.output_dir = Path(output_dir)
        self.tld = tld
        self.active: Optional[Utterance] = None
        self._lock = threading.Lock()

    @staticmethod
    def _discard(utterance: Optional[Utterance]) -> None:
        if utterance is None:
            return
        utterance.cancelled = True
        if utterance.audio_path is not None:
            utterance.audio_path.unlink(missing_ok=True)

    def cancel(self) -> None:
        with self._lock:
            current, self.active = self.active, None
        self._discard(current)

    def speak(self, text: str, locale: str) -> Utterance:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        lang = locale.split("-")[0]
        path = self.output_dir / f"{uuid.uuid4().hex}.mp3"
        gTTS(text=text, lang=lang, tld=self.tld).save(str(path))
        utterance = Utterance(text=text, locale=locale, audio_path=path)
        with self._lock:
            replaced, self.active = self.active, utterance
        self._discard(replaced)
        return utterance


class SpeechTrigger:
    def __init__(self, synthesizer: Optional[Synthesizer] = None):
        self.synthesizer = synthesizer or GTTSSynthesizer()
        self._lock = threading.Lock()

    def speak(self, text: str, language: str) -> Utterance:
        if not text or not text.strip():
            raise EmptyTextError(EMPTY_TEXT_MESSAGE)
        locale = locale_for(language)
        # cancel and speak run as one step; overlapping requests leave one live utterance
        with self._lock:
            self.synthesizer.cancel()
            logger.info("Speaking %d chars with locale %s", len(text), locale)
            return self.synthesizer.speak(text, locale)
