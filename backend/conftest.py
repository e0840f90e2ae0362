from __future__ import annotations
from io import BytesIO
from typing import List, Optional

import pytest
from PIL import Image

from sahaya.services.ocr import OcrJob
from sahaya.services.speech import Utterance


def make_png(width: int = 64, height: int = 32, color=(200, 120, 40)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


class FakeStrategy:
    """OCR strategy returning a canned text (or raising) and recording its calls."""

    def __init__(self, name: str, text: str = "", error: Optional[Exception] = None,
                 preview: Optional[bytes] = None, progress: Optional[List[int]] = None):
        self.name = name
        self.empty_message = f"{name} returned no text"
        self.error_message = f"{name} failed"
        self.text = text
        self.error = error
        self.preview = preview
        self.progress = progress or []
        self.calls: List[bytes] = []

    async def run(self, job: OcrJob) -> str:
        self.calls.append(job.image)
        if self.preview is not None:
            job.preview = self.preview
        for pct in self.progress:
            job.on_progress(pct)
        if self.error is not None:
            raise self.error
        return self.text


class FakeSynthesizer:
    def __init__(self):
        self.events: List[tuple] = []
        self.active: List[Utterance] = []

    def cancel(self) -> None:
        self.events.append(("cancel",))
        for utterance in self.active:
            utterance.cancelled = True
        self.active = []

    def speak(self, text: str, locale: str) -> Utterance:
        self.events.append(("speak", text, locale))
        utterance = Utterance(text=text, locale=locale)
        self.active.append(utterance)
        return utterance
