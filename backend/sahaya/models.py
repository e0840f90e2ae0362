from typing import List, Optional
from pydantic import BaseModel, Field
from . import config

# Target languages offered in the dropdown, in display order
LANGUAGES = {
    "te": "Telugu",
    "hi": "Hindi",
    "ta": "Tamil",
    "kn": "Kannada",
    "ml": "Malayalam",
    "bn": "Bengali",
}

class SessionState(BaseModel):
    session_id: str
    input_text: str = ""
    translated_text: str = ""
    target_language: str = config.DEFAULT_LANGUAGE
    ocr_progress: int = Field(default=0, ge=0, le=100)
    is_extracting: bool = False
    is_translating: bool = False
    preview_image: Optional[bytes] = Field(default=None, exclude=True, repr=False)
    error_message: str = ""
    status_message: str = ""
    source_file_name: str = ""
    audio_url: Optional[str] = None

class SessionView(BaseModel):
    session_id: str
    input_text: str
    translated_text: str
    target_language: str
    ocr_progress: int
    is_extracting: bool
    is_translating: bool
    has_preview: bool
    error_message: str
    status_message: str
    source_file_name: str
    audio_url: Optional[str] = None

class InputTextRequest(BaseModel):
    text: str

class LanguageRequest(BaseModel):
    language: str

class ClipboardReport(BaseModel):
    ok: bool

class LanguageOption(BaseModel):
    code: str
    name: str
    locale: str

class LanguagesResponse(BaseModel):
    default: str
    languages: List[LanguageOption]
