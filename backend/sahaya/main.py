from __future__ import annotations
import logging
import os
from pathlib import Path
from fastapi import FastAPI, File, UploadFile, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, Response
from fastapi.staticfiles import StaticFiles
from . import config
from .models import (
    LANGUAGES,
    ClipboardReport,
    InputTextRequest,
    LanguageOption,
    LanguageRequest,
    LanguagesResponse,
    SessionView,
)
from .services.speech import locale_for
from .session import SessionController, SessionStore, view

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"

app = FastAPI(title="SahayaAI", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

sessions = SessionStore()


def _controller(session_id: str) -> SessionController:
    try:
        return sessions.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found.")


@app.get("/", response_class=FileResponse)
async def root_index():
    return FileResponse(STATIC_DIR / "index.html")


@app.get("/api/languages", response_model=LanguagesResponse)
async def languages():
    return LanguagesResponse(
        default=config.DEFAULT_LANGUAGE,
        languages=[LanguageOption(code=code, name=name, locale=locale_for(code)) for code, name in LANGUAGES.items()],
    )


@app.post("/api/sessions", response_model=SessionView, status_code=201)
async def create_session():
    return view(sessions.create().state)


@app.get("/api/sessions/{session_id}", response_model=SessionView)
async def get_session(session_id: str):
    return view(_controller(session_id).state)


@app.delete("/api/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str):
    try:
        sessions.remove(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Session not found.")
    return Response(status_code=204)


@app.put("/api/sessions/{session_id}/input", response_model=SessionView)
async def update_input(session_id: str, req: InputTextRequest):
    return view(_controller(session_id).set_input_text(req.text))


@app.put("/api/sessions/{session_id}/language", response_model=SessionView)
async def update_language(session_id: str, req: LanguageRequest):
    controller = _controller(session_id)
    try:
        state = controller.set_language(req.language)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return view(state)


@app.post("/api/sessions/{session_id}/extract", response_model=SessionView)
async def extract(session_id: str, file: UploadFile = File(...)):
    """
    Extract text from an uploaded photo.
    Tries OCR.Space on the enhanced image first, then Tesseract on the original.
    """
    controller = _controller(session_id)
    if not file.content_type or not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image.")
    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    state = await controller.extract(contents, file.filename or "")
    return view(state)


@app.get("/api/sessions/{session_id}/preview")
async def preview(session_id: str):
    image = _controller(session_id).state.preview_image
    if image is None:
        raise HTTPException(status_code=404, detail="No preview available.")
    return Response(content=image, media_type="image/png")


@app.post("/api/sessions/{session_id}/translate", response_model=SessionView)
async def translate(session_id: str):
    return view(await _controller(session_id).translate())


@app.post("/api/sessions/{session_id}/speak", response_model=SessionView)
async def speak(session_id: str):
    return view(await _controller(session_id).speak())


@app.post("/api/sessions/{session_id}/clipboard", response_model=SessionView)
async def clipboard(session_id: str, report: ClipboardReport):
    return view(_controller(session_id).report_clipboard(report.ok))


@app.get("/api/sessions/{session_id}/download")
async def download(session_id: str):
    filename, payload = _controller(session_id).download()
    return Response(
        content=payload,
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/audio/{filename}")
async def serve_audio(filename: str):
    # Security: prevent directory traversal
    path = config.AUDIO_DIR / os.path.basename(filename)
    if path.exists() and path.is_file():
        return FileResponse(path, media_type="audio/mpeg")
    raise HTTPException(status_code=404, detail="Audio file not found.")


@app.get("/api/health")
async def health_api():
    return {"status": "ok", "sessions": len(sessions)}


@app.get("/health")
async def health_root():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("sahaya.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=False)
