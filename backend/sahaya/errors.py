from __future__ import annotations


class SahayaError(Exception):
    """Base class for errors surfaced to the user as a status message."""


class EmptyTextError(SahayaError, ValueError):
    """Raised before any network call when the text to work on is blank."""


class RemoteServiceError(SahayaError):
    """A remote HTTP service failed, timed out or returned an unusable payload."""


class TranslationError(RemoteServiceError):
    pass


class LocalOcrError(SahayaError):
    pass
