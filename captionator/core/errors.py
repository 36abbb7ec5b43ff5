"""
Purpose:
- One exception hierarchy for everything a user can be told about.
- Each error carries a stable `kind` (for API payloads / notifications) and a human-readable message.
"""

from __future__ import annotations
from enum import Enum

class ErrorKind(str, Enum):
    UNSUPPORTED_TYPE = "UnsupportedType"
    TOO_LARGE = "TooLarge"
    READ_ERROR = "ReadError"
    GENERATION_ERROR = "GenerationError"
    INVALID_RESPONSE_SHAPE = "InvalidResponseShape"
    PERSISTENCE_ERROR = "PersistenceError"
    INVALID_OPTIONS = "InvalidOptions"
    AUTH_ERROR = "AuthError"


class CaptionatorError(Exception):
    kind: ErrorKind = ErrorKind.GENERATION_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnsupportedTypeError(CaptionatorError):
    kind = ErrorKind.UNSUPPORTED_TYPE


class TooLargeError(CaptionatorError):
    kind = ErrorKind.TOO_LARGE


class ReadError(CaptionatorError):
    kind = ErrorKind.READ_ERROR


class GenerationError(CaptionatorError):
    kind = ErrorKind.GENERATION_ERROR


class InvalidResponseShapeError(GenerationError):
    """A caption call resolved, but without a usable caption. Handled like any generation failure."""
    kind = ErrorKind.INVALID_RESPONSE_SHAPE


class InvalidOptionsError(CaptionatorError):
    """Caption options the user supplied were rejected before any call went out."""
    kind = ErrorKind.INVALID_OPTIONS


class PersistenceError(CaptionatorError):
    kind = ErrorKind.PERSISTENCE_ERROR


class AuthError(CaptionatorError):
    kind = ErrorKind.AUTH_ERROR


ERRORS_BY_KIND = {
    cls.kind: cls
    for cls in (
        UnsupportedTypeError, TooLargeError, ReadError, GenerationError,
        InvalidResponseShapeError, InvalidOptionsError, PersistenceError, AuthError,
    )
}


def error_for(kind: ErrorKind, message: str) -> CaptionatorError:
    return ERRORS_BY_KIND.get(kind, CaptionatorError)(message)
