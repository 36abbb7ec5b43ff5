"""
Purpose:
- Accept/reject a candidate upload from its metadata alone (MIME type, byte size).
- Runs before any read, encode or network work.

Rules (first match wins):
  1. content type must start with "image/"   -> UnsupportedType
  2. size must be <= max_bytes (inclusive)   -> TooLarge
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Protocol

from ..core.errors import ErrorKind
from ..core.settings import MIB, settings

# value for an <input type="file" accept=...> filter
ACCEPT_ATTRIBUTE = ",".join(settings.accepted_image_types)


class FileMeta(Protocol):
    content_type: Optional[str]
    size: Optional[int]


@dataclass(frozen=True)
class Verdict:
    ok: bool
    reason: Optional[ErrorKind] = None
    message: str = ""


ACCEPTED = Verdict(ok=True)


def validate(file: FileMeta, max_bytes: Optional[int] = None) -> Verdict:
    limit = settings.max_upload_bytes if max_bytes is None else max_bytes
    mime = (file.content_type or "").strip().lower()
    if not mime.startswith("image/"):
        return Verdict(False, ErrorKind.UNSUPPORTED_TYPE, "Invalid file type. Please upload an image.")

    # unknown size passes here; the encoder re-checks the bytes it actually read
    size = file.size or 0
    if size > limit:
        return Verdict(
            False,
            ErrorKind.TOO_LARGE,
            f"Image is too large ({size} bytes). The limit is {limit // MIB} MB.",
        )
    return ACCEPTED
