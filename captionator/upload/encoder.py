"""
Purpose:
- Turn an uploaded file into a `data:<mime>;base64,<payload>` URL (preview + transport format).
- Inverse helper for code that needs the raw bytes back (caption client, stub captioner).

Notes:
- One read per call, no retry. Any read failure surfaces as ReadError so the user can re-select.
- The byte count is checked again after the read: the metadata gate cannot judge a file whose size is unknown.
"""

from __future__ import annotations
import base64
import binascii
import re
from typing import Optional, Protocol, Tuple

from ..core.errors import ReadError, TooLargeError
from ..core.settings import MIB, settings

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<payload>.+)$", re.DOTALL)


class ReadableFile(Protocol):
    content_type: Optional[str]

    async def read(self) -> bytes: ...


def to_data_url(raw: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(raw).decode('ascii')}"


async def encode_data_url(file: ReadableFile, max_bytes: Optional[int] = None) -> str:
    limit = settings.max_upload_bytes if max_bytes is None else max_bytes
    try:
        raw = await file.read()
    except Exception as e:
        raise ReadError(f"Could not read the selected file: {e}") from e
    if not raw:
        raise ReadError("Could not read the selected file: it is empty.")
    if len(raw) > limit:
        raise TooLargeError(f"Image is too large ({len(raw)} bytes). The limit is {limit // MIB} MB.")
    return to_data_url(raw, file.content_type or "application/octet-stream")


def is_data_url(value: Optional[str]) -> bool:
    return bool(value) and _DATA_URL_RE.match(value) is not None


def decode_data_url(url: str) -> Tuple[str, bytes]:
    """Return (mime, raw bytes). Raises ValueError on anything that is not a base64 data URL."""
    m = _DATA_URL_RE.match(url or "")
    if not m:
        raise ValueError("expected data:<mime>;base64,<payload>")
    try:
        raw = base64.b64decode(m.group("payload"), validate=True)
    except binascii.Error as e:
        raise ValueError(f"bad base64 payload: {e}") from e
    return m.group("mime"), raw
