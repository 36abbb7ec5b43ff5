"""
Purpose:
- Offline fallback captioner used when no Gemini key is configured.
- Same call shape as the Gemini client, so the API and workflow never care which one they got.

Notes:
- Pillow only opens the header to read dimensions; nothing is decoded into pixels.
"""

from __future__ import annotations
from io import BytesIO
from typing import Optional
from PIL import Image, UnidentifiedImageError

from ..core.errors import GenerationError
from ..upload.encoder import decode_data_url
from .schema import CaptionRequest, CaptionResult

def caption_image_stub(photo_data: str) -> str:
    """
    Very simple placeholder caption built from image metadata.
    """
    try:
        _mime, raw = decode_data_url(photo_data)
        with Image.open(BytesIO(raw)) as img:
            w, h = img.size
            fmt = img.format or "image"
    except (ValueError, UnidentifiedImageError) as e:
        raise GenerationError(f"Caption generation failed: {e}") from e
    return f"{fmt} photo ({w}x{h}); captioning model not wired yet."


class StubCaptioner:
    name = "stub"

    def __init__(self, reason: Optional[str] = None) -> None:
        # why we are not talking to the real model (shown on /healthz)
        self.reason = reason

    async def generate_caption(self, request: CaptionRequest) -> CaptionResult:
        return CaptionResult(caption=caption_image_stub(request.photo_data))

    async def aclose(self) -> None:
        return None
