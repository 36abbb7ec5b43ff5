"""
Gemini caption client (REST, no SDK):
- POST {endpoint}/models/{model}:generateContent with the image as inline_data
- prompt assembled from style / language / context / emoji / hashtag options
- asks for JSON {"caption": "..."}; tolerates markdown fences and plain-text answers
- one call per request, no retry; every failure surfaces as GenerationError
"""

from __future__ import annotations
import json
import logging
import os
import re
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..core.errors import GenerationError, InvalidResponseShapeError
from ..core.settings import settings
from ..upload.encoder import decode_data_url
from .captioner import StubCaptioner
from .schema import CaptionRequest, CaptionResult, CaptionStyle

logger = logging.getLogger(__name__)

NO_OUTPUT_MESSAGE = "Caption generation failed: No output received from AI model."

_CAPTIONER_SINGLETON = None  # cached instance
_CAPTIONER_LOCK = threading.Lock()

STYLE_HINTS: Dict[CaptionStyle, str] = {
    CaptionStyle.DEFAULT: "Write a relevant, natural caption.",
    CaptionStyle.DESCRIPTIVE: "Describe what is visible in one or two precise sentences.",
    CaptionStyle.FUNNY: "Make it light-hearted and witty.",
    CaptionStyle.FORMAL: "Use a neutral, formal register suitable for a catalogue or report.",
    CaptionStyle.POETIC: "Make it evocative and lyrical, at most two short lines.",
    CaptionStyle.SOCIAL: "Make it catchy and suitable for a social-media post (max 20 words).",
}


@dataclass
class GeminiConfig:
    api_key: str
    model: str
    endpoint: str
    timeout_s: float
    temperature: float
    max_output_tokens: int


def build_prompt(request: CaptionRequest) -> str:
    style = request.style or CaptionStyle.DEFAULT
    lines: List[str] = [
        "You are an expert image captioner. Generate a caption for the image provided.",
        STYLE_HINTS[style],
    ]
    if request.language:
        lines.append(f"Write the caption in the language with code '{request.language}'.")
    if request.context:
        lines.append(f'Take this context from the user into account: "{request.context}".')
    if request.include_emoji:
        lines.append("Include one or two fitting emoji.")
    elif request.include_emoji is False:
        lines.append("Do not use emoji.")
    if request.include_hashtags is False:
        lines.append("Do not include hashtags.")
    lines.append('Return ONLY valid JSON in the form: {"caption": ""}')
    return "\n".join(lines)


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```$", "", text)
    return text.strip()


def _candidate_text(body: Any) -> str:
    """Concatenate the text parts of the first candidate; "" when the shape is off."""
    try:
        parts = body["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


_CAPTION_FIELD_RE = re.compile(r'"caption"\s*:\s*"((?:[^"\\]|\\.)*)"', re.DOTALL)


def _caption_from_fragment(text: str) -> Optional[str]:
    """Pull the caption string out of almost-JSON (trailing commas, raw newlines, odd escapes)."""
    m = _CAPTION_FIELD_RE.search(text)
    if not m:
        return None
    raw = m.group(1)
    try:
        return json.loads(f'"{raw}"', strict=False)
    except json.JSONDecodeError:
        # unknown escapes like \q: keep the escaped character, drop the backslash
        return re.sub(r"\\(.)", r"\1", raw, flags=re.DOTALL)


def parse_caption(body: Any) -> CaptionResult:
    text = _strip_fences(_candidate_text(body))
    if not text:
        raise InvalidResponseShapeError(NO_OUTPUT_MESSAGE)

    caption: Any = text
    if text.startswith("{"):
        try:
            caption = json.loads(text).get("caption")
        except (json.JSONDecodeError, AttributeError):
            caption = _caption_from_fragment(text)

    if not isinstance(caption, str) or not caption.strip():
        raise InvalidResponseShapeError(NO_OUTPUT_MESSAGE)
    return CaptionResult(caption=caption.strip())


class GeminiCaptioner:
    name = "gemini"

    def __init__(self, cfg: GeminiConfig, client: Optional[httpx.AsyncClient] = None):
        self.cfg = cfg
        self._client = client or httpx.AsyncClient(timeout=cfg.timeout_s)

    def _url(self) -> str:
        return f"{self.cfg.endpoint.rstrip('/')}/models/{self.cfg.model}:generateContent"

    def _body(self, request: CaptionRequest) -> Dict[str, Any]:
        mime, raw = decode_data_url(request.photo_data)
        # payload is already base64 in the data URL; reuse it instead of re-encoding `raw`
        b64 = request.photo_data.split(",", 1)[1]
        logger.debug("caption request mime=%s bytes=%d style=%s", mime, len(raw), request.style)
        return {
            "contents": [{
                "role": "user",
                "parts": [
                    {"inline_data": {"mime_type": mime, "data": b64}},
                    {"text": build_prompt(request)},
                ],
            }],
            "generationConfig": {
                "temperature": self.cfg.temperature,
                "maxOutputTokens": self.cfg.max_output_tokens,
                "responseMimeType": "application/json",
            },
        }

    async def generate_caption(self, request: CaptionRequest) -> CaptionResult:
        try:
            body = self._body(request)
        except ValueError as e:
            raise GenerationError(f"Caption generation failed: {e}") from e

        try:
            r = await self._client.post(self._url(), params={"key": self.cfg.api_key}, json=body)
        except httpx.HTTPError as e:
            logger.warning("gemini transport error: %r", e)
            raise GenerationError(f"Caption generation failed: {e.__class__.__name__}") from e

        if r.status_code >= 400:
            logger.warning("gemini returned %s: %s", r.status_code, r.text[:500])
            raise GenerationError(f"Caption generation failed: AI service returned HTTP {r.status_code}.")

        try:
            data = r.json()
        except ValueError as e:
            raise InvalidResponseShapeError(NO_OUTPUT_MESSAGE) from e
        return parse_caption(data)

    async def aclose(self) -> None:
        await self._client.aclose()


def get_captioner():
    """
    Return a cached captioner: Gemini when a key is configured, the stub otherwise.
    FastAPI resolves sync dependencies on its threadpool, so creation is serialized.
    """
    global _CAPTIONER_SINGLETON
    if _CAPTIONER_SINGLETON is not None:
        return _CAPTIONER_SINGLETON
    with _CAPTIONER_LOCK:
        if _CAPTIONER_SINGLETON is None:
            _CAPTIONER_SINGLETON = _build_captioner()
    return _CAPTIONER_SINGLETON


def _build_captioner():
    api_key = settings.gemini_api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    if not settings.use_gemini_captioner:
        return StubCaptioner(reason="disabled by CAPTIONATOR_USE_GEMINI_CAPTIONER")
    if not api_key:
        logger.warning("no Gemini API key configured; using stub captioner")
        return StubCaptioner(reason="GEMINI_API_KEY not set")
    return GeminiCaptioner(GeminiConfig(
        api_key=api_key,
        model=settings.gemini_model,
        endpoint=settings.gemini_endpoint,
        timeout_s=settings.gemini_timeout_s,
        temperature=settings.gemini_temperature,
        max_output_tokens=settings.gemini_max_output_tokens,
    ))


async def reset_captioner() -> None:
    """Close and forget the cached captioner (app shutdown, tests)."""
    global _CAPTIONER_SINGLETON
    if _CAPTIONER_SINGLETON is not None:
        await _CAPTIONER_SINGLETON.aclose()
    _CAPTIONER_SINGLETON = None


async def generate_caption(
    photo_data: str,
    style: Optional[CaptionStyle] = None,
    language: Optional[str] = None,
    context: Optional[str] = None,
) -> CaptionResult:
    request = CaptionRequest(photo_data=photo_data, style=style, language=language, context=context)
    return await get_captioner().generate_caption(request)
