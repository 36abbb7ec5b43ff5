"""Shared fixtures: in-memory files, scripted captioners, an app client with overrides."""

import asyncio
import os
from dataclasses import dataclass, field
from io import BytesIO
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from captionator.core.errors import GenerationError
from captionator.history.store import MemoryHistoryStore, get_history_store
from captionator.main import app
from captionator.upload.encoder import to_data_url
from captionator.vlm.gemini_captioner import get_captioner
from captionator.vlm.schema import CaptionRequest, CaptionResult


@dataclass
class FakeFile:
    """Stands in for an UploadFile: metadata plus an awaitable read()."""

    data: bytes
    content_type: Optional[str] = "image/png"
    size: Optional[int] = None
    filename: str = "upload.png"
    fail: Optional[Exception] = None

    def __post_init__(self):
        if self.size is None:
            self.size = len(self.data)

    async def read(self) -> bytes:
        if self.fail is not None:
            raise self.fail
        return self.data


class ScriptedCaptioner:
    """Answers every request with the same caption, or raises the configured error."""

    name = "scripted"

    def __init__(self, caption: str = "A cat on a windowsill.", error: Optional[Exception] = None):
        self.caption = caption
        self.error = error
        self.requests: List[CaptionRequest] = []

    async def generate_caption(self, request: CaptionRequest) -> CaptionResult:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return CaptionResult(caption=self.caption)


@dataclass
class GatedCaptioner:
    """Each call parks on a future the test resolves by hand."""

    name = "gated"
    calls: List[tuple] = field(default_factory=list)

    async def generate_caption(self, request: CaptionRequest):
        fut = asyncio.get_running_loop().create_future()
        self.calls.append((request, fut))
        return await fut


@pytest.fixture
def png_bytes() -> bytes:
    """A ~2 KB PNG (random pixels don't compress)."""
    img = Image.frombytes("RGB", (26, 26), os.urandom(26 * 26 * 3))
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_data_url(png_bytes) -> str:
    return to_data_url(png_bytes, "image/png")


@pytest.fixture
def make_file():
    return FakeFile


@pytest.fixture
def captioner() -> ScriptedCaptioner:
    return ScriptedCaptioner()


@pytest.fixture
def failing_captioner() -> ScriptedCaptioner:
    return ScriptedCaptioner(
        error=GenerationError("Caption generation failed: No output received from AI model.")
    )


@pytest.fixture
def gated_captioner() -> GatedCaptioner:
    return GatedCaptioner()


@pytest.fixture
def history() -> MemoryHistoryStore:
    return MemoryHistoryStore()


@pytest.fixture
def client(captioner, history):
    app.dependency_overrides[get_captioner] = lambda: captioner
    app.dependency_overrides[get_history_store] = lambda: history
    yield TestClient(app)
    app.dependency_overrides.clear()
