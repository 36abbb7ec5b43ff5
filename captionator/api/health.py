# Common language: Environment/ops probe that surfaces version pins, config, captioner and history status.
# Use this before/after upgrades to confirm no silent drift.

from fastapi import APIRouter, Depends
from ..core.settings import settings
from ..history.store import get_history_store
from ..vlm.gemini_captioner import get_captioner
import sys, importlib

router = APIRouter(tags=["health"])

def _ver(modname: str) -> str:
    try:
        m = importlib.import_module(modname)
        return getattr(m, "__version__", "unknown")
    except ImportError:
        return "not-installed"

@router.get("/healthz")
async def healthz(captioner=Depends(get_captioner), store=Depends(get_history_store)):
    cfg = getattr(captioner, "cfg", None)
    return {
        "status": "ok",
        "python": sys.version.split()[0],
        "versions": {
            "fastapi": _ver("fastapi"),
            "uvicorn": _ver("uvicorn"),
            "pydantic": _ver("pydantic"),
            "pydantic_settings": _ver("pydantic_settings"),
            "httpx": _ver("httpx"),
            "PIL": _ver("PIL"),
            "pymongo": _ver("pymongo"),
        },
        "config": {
            "max_upload_bytes": settings.max_upload_bytes,
            "accepted_types": settings.accepted_image_types,
            "history_backend": settings.history_backend,
            "auth_configured": bool(settings.firebase_api_key),
        },
        "captioner": {
            "name": getattr(captioner, "name", captioner.__class__.__name__),
            "model": getattr(cfg, "model", settings.gemini_model),
            "fallback_reason": getattr(captioner, "reason", None),
        },
        "history": await store.status(),
    }
