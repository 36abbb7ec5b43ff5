"""
Purpose:
- FastAPI application factory and router mounts.
- Configures logging and exception handlers; closes outbound clients on shutdown.
- Uvicorn will serve this on settings.host:settings.port.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .core.logging import configure_logging
from .core.settings import settings
from .api.errors import register_exception_handlers
from .api.health import router as health_router
from .api.caption import router as caption_router
from .api.images import router as images_router
from .api.auth import router as auth_router
from .history.store import reset_history_store
from .vlm.gemini_captioner import reset_captioner

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("captionator starting (history=%s)", settings.history_backend)
    yield
    await reset_captioner()
    await reset_history_store()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Captionator API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(health_router)
    app.include_router(caption_router)
    app.include_router(images_router)
    app.include_router(auth_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
