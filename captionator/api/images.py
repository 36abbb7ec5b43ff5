"""
Purpose:
- Save an image + caption to history and list the most recent ones.
- Response shapes match the browser client: {"message", "id"} on save, a bare list on read.
"""

import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.errors import PersistenceError
from ..history.schema import ImageSaved, NewImage
from ..history.store import get_history_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/images", tags=["images"])

@router.post("", response_model=ImageSaved)
async def save_image(payload: NewImage, store=Depends(get_history_store)):
    if not payload.image_data:
        return JSONResponse(status_code=400, content={"error": "Image data is required"})
    try:
        record_id = await store.save(payload)
    except PersistenceError:
        return JSONResponse(status_code=500, content={"error": "Failed to save image"})
    logger.info("saved history record %s", record_id)
    return ImageSaved(id=record_id)


@router.get("")
async def list_images(store=Depends(get_history_store)):
    """
    Newest first, capped at 20.
    """
    try:
        records = await store.list()
    except PersistenceError:
        return JSONResponse(status_code=500, content={"error": "Failed to fetch images"})
    return [r.model_dump(mode="json", by_alias=True) for r in records]
