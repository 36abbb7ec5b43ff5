"""
Purpose:
- Pydantic models for the image history endpoint (save body, saved ack, listed record).
- Wire names match the browser client: imageData / createdAt.
"""

from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_STYLE = "default"

class NewImage(BaseModel):
    """POST /api/images body. imageData is checked by the route so the error matches the old API."""
    model_config = ConfigDict(populate_by_name=True)

    image_data: Optional[str] = Field(None, alias="imageData")
    caption: Optional[str] = None
    style: Optional[str] = None
    context: Optional[str] = None

    def to_document(self, created_at: datetime) -> dict:
        # empty strings collapse to the same defaults as missing fields
        return {
            "imageData": self.image_data,
            "caption": self.caption or None,
            "style": self.style or DEFAULT_STYLE,
            "context": self.context or None,
            "createdAt": created_at,
        }


class ImageSaved(BaseModel):
    message: str = "Image saved"
    id: str


class HistoryRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    image_data: str = Field(..., alias="imageData")
    caption: Optional[str] = None
    style: str = DEFAULT_STYLE
    context: Optional[str] = None
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_document(cls, doc: dict) -> "HistoryRecord":
        return cls(
            id=str(doc.get("_id", doc.get("id"))),
            image_data=doc["imageData"],
            caption=doc.get("caption"),
            style=doc.get("style") or DEFAULT_STYLE,
            context=doc.get("context"),
            created_at=doc["createdAt"],
        )
