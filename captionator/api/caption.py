"""
Purpose:
- /caption       : caption an already-encoded data URL (browser did the encoding).
- /caption/upload: raw multipart upload; runs the full gate -> encode -> generate workflow
                   server-side and optionally saves the result to history.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ..core.errors import error_for
from ..history.store import get_history_store
from ..services.hashtags import generate_hashtags
from ..upload.workflow import CaptionOptions, CaptionWorkflow, CollectingObserver, Phase
from ..vlm.gemini_captioner import get_captioner
from ..vlm.schema import CaptionRequest, CaptionResponse, CaptionStyle

router = APIRouter(prefix="/api/v1/caption", tags=["caption"])

@router.post("", response_model=CaptionResponse, response_model_exclude_none=True)
async def caption(payload: CaptionRequest, captioner=Depends(get_captioner)):
    result = await captioner.generate_caption(payload)
    hashtags = generate_hashtags(result.caption) if payload.include_hashtags else None
    return CaptionResponse(caption=result.caption, hashtags=hashtags)


@router.post("/upload")
async def caption_upload(
    image: UploadFile = File(...),
    style: Optional[CaptionStyle] = Form(default=None),
    language: Optional[str] = Form(default=None),
    context: Optional[str] = Form(default=None),
    include_hashtags: bool = Form(default=False, alias="includeHashtags"),
    include_emoji: Optional[bool] = Form(default=None, alias="includeEmoji"),
    save: bool = Form(default=False),
    captioner=Depends(get_captioner),
    history=Depends(get_history_store),
):
    observer = CollectingObserver()
    wf = CaptionWorkflow(captioner, observer=observer, history=history if save else None)

    wf.select_file(image)
    state = await wf.settle()
    if state.phase is not Phase.FAILED:
        wf.generate(CaptionOptions(
            style=style,
            language=language,
            context=context,
            include_hashtags=include_hashtags,
            include_emoji=include_emoji,
        ))
        state = await wf.settle()

    if state.phase is Phase.FAILED:
        raise error_for(state.error_kind, state.error)

    return {
        "ok": True,
        "phase": state.phase.value,
        "caption": state.caption,
        "hashtags": generate_hashtags(state.caption) if include_hashtags else [],
        "imageData": state.preview,
        "id": wf.saved_id,
        "filename": image.filename,
        "notifications": [
            {"level": n.level, "title": n.title, "message": n.message}
            for n in observer.notifications
        ],
    }
