"""
Purpose:
- Turn the CaptionatorError hierarchy into JSON responses with the right status code.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.errors import CaptionatorError, ErrorKind

STATUS_BY_KIND = {
    ErrorKind.UNSUPPORTED_TYPE: 415,
    ErrorKind.TOO_LARGE: 413,
    ErrorKind.READ_ERROR: 400,
    ErrorKind.GENERATION_ERROR: 502,
    ErrorKind.INVALID_RESPONSE_SHAPE: 502,
    ErrorKind.INVALID_OPTIONS: 422,
    ErrorKind.PERSISTENCE_ERROR: 500,
    ErrorKind.AUTH_ERROR: 401,
}

def error_body(kind: ErrorKind, message: str) -> dict:
    return {"ok": False, "error": kind.value, "message": message}


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(CaptionatorError)
    async def captionator_error_handler(request: Request, exc: CaptionatorError):
        return JSONResponse(
            status_code=STATUS_BY_KIND.get(exc.kind, 500),
            content=error_body(exc.kind, exc.message),
        )
