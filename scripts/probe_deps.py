"""
Purpose:
- Sanity-check critical library versions after upgrades.
- Import the exact modules we use and print versions so we can spot drift immediately.
"""

import sys
import fastapi
import uvicorn
import httpx
import PIL
import pymongo
import pydantic
from pydantic_settings import BaseSettings

from captionator.core.settings import settings
from captionator.vlm.gemini_captioner import get_captioner

print("python", sys.version)
print("fastapi", fastapi.__version__)
print("uvicorn", uvicorn.__version__)
print("httpx", httpx.__version__)
print("pillow", PIL.__version__)
print("pymongo", pymongo.__version__)
print("pydantic", pydantic.VERSION)
print("pydantic-settings", BaseSettings.__module__.split(".")[0])  # presence check
# which captioner would serve requests with the current environment
cap = get_captioner()
print("captioner", cap.name, getattr(cap, "reason", None) or settings.gemini_model)
print("history_backend", settings.history_backend)
print("OK")
