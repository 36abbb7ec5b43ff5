"""
Purpose:
- Derive a handful of hashtags from a caption by keyword extraction (no model call).

Rules:
- lowercase, drop punctuation, split on whitespace
- skip words of length <= 2 and common stop words
- first MAX_TAGS unique words, in caption order
"""

from __future__ import annotations
import re
from typing import List

MAX_TAGS = 5

COMMON_WORDS = {
    "the", "and", "a", "an", "of", "in", "on", "for", "with", "to",
    "is", "are", "was", "were", "it", "this", "that",
}

def generate_hashtags(caption: str, max_tags: int = MAX_TAGS) -> List[str]:
    if not caption:
        return []
    words = re.sub(r"[^\w\s]", "", caption.lower()).split()
    seen: List[str] = []
    for w in words:
        if len(w) <= 2 or w in COMMON_WORDS or w in seen:
            continue
        seen.append(w)
        if len(seen) >= max_tags:
            break
    return [f"#{w}" for w in seen]
