from __future__ import annotations

import re
from urllib.parse import urlparse


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except ValueError:
        return False


def truncate(text: str, max_length: int = 500) -> str:
    """Trim to max_length at a word boundary, marking the cut with an ellipsis."""
    if not text or len(text) <= max_length:
        return text
    cut = re.sub(r"\s+\S*$", "", text[:max_length])
    return (cut or text[:max_length]) + "…"

