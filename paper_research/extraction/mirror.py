"""Readability mirror: plain-text fallback for PDFs and thin HTML pages."""

import httpx
import logging
from typing import Optional

from ..cancel import CancelToken
from ..config import Settings, get_settings
from ..exceptions import OperationCancelledError
from ..net.http import http_get
from ..text.normalize import clip_text, normalize_whitespace

logger = logging.getLogger(__name__)

PROVIDER = "readability-mirror"


async def fetch_readable_text(client: httpx.AsyncClient, url: str,
                              cancel: Optional[CancelToken] = None,
                              settings: Optional[Settings] = None) -> Optional[str]:
    """Fetch extracted text for ``url`` through the mirror.

    Any failure yields ``None``; only cancellation propagates.
    """
    s = settings or get_settings()
    mirror_url = f"{s.READABILITY_MIRROR_BASE}{url}"
    try:
        r = await http_get(client, mirror_url, provider=PROVIDER, cancel=cancel, settings=s)
    except OperationCancelledError:
        raise
    except Exception as e:
        logger.info(f"Readability mirror failed for {url}: {e}")
        return None

    if not r.is_success:
        logger.info(f"Readability mirror returned {r.status_code} for {url}")
        return None

    text = normalize_whitespace(r.text)
    if not text:
        return None
    return clip_text(text, s.MAX_FULL_TEXT_CHARS)
