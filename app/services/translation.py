from __future__ import annotations

import logging
from typing import Any, Optional

import aiohttp

from app.config import Settings, get_settings
from app.errors import InvalidInput, ProviderError
from app.models import Translation
from app.services.http import provider_call, read_json, request_timeout

logger = logging.getLogger(__name__)

PROVIDER = "Google Translate"


def join_segments(data: Any) -> str:
    """Concatenate translated segments from the nested-array response.

    Shape: [[["Xin chào", "Hello", ...], ["thế giới", " world", ...]], None, "en", ...]
    """
    if not isinstance(data, list) or not data or not isinstance(data[0], list):
        raise ProviderError(f"{PROVIDER} returned an unexpected payload", provider=PROVIDER)
    return "".join(
        str(segment[0])
        for segment in data[0]
        if isinstance(segment, list) and segment and segment[0] is not None
    )


async def translate_text(
    session: aiohttp.ClientSession,
    text: str,
    source_lang: str = "en",
    target_lang: str = "vi",
    *,
    settings: Optional[Settings] = None,
) -> Translation:
    settings = settings or get_settings()
    if not text or not text.strip():
        raise InvalidInput("Text to translate must not be empty")

    params = {"client": "gtx", "sl": source_lang, "tl": target_lang, "dt": "t", "q": text}
    async with provider_call(PROVIDER):
        async with session.get(
            str(settings.translate_base_url),
            params=params,
            headers={"User-Agent": settings.user_agent},
            timeout=request_timeout(settings.http_timeout_s),
        ) as resp:
            data = await read_json(resp, PROVIDER)

    translated = join_segments(data)
    logger.debug("Translated %d chars %s->%s", len(text), source_lang, target_lang)
    return Translation(text=text, translated_text=translated, source_lang=source_lang, target_lang=target_lang)
