from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import aiohttp

from app.errors import ProviderError, ProviderOverloaded

logger = logging.getLogger(__name__)


def check_status(resp: aiohttp.ClientResponse, provider: str) -> None:
    """Map an upstream HTTP status onto the pipeline's provider errors."""
    status = resp.status
    if status == 429 or status >= 500:
        raise ProviderOverloaded(f"{provider} unavailable: HTTP {status}", provider=provider, status=status)
    if status >= 400:
        raise ProviderError(f"{provider} error: HTTP {status}", provider=provider, status=status)


@asynccontextmanager
async def provider_call(provider: str) -> AsyncIterator[None]:
    """Wrap transport failures (connection errors, timeouts, bad JSON) as ProviderError.

    A single attempt only: callers decide whether the user retries.
    """
    try:
        yield
    except ProviderError:
        raise
    except asyncio.TimeoutError as e:
        logger.warning("%s request timed out", provider)
        raise ProviderError(f"{provider} timed out", provider=provider) from e
    except aiohttp.ClientError as e:
        logger.warning("%s request failed: %s", provider, e)
        raise ProviderError(f"{provider} request failed: {e}", provider=provider) from e
    except ValueError as e:
        # json.JSONDecodeError
        raise ProviderError(f"{provider} returned an unreadable response", provider=provider) from e


def request_timeout(seconds: float) -> aiohttp.ClientTimeout:
    return aiohttp.ClientTimeout(total=seconds)


async def read_json(resp: aiohttp.ClientResponse, provider: str) -> Any:
    check_status(resp, provider)
    return await resp.json(content_type=None)
