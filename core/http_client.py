from typing import Optional

import httpx

from core.config import settings

_async_client: Optional[httpx.AsyncClient] = None

def init_async_client() -> None:
    global _async_client
    if _async_client is None:
        timeout = settings.webhook_timeout_seconds
        _async_client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=5.0),
            headers={"User-Agent": settings.webhook_user_agent},
        )

def get_async_client() -> httpx.AsyncClient:
    if _async_client is None:
        init_async_client()
    return _async_client

async def close_async_client() -> None:
    global _async_client
    if _async_client is not None:
        await _async_client.aclose()
        _async_client = None
