import logging
from typing import Any, Dict, Optional

import httpx

from core.config import settings
from core.hitoko_constants import (
    OPEN_SESSION_STATUS,
    SESSION_LIST_PATH,
    SHOP_LIST_PATH,
    api_headers,
)
from core.http_client import get_async_client

logger = logging.getLogger(__name__)


class HitokoApiError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class HitokoApiService:
    """Read-only access to the vendor's shop and session metadata."""

    def __init__(self, api_base: Optional[str] = None, auth_token: Optional[str] = None):
        self.api_base = api_base or settings.hitoko_api_base
        self.auth_token = auth_token or settings.hitoko_auth_token

    def _url(self, path: str) -> str:
        if not self.api_base or not self.auth_token:
            raise RuntimeError("Hitoko API base or auth token is not configured.")
        return f"{self.api_base.rstrip('/')}{path}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = self._url(path)
        try:
            client = get_async_client()
            resp = await client.request(
                method,
                url,
                headers=api_headers(self.auth_token),
                timeout=15.0,
                **kwargs,
            )
        except httpx.RequestError as exc:
            logger.exception("Failed to call Hitoko API", extra={"path": path})
            raise HitokoApiError(f"Hitoko API request failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.error(
                "Hitoko API call failed (%s): %s",
                resp.status_code,
                resp.text,
            )
            raise HitokoApiError(
                f"Hitoko API returned {resp.status_code}",
                status_code=resp.status_code,
            )
        return resp.json()

    async def get_shops(self) -> Dict[str, Any]:
        return await self._request("GET", SHOP_LIST_PATH)

    async def get_session_list(
        self,
        shop_id: str,
        page: int = 1,
        size: int = 30,
        marketplace_code: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {
            "page": page,
            "size": size,
            "marketplaceCode": marketplace_code or settings.marketplace_code,
            "sessionStatus": OPEN_SESSION_STATUS,
            "buyerNickName": "",
            "shopId": str(shop_id),
        }
        return await self._request("POST", SESSION_LIST_PATH, json=payload)

    async def get_primary_shop(self) -> Optional[Dict[str, Any]]:
        """Return the first shop on the account, or None when the list is empty."""
        shops = await self.get_shops()
        if shops.get("code") == 0 and shops.get("data"):
            return shops["data"][0]
        return None
