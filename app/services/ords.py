import json
import logging
from typing import Dict, Any, List, Optional

import httpx

from app.config import settings
from app.services.errors import UpstreamError

logger = logging.getLogger(__name__)


def _clean_params(params: Optional[Dict[str, Any]]) -> Dict[str, str]:
    # ORDS handlers treat an absent parameter as NULL; empty strings are sent only when explicit
    cleaned = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        cleaned[key] = str(value)
    return cleaned


class OrdsClient:
    """
    Thin async client for the ORDS REST handlers.

    Every handler is a GET with ``p_*`` query parameters. Collection handlers
    return either a bare JSON array or ORDS' ``{"items": [...]}`` envelope;
    write handlers return a small JSON object (or nothing at all).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.ORDS_BASE_URL).rstrip("/")
        self.token = token
        self.timeout = timeout if timeout is not None else settings.ORDS_TIMEOUT
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.strip('/')}/"

    async def get_text(self, path: str, params: Optional[Dict[str, Any]] = None) -> str:
        """
        Issue a GET against an ORDS handler and return the trimmed body.

        Raises:
            UpstreamError: On connection errors or a non-2xx status
        """
        url = self.url_for(path)
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.get(
                    url,
                    params=_clean_params(params),
                    headers=self._headers(),
                )
        except httpx.RequestError as e:
            logger.error(f"ORDS request to {path} failed: {str(e)}")
            raise UpstreamError(f"Backend connection error: {str(e)}")

        if response.status_code < 200 or response.status_code >= 300:
            logger.error(f"ORDS {path} returned HTTP {response.status_code}")
            raise UpstreamError(f"HTTP {response.status_code}", status_code=response.status_code)

        logger.debug(f"ORDS {path} -> HTTP {response.status_code}")
        return response.text.strip()

    async def get_array(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """GET a collection handler; unparseable or empty bodies become an empty list."""
        text = await self.get_text(path, params)
        if not text:
            return []
        try:
            data = json.loads(text)
        except ValueError:
            logger.warning(f"ORDS {path} returned a non-JSON body")
            return []
        if isinstance(data, list):
            return data
        if isinstance(data, dict) and isinstance(data.get("items"), list):
            return data["items"]
        return []

    async def get_object(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """GET a write handler; returns the decoded object or None."""
        text = await self.get_text(path, params)
        if not text:
            return None
        try:
            data = json.loads(text)
        except ValueError:
            logger.warning(f"ORDS {path} returned a non-JSON body")
            return None
        return data if isinstance(data, dict) else None
