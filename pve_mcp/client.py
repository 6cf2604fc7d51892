"""Async client for the Proxmox VE ``/api2/json`` REST API."""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from . import __version__
from .config import ProxmoxConfig

logger = logging.getLogger(__name__)


class ProxmoxVEError(Exception):
    """Base class for Proxmox VE related errors"""
    pass


class ProxmoxAPIError(ProxmoxVEError):
    """Proxmox answered with a non-success HTTP status"""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Failed to connect to Proxmox: Proxmox API error: {status_code} - {body}")


class ProxmoxEmptyResponseError(ProxmoxVEError):
    """Proxmox answered with an empty body"""

    def __init__(self):
        super().__init__("Failed to connect to Proxmox: Empty response from Proxmox API")


class ProxmoxParseError(ProxmoxVEError):
    """Response body is not valid JSON"""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Failed to parse Proxmox API response: {detail}")


class ProxmoxConnectionError(ProxmoxVEError):
    """DNS, TCP, TLS or timeout failure before a response arrived"""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Failed to connect to Proxmox: {detail}")


class ProxmoxClient:
    """Proxmox VE API client using API token authentication.

    A single ``httpx.AsyncClient`` is created per instance and reused for every
    call. Certificate verification is disabled on that client only, since
    Proxmox hosts usually run with self-signed certificates.
    """

    def __init__(self, config: ProxmoxConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.base_url = config.base_url
        self.session = httpx.AsyncClient(
            verify=False,
            timeout=httpx.Timeout(config.timeout),
            transport=transport,
            headers={
                'User-Agent': f'pve-mcp/{__version__}',
                'Accept': 'application/json',
                'Content-Type': 'application/json',
                'Authorization': config.authorization,
            }
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        await self.session.aclose()

    async def call(self, path: str, method: str = "GET", body: Optional[Dict[str, Any]] = None) -> Any:
        """Send a request and return the ``data`` member of the JSON response.

        Raises:
            ProxmoxAPIError: non-2xx status
            ProxmoxEmptyResponseError: blank response body
            ProxmoxParseError: body is not JSON
            ProxmoxConnectionError: transport level failure
        """
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {path}")

        try:
            if body is not None:
                response = await self.session.request(method, url, json=body)
            else:
                response = await self.session.request(method, url)
        except httpx.RequestError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ProxmoxConnectionError(str(e) or e.__class__.__name__) from e

        if not response.is_success:
            logger.warning(f"{method} {path} returned HTTP {response.status_code}")
            raise ProxmoxAPIError(response.status_code, response.text)

        text = response.text
        if not text.strip():
            raise ProxmoxEmptyResponseError()

        try:
            payload = json.loads(text)
        except ValueError as e:
            raise ProxmoxParseError(str(e)) from e

        if isinstance(payload, dict):
            return payload.get('data')
        return None

    async def get(self, path: str) -> Any:
        """Send GET request"""
        return await self.call(path)

    async def post(self, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        """Send POST request"""
        return await self.call(path, method="POST", body=body)
