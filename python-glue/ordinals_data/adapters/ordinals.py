"""Ordinals explorer adapter"""

import base64
from typing import Any, Optional

import httpx

from ..bitcoin.models import BlockInfo, InscriptionContent
from ..bitcoin.validation import format_api_url, validate_block_info
from ..config import EndpointConfig
from ..errors import InvalidRequestError, MalformedResponseError
from .base import UpstreamAdapter

BLOCK_PREFIX = "block:"
INSCRIPTION_PREFIX = "inscription:"
BLOCK_HEIGHT_KEY = "blockheight"

TEXT_CONTENT_TYPES = ("text/", "application/json", "application/javascript", "image/svg+xml")


def block_key(height: int) -> str:
    return f"{BLOCK_PREFIX}{height}"


def inscription_key(inscription_id: str) -> str:
    return f"{INSCRIPTION_PREFIX}{inscription_id}"


class OrdinalsAdapter(UpstreamAdapter):
    """Adapter for the Ordinals explorer HTTP API"""

    def __init__(
        self,
        endpoints: Optional[EndpointConfig] = None,
        api_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoints = endpoints or EndpointConfig()
        self.api_token = api_token
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def name(self) -> str:
        return "ordinals"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.api_token:
                headers["Authorization"] = f"Bearer {self.api_token}"
            self._client = httpx.AsyncClient(
                base_url=self.endpoints.base_url,
                headers=headers,
                timeout=self.endpoints.timeout,
                transport=self._transport,
            )
        return self._client

    async def is_available(self) -> bool:
        return bool(self.endpoints.base_url)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, key: str) -> Any:
        if key == BLOCK_HEIGHT_KEY:
            return await self.get_block_height()
        if key.startswith(BLOCK_PREFIX):
            raw = key[len(BLOCK_PREFIX):]
            if not raw.isdigit():
                raise InvalidRequestError(f"Invalid block key: {key!r}", key=key)
            return await self.get_block_info(int(raw))
        if key.startswith(INSCRIPTION_PREFIX):
            return await self.get_inscription_content(key[len(INSCRIPTION_PREFIX):])
        raise InvalidRequestError(f"Unsupported key: {key!r}", key=key)

    async def get_block_info(self, height: int) -> BlockInfo:
        client = self._get_client()
        url = format_api_url(self.endpoints.block_info, {"blockNumber": str(height)})

        response = await client.get(url)
        response.raise_for_status()
        return validate_block_info(response.json())

    async def get_inscription_content(self, inscription_id: str) -> InscriptionContent:
        client = self._get_client()
        url = format_api_url(self.endpoints.inscription_content, {"inscriptionId": inscription_id})

        response = await client.get(url, headers={"Accept": "*/*"})
        response.raise_for_status()

        content_type = response.headers.get("content-type", "application/octet-stream")
        body = response.content
        if content_type.startswith(TEXT_CONTENT_TYPES):
            content, encoding = response.text, "utf-8"
        else:
            content, encoding = base64.b64encode(body).decode("ascii"), "base64"

        return InscriptionContent(
            id=inscription_id,
            content_type=content_type,
            content=content,
            content_length=len(body),
            encoding=encoding,
        )

    async def get_block_height(self) -> int:
        client = self._get_client()

        response = await client.get(self.endpoints.block_height)
        response.raise_for_status()
        text = response.text.strip()
        if not text.isdigit():
            raise MalformedResponseError(f"Invalid block height payload: {text[:32]!r}")
        return int(text)
