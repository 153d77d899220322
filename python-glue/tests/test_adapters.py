"""Tests for upstream adapters"""

import base64

import httpx
import pytest

from ordinals_data.adapters import OrdinalsAdapter, block_key, inscription_key
from ordinals_data.bitcoin import BlockInfo
from ordinals_data.config import EndpointConfig
from ordinals_data.errors import InvalidRequestError, MalformedResponseError

from fixtures.upstream import BLOCK_HASH, INSCRIPTION_ID, block_payload


def _adapter(handler, **kwargs) -> OrdinalsAdapter:
    return OrdinalsAdapter(
        EndpointConfig(base_url="https://ordinals.test"),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestOrdinalsAdapter:
    """Test the Ordinals explorer adapter"""

    def test_adapter_name(self):
        assert OrdinalsAdapter().name == "ordinals"

    @pytest.mark.asyncio
    async def test_block_info(self):
        seen = []

        def handler(request):
            seen.append(request.url)
            return httpx.Response(200, json=block_payload(800000))

        adapter = _adapter(handler)
        info = await adapter.fetch(block_key(800000))
        await adapter.aclose()

        assert isinstance(info, BlockInfo)
        assert info.height == 800000
        assert info.hash == BLOCK_HASH
        assert info.transaction_count == 3721
        assert str(seen[0]) == "https://ordinals.test/r/blockinfo/800000"

    @pytest.mark.asyncio
    async def test_block_info_rpc_field_names(self):
        """Test bitcoind-style field names are accepted"""
        payload = {
            "height": 800001,
            "hash": BLOCK_HASH,
            "merkleroot": "ab" * 32,
            "time": 1689000600,
            "nTx": 12,
        }
        adapter = _adapter(lambda request: httpx.Response(200, json=payload))

        info = await adapter.fetch(block_key(800001))

        assert info.merkle_root == "ab" * 32
        assert info.timestamp == 1689000600
        assert info.transaction_count == 12

    @pytest.mark.asyncio
    async def test_malformed_block_payload(self):
        adapter = _adapter(lambda request: httpx.Response(200, json={"height": 1}))

        with pytest.raises(MalformedResponseError):
            await adapter.fetch(block_key(800000))

    @pytest.mark.asyncio
    async def test_http_errors_propagate(self):
        """Test status errors are left for the client to classify"""
        adapter = _adapter(lambda request: httpx.Response(503))

        with pytest.raises(httpx.HTTPStatusError):
            await adapter.fetch(block_key(800000))

    @pytest.mark.asyncio
    async def test_text_inscription(self):
        def handler(request):
            assert request.url.path == f"/content/{INSCRIPTION_ID}"
            return httpx.Response(200, text="hello ordinals",
                                  headers={"content-type": "text/plain;charset=utf-8"})

        content = await _adapter(handler).fetch(inscription_key(INSCRIPTION_ID))

        assert content.id == INSCRIPTION_ID
        assert content.content == "hello ordinals"
        assert content.encoding == "utf-8"
        assert content.content_length == len("hello ordinals")

    @pytest.mark.asyncio
    async def test_binary_inscription_is_base64(self):
        body = b"\x89PNG\r\n\x1a\n\x00\x01"
        adapter = _adapter(
            lambda request: httpx.Response(200, content=body, headers={"content-type": "image/png"})
        )

        content = await adapter.get_inscription_content(INSCRIPTION_ID)

        assert content.encoding == "base64"
        assert base64.b64decode(content.content) == body
        assert content.content_length == len(body)

    @pytest.mark.asyncio
    async def test_block_height(self):
        adapter = _adapter(lambda request: httpx.Response(200, text="850123\n"))
        assert await adapter.fetch("blockheight") == 850123

    @pytest.mark.asyncio
    async def test_invalid_block_height_payload(self):
        adapter = _adapter(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(MalformedResponseError):
            await adapter.get_block_height()

    @pytest.mark.asyncio
    async def test_bearer_token_sent(self):
        headers = []

        def handler(request):
            headers.append(request.headers.get("authorization"))
            return httpx.Response(200, text="1")

        await _adapter(handler, api_token="s3cret").get_block_height()
        assert headers == ["Bearer s3cret"]

    @pytest.mark.asyncio
    async def test_unsupported_keys(self):
        adapter = _adapter(lambda request: httpx.Response(500))

        with pytest.raises(InvalidRequestError):
            await adapter.fetch("block:abc")
        with pytest.raises(InvalidRequestError):
            await adapter.fetch("utxo:1")
