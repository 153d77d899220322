"""Tests for the Bitcoin block and inscription service"""

import pytest

from ordinals_data.bitcoin import BlockInfo
from ordinals_data.errors import FatalError, InvalidRequestError, RetryableError

from fixtures.upstream import INSCRIPTION_ID, http_error


class TestBlockLookups:
    """Test block lookups"""

    @pytest.mark.asyncio
    async def test_get_block_info(self, service, block_upstream):
        first = await service.get_block_info(800000)
        second = await service.get_block_info(800000)

        assert isinstance(first.data, BlockInfo)
        assert first.data.height == 800000
        assert first.source == "network"
        assert first.from_cache is False
        assert second.source == "cache"
        assert second.from_cache is True
        assert block_upstream.calls == ["block:800000"]

    @pytest.mark.asyncio
    async def test_force_refresh(self, service, block_upstream):
        await service.get_block_info(800000)
        refreshed = await service.get_block_info(800000, force_refresh=True)

        assert refreshed.source == "network"
        assert len(block_upstream.calls) == 2

    @pytest.mark.asyncio
    async def test_invalid_height_makes_no_call(self, service, block_upstream):
        with pytest.raises(InvalidRequestError):
            await service.get_block_info(100)
        assert block_upstream.calls == []

    @pytest.mark.asyncio
    async def test_height_bounded_by_known_tip(self, service):
        """Test requests far past the chain tip are refused once it is known"""
        assert await service.get_current_block_height() == 850000

        await service.get_block_info(850010)
        with pytest.raises(InvalidRequestError):
            await service.get_block_info(850011)

    @pytest.mark.asyncio
    async def test_get_blocks(self, service, block_upstream):
        block_upstream.enqueue("block:800001", http_error(400))

        results = await service.get_blocks([800000, 800001, 800002])

        assert results[0].data.height == 800000
        assert isinstance(results[1], FatalError)
        assert results[2].data.height == 800002

    @pytest.mark.asyncio
    async def test_get_blocks_validates_first(self, service, block_upstream):
        with pytest.raises(InvalidRequestError):
            await service.get_blocks([800000, 5])
        assert block_upstream.calls == []


class TestInscriptionLookups:
    """Test inscription lookups"""

    @pytest.mark.asyncio
    async def test_get_inscription_content(self, service, block_upstream):
        response = await service.get_inscription_content(INSCRIPTION_ID)

        assert response.data.id == INSCRIPTION_ID
        assert response.data.content == "hello ordinals"
        assert block_upstream.calls == [f"inscription:{INSCRIPTION_ID}"]

    @pytest.mark.asyncio
    async def test_invalid_inscription_id(self, service, block_upstream):
        with pytest.raises(InvalidRequestError):
            await service.get_inscription_content("not-an-id")
        assert block_upstream.calls == []


class TestServiceIntrospection:
    """Test stats, metrics and health"""

    @pytest.mark.asyncio
    async def test_get_metrics(self, service):
        await service.get_block_info(800000)
        await service.get_block_info(800000)

        metrics = service.get_metrics()
        assert metrics["total_requests"] == 1
        assert metrics["successful_requests"] == 1
        assert metrics["failed_requests"] == 0
        assert metrics["cache_hit_rate"] == 50.0
        assert metrics["total_retries"] == 0
        assert set(metrics) >= {"average_response_time", "rate_limit_violations", "coalesced_requests"}

    @pytest.mark.asyncio
    async def test_clear_cache(self, service):
        await service.get_block_info(800000)
        service.clear_cache()

        assert service.get_cache_stats()["size"] == 0

    @pytest.mark.asyncio
    async def test_health_degrades_when_circuit_opens(self, service, block_upstream):
        assert service.health()["status"] == "healthy"

        block_upstream.default = http_error(503)
        for height in (800000, 800001, 800002):
            with pytest.raises(RetryableError):
                await service.get_block_info(height)

        health = service.health()
        assert health["status"] == "degraded"
        assert health["circuit"]["status"] == "open"
        assert service.get_circuit_state()["consecutive_failures"] == 3

    @pytest.mark.asyncio
    async def test_aclose(self, service, block_upstream):
        await service.aclose()
        assert block_upstream.closed is True
