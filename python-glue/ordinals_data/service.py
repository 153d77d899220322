"""Bitcoin block and inscription service"""

import random
import time
from typing import Any, Dict, Iterable, List, Optional, Union

from .adapters import BLOCK_HEIGHT_KEY, OrdinalsAdapter, UpstreamAdapter, block_key, inscription_key
from .bitcoin import (
    ApiResponse,
    BlockInfo,
    InscriptionContent,
    validate_block_number,
    validate_inscription_id,
)
from .client import DataClient, FetchRequest, FetchResult
from .config import Config, load_config
from .errors import DataClientError
from .observability import MetricsCollector, get_logger

logger = get_logger(__name__)


class BitcoinService:
    """
    Block and inscription lookups backed by a resilient DataClient

    One instance should be shared for the process lifetime so the cache,
    circuit breaker and rate limiter see all traffic.
    """

    def __init__(
        self,
        client: DataClient,
        config: Optional[Config] = None,
    ):
        self.client = client
        self.config = config or Config()
        self._tip: Optional[int] = None
        logger.info(
            "BitcoinService initialized",
            extra={"extra": {
                "upstream": client.adapter.name,
                "network": self.config.network,
                "environment": self.config.api.environment,
            }},
        )

    @classmethod
    def from_config(
        cls,
        config: Optional[Config] = None,
        *,
        adapter: Optional[UpstreamAdapter] = None,
        metrics: Optional[MetricsCollector] = None,
        rng: Optional[random.Random] = None,
    ) -> "BitcoinService":
        """Build the service with an OrdinalsAdapter for the active environment"""
        config = config or load_config()
        if adapter is None:
            adapter = OrdinalsAdapter(config.api.active(), api_token=config.api.api_token)
        client = DataClient.from_config(
            config,
            adapter,
            metrics=metrics or MetricsCollector(),
            rng=rng,
        )
        return cls(client, config)

    def _response(self, result: FetchResult, started: float) -> ApiResponse:
        return ApiResponse(
            data=result.value,
            source=result.source.value,
            from_cache=result.from_cache,
            stale=result.stale,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )

    def _check_height(self, height: int) -> int:
        return validate_block_number(
            height,
            min_height=self.config.validation.min_block_height,
            tip=self._tip,
            max_offset=self.config.validation.max_block_offset,
        )

    async def get_block_info(
        self, height: int, force_refresh: bool = False
    ) -> ApiResponse[BlockInfo]:
        """Fetch block information by height"""
        self._check_height(height)
        started = time.perf_counter()
        result = await self.client.fetch(
            block_key(height),
            force_refresh=force_refresh,
            ttl=self.config.cache.block_ttl,
        )
        return self._response(result, started)

    async def get_blocks(
        self, heights: Iterable[int]
    ) -> List[Union[ApiResponse[BlockInfo], DataClientError]]:
        """Fetch several blocks concurrently; failures are returned in place"""
        heights = list(heights)
        for height in heights:
            self._check_height(height)

        started = time.perf_counter()
        results = await self.client.fetch_many(
            FetchRequest(block_key(h), ttl=self.config.cache.block_ttl) for h in heights
        )
        return [
            r if isinstance(r, DataClientError) else self._response(r, started)
            for r in results
        ]

    async def get_inscription_content(
        self, inscription_id: str, force_refresh: bool = False
    ) -> ApiResponse[InscriptionContent]:
        """Fetch inscription content by ID"""
        validate_inscription_id(inscription_id)
        started = time.perf_counter()
        result = await self.client.fetch(
            inscription_key(inscription_id),
            force_refresh=force_refresh,
            ttl=self.config.cache.inscription_ttl,
        )
        return self._response(result, started)

    async def get_current_block_height(self) -> int:
        """Current chain tip; remembered to bound later block lookups"""
        result = await self.client.fetch(
            BLOCK_HEIGHT_KEY, ttl=self.config.cache.block_height_ttl
        )
        self._tip = int(result.value)
        return self._tip

    def clear_cache(self) -> None:
        self.client.clear_cache()
        logger.info("Bitcoin cache cleared")

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.client.get_cache_stats()

    def get_circuit_state(self) -> Dict[str, Any]:
        return self.client.get_circuit_state()

    def get_metrics(self) -> Dict[str, Any]:
        """Service performance summary"""
        stats = self.client.stats
        cache_stats = self.client.cache.stats()
        return {
            "total_requests": stats.total_requests,
            "successful_requests": stats.successful_requests,
            "failed_requests": stats.failed_requests,
            "average_response_time": round(stats.average_response_time, 2),
            "cache_hit_rate": round(cache_stats.hit_rate, 2),
            "total_retries": stats.total_retries,
            "rate_limit_violations": stats.rate_limit_violations,
            "coalesced_requests": stats.coalesced_requests,
        }

    def health(self) -> Dict[str, Any]:
        """Health summary for probes"""
        circuit = self.get_circuit_state()
        return {
            "status": "healthy" if circuit["status"] == "closed" else "degraded",
            "circuit": circuit,
            "cache": self.get_cache_stats(),
        }

    async def aclose(self) -> None:
        await self.client.aclose()
        logger.info("BitcoinService disposed")

