"""Base adapter interface for upstream data sources"""

from abc import ABC, abstractmethod
from typing import Any


class UpstreamAdapter(ABC):
    """Base interface for all upstream adapters

    An adapter performs exactly one remote call per ``fetch`` and lets
    failures propagate; retries, caching and breaking are layered on top
    by the data client.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the upstream (one circuit breaker per name)"""
        pass

    @abstractmethod
    async def fetch(self, key: str) -> Any:
        """
        Fetch the resource identified by ``key``

        Args:
            key: Resource key understood by this adapter

        Returns:
            Parsed resource; never None
        """
        pass

    async def is_available(self) -> bool:
        """Check if the upstream is configured"""
        return True

    async def aclose(self) -> None:
        """Release transport resources"""
        return None
