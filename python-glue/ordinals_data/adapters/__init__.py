"""Upstream adapters"""

from .base import UpstreamAdapter
from .ordinals import (
    OrdinalsAdapter,
    block_key,
    inscription_key,
    BLOCK_HEIGHT_KEY,
)

__all__ = [
    "UpstreamAdapter",
    "OrdinalsAdapter",
    "block_key",
    "inscription_key",
    "BLOCK_HEIGHT_KEY",
]
