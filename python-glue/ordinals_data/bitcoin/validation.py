"""Identifier and payload validation"""

import re
from typing import Any, Dict, Optional
from urllib.parse import quote

from pydantic import ValidationError as PydanticValidationError

from ..errors import InvalidRequestError, MalformedResponseError
from ..observability import get_logger
from .models import BlockInfo

logger = get_logger(__name__)

# <txid>i<index>: 64 hex characters, "i", decimal index
INSCRIPTION_ID_PATTERN = re.compile(r"^[a-fA-F0-9]{64}i\d+$")


def validate_block_number(
    block_number: int,
    min_height: int = 767430,
    tip: Optional[int] = None,
    max_offset: int = 10,
) -> int:
    """
    Validate a block height

    Args:
        block_number: Requested height
        min_height: Lowest height accepted
        tip: Current chain tip, when known
        max_offset: How far past the tip a request may go

    Returns:
        The block number

    Raises:
        InvalidRequestError: If the height is out of range
    """
    if isinstance(block_number, bool) or not isinstance(block_number, int):
        raise InvalidRequestError(f"Block number must be an integer, got {block_number!r}")

    if block_number < min_height:
        logger.warning(
            "Block number below minimum height",
            extra={"extra": {"block_number": block_number, "min_height": min_height}},
        )
        raise InvalidRequestError(
            f"Block {block_number} is below minimum height {min_height}"
        )

    if tip is not None and block_number > tip + max_offset:
        logger.warning(
            "Block number beyond chain tip",
            extra={"extra": {"block_number": block_number, "tip": tip, "max_offset": max_offset}},
        )
        raise InvalidRequestError(
            f"Block {block_number} is more than {max_offset} blocks ahead of tip {tip}"
        )

    return block_number


def validate_inscription_id(inscription_id: str) -> str:
    """Validate inscription ID format"""
    if not isinstance(inscription_id, str) or not INSCRIPTION_ID_PATTERN.match(inscription_id):
        logger.warning("Invalid inscription ID format", extra={"extra": {"inscription_id": inscription_id}})
        raise InvalidRequestError(f"Invalid inscription ID: {inscription_id!r}")
    return inscription_id


def validate_block_info(data: Any) -> BlockInfo:
    """Parse an upstream block payload, raising MalformedResponseError on bad data"""
    try:
        return BlockInfo.model_validate(data)
    except PydanticValidationError as e:
        logger.error(
            "Invalid block data",
            extra={"extra": {"errors": e.error_count()}},
        )
        raise MalformedResponseError(f"Invalid block data: {e.errors()[0]['msg']}") from e


def format_api_url(endpoint: str, params: Dict[str, str]) -> str:
    """Substitute ``{name}`` placeholders with URL-encoded values"""
    url = endpoint
    for key, value in params.items():
        url = url.replace(f"{{{key}}}", quote(str(value), safe=""))
    return url
