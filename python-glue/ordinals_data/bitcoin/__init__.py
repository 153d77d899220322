"""Bitcoin block and inscription domain types"""

from .models import BlockInfo, InscriptionContent, ApiResponse
from .validation import (
    validate_block_number,
    validate_inscription_id,
    validate_block_info,
    format_api_url,
)

__all__ = [
    "BlockInfo",
    "InscriptionContent",
    "ApiResponse",
    "validate_block_number",
    "validate_inscription_id",
    "validate_block_info",
    "format_api_url",
]
