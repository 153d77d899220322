"""Block and inscription data models"""

from datetime import datetime, timezone
from typing import Generic, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

T = TypeVar("T")


class BlockInfo(BaseModel):
    """Block summary as served by the Ordinals explorer

    Accepts both the explorer's snake_case names (``merkle_root``,
    ``previous_blockhash``, ``transaction_count``) and the bitcoind RPC
    spellings (``merkleroot``, ``previousblockhash``, ``nTx``).
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    height: int = Field(..., ge=0)
    hash: str = Field(..., pattern=r"^[0-9a-fA-F]{64}$")
    previous_blockhash: Optional[str] = Field(
        None, validation_alias=AliasChoices("previous_blockhash", "previousblockhash")
    )
    merkle_root: str = Field(..., validation_alias=AliasChoices("merkle_root", "merkleroot"))
    timestamp: int = Field(..., validation_alias=AliasChoices("timestamp", "time"))
    nonce: Optional[int] = None
    difficulty: Optional[float] = None
    transaction_count: Optional[int] = Field(
        None, validation_alias=AliasChoices("transaction_count", "nTx", "n_tx")
    )
    size: Optional[int] = Field(None, validation_alias=AliasChoices("total_size", "size"))
    weight: Optional[int] = Field(None, validation_alias=AliasChoices("total_weight", "weight"))


class InscriptionContent(BaseModel):
    """Raw inscription content"""

    model_config = ConfigDict(frozen=True)

    id: str
    content_type: str
    content: str  # text, or base64 when encoding == "base64"
    content_length: int = Field(..., ge=0)
    encoding: str = "utf-8"


class ApiResponse(BaseModel, Generic[T]):
    """Service response wrapper"""

    data: T
    source: str
    from_cache: bool
    stale: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: float = 0.0
