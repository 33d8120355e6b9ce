"""Decoded block events. Operations form a closed set of tagged variants."""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ordinals.utils.satpoint import SatPoint


class BlockDirection(enum.Enum):
    APPLY = "apply"
    ROLLBACK = "rollback"


@dataclass(frozen=True)
class Operation:
    """Base class for all per-transaction inscription operations"""

    tx_id: str
    tx_index: int
    op_index: int
    inscription_id: str


@dataclass(frozen=True)
class RevealOperation(Operation):
    content_bytes: bytes
    content_type: str
    content_length: int
    fee: int
    output_value: Optional[int]
    inscriber_address: Optional[str]
    ordinal_number: int
    ordinal_block_height: int
    ordinal_offset: int
    satpoint: SatPoint
    number_hint: Optional[int] = None
    curse_type: Optional[str] = None

    @property
    def mime_type(self) -> str:
        return self.content_type.split(";")[0].strip()


@dataclass(frozen=True)
class TransferOperation(Operation):
    updated_address: Optional[str]
    satpoint_pre_transfer: SatPoint
    satpoint_post_transfer: SatPoint
    post_transfer_output_value: Optional[int] = None


@dataclass(frozen=True)
class RevealUndoOperation(Operation):
    pass


@dataclass(frozen=True)
class TransferUndoOperation(Operation):
    satpoint_post_transfer: Optional[SatPoint] = None


@dataclass
class BlockEvent:
    height: int
    block_hash: str
    direction: BlockDirection
    timestamp: datetime
    parent_hash: Optional[str] = None
    tx_count: int = 0
    operations: List[Operation] = field(default_factory=list)


@dataclass
class ChainhookPayload:
    apply: List[BlockEvent] = field(default_factory=list)
    rollback: List[BlockEvent] = field(default_factory=list)
