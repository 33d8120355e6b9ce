from pydantic import BaseModel, Field
from typing import Dict, List, Optional


class OrmConfig(BaseModel):
    class Config:
        from_attributes = True


class InscriptionResponse(OrmConfig):
    id: str = Field(description="Inscription ID (<genesis tx_id>i<index>)")
    number: int = Field(description="Inscription number; negative for cursed inscriptions")
    address: Optional[str] = Field(None, description="Current owner address")
    genesis_address: Optional[str] = Field(None, description="Address that received the inscription at reveal")
    genesis_block_height: int = Field(description="Block height of the reveal")
    genesis_block_hash: str = Field(description="Block hash of the reveal")
    genesis_tx_id: str = Field(description="Reveal transaction ID")
    genesis_fee: str = Field(description="Reveal fee in sats")
    genesis_timestamp: str = Field(description="Reveal block timestamp (ISO 8601 string)")
    tx_id: Optional[str] = Field(None, description="Transaction of the current location")
    location: Optional[str] = Field(None, description="Current satpoint (<tx_id>:<vout>:<offset>)")
    output: Optional[str] = Field(None, description="Current output (<tx_id>:<vout>)")
    value: Optional[str] = Field(None, description="Value of the current output in sats")
    offset: Optional[str] = Field(None, description="Offset of the sat within the current output")
    sat_ordinal: str = Field(description="Ordinal number of the inscribed sat")
    sat_rarity: str = Field(description="Rarity of the inscribed sat")
    sat_coinbase_height: int = Field(description="Block whose coinbase created the inscribed sat")
    mime_type: str = Field(description="Content type without parameters")
    content_type: str = Field(description="Content type as inscribed")
    content_length: int = Field(description="Content length in bytes")
    timestamp: Optional[str] = Field(None, description="Timestamp of the current location (ISO 8601 string)")
    curse_type: Optional[str] = Field(None, description="Curse type; null for blessed inscriptions")


class LocationResponse(OrmConfig):
    block_height: int = Field(description="Block height")
    block_hash: str = Field(description="Block hash")
    address: Optional[str] = Field(None, description="Owner address at this location")
    tx_id: str = Field(description="Transaction that moved the inscription here")
    location: Optional[str] = Field(None, description="Satpoint (<tx_id>:<vout>:<offset>)")
    output: str = Field(description="Output (<tx_id>:<vout>)")
    value: Optional[str] = Field(None, description="Output value in sats")
    offset: Optional[str] = Field(None, description="Offset of the sat within the output")
    genesis: bool = Field(description="Is this the reveal location?")
    timestamp: Optional[str] = Field(None, description="Block timestamp (ISO 8601 string)")


class BlockTransferResponse(OrmConfig):
    id: str = Field(description="Inscription ID")
    number: int = Field(description="Inscription number")
    from_location: Optional[LocationResponse] = Field(None, alias="from", description="Previous location")
    to: LocationResponse = Field(description="New location")

    class Config:
        populate_by_name = True


class BlockStatsResponse(OrmConfig):
    block_height: int = Field(description="Block height")
    block_hash: str = Field(description="Block hash")
    timestamp: Optional[str] = Field(None, description="Block timestamp (ISO 8601 string)")
    inscription_count: int = Field(description="Inscriptions revealed in the block")
    blessed_count: int = Field(description="Blessed inscriptions revealed in the block")
    cursed_count: int = Field(description="Cursed inscriptions revealed in the block")
    transfer_count: int = Field(description="Inscription transfers in the block")
    inscription_count_accum: int = Field(description="Inscriptions revealed up to and including this block")
    by_rarity: Dict[str, int] = Field(default_factory=dict, description="Inscriptions revealed per sat rarity")


class SatResponse(OrmConfig):
    coinbase_height: int = Field(description="Block whose coinbase created the sat")
    cycle: int = Field(description="Halving cycle")
    epoch: int = Field(description="Halving epoch")
    period: int = Field(description="Difficulty adjustment period")
    offset: int = Field(description="Offset within the coinbase subsidy")
    decimal: str = Field(description="Decimal notation (<height>.<offset>)")
    degree: str = Field(description="Degree notation")
    name: str = Field(description="Sat name")
    rarity: str = Field(description="Sat rarity")
    percentile: str = Field(description="Position within the total supply")
    inscription_count: int = Field(description="Inscriptions on this sat")


class PaginatedResponse(BaseModel):
    limit: int = Field(description="Page size")
    offset: int = Field(description="Records skipped")
    total: int = Field(description="Total matching records")


class InscriptionListResponse(PaginatedResponse):
    results: List[InscriptionResponse]


class LocationListResponse(PaginatedResponse):
    results: List[LocationResponse]


class BlockTransferListResponse(PaginatedResponse):
    results: List[BlockTransferResponse]


class BlockStatsListResponse(BaseModel):
    results: List[BlockStatsResponse]


class IndexerStatus(BaseModel):
    server_version: str = Field(description="Indexer version")
    status: str = Field(description="Indexer status")
    block_height: Optional[int] = Field(None, description="Last applied block height")
    max_inscription_number: Optional[int] = Field(None, description="Highest blessed inscription number")
    max_cursed_inscription_number: Optional[int] = Field(None, description="Lowest cursed inscription number")


class PayloadAck(BaseModel):
    result: str = Field(default="ok")
    applied: List[Dict] = Field(default_factory=list)
    rolled_back: List[Dict] = Field(default_factory=list)
    skipped: List[Dict] = Field(default_factory=list)
