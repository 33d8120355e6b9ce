"""
Change fingerprint tracking for Ordinals indexer.

Every applied block is stamped with a state hash chained from its parent's,
written in the same transaction as the block's mutations. Read fingerprints
are derived from that stamp and from the rows a query serves, so equal
fingerprints imply identical responses and a replayed or re-applied block
yields the same fingerprint it had before.
"""

import hashlib
from typing import Iterable, Optional

import structlog
from sqlalchemy import extract, func
from sqlalchemy.orm import Session

from ordinals.models.block import ProcessedBlock
from ordinals.models.inscription import Inscription
from ordinals.models.location import Location
from ordinals.services.events import BlockEvent

EMPTY_CHAIN_STATE = "empty"


def _digest(parts: Iterable) -> str:
    hasher = hashlib.sha256()
    for part in parts:
        hasher.update(str(part).encode("utf-8"))
        hasher.update(b"\x1f")
    return hasher.hexdigest()


class FingerprintService:
    """Maintain and expose change fingerprints used as HTTP validators"""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.logger = structlog.get_logger()

    @staticmethod
    def operation_digest(block: BlockEvent) -> str:
        return _digest(repr(op) for op in block.operations)

    def chain_state_hash(self) -> str:
        tip = self.db.query(ProcessedBlock).order_by(ProcessedBlock.height.desc()).first()
        return tip.state_hash if tip else EMPTY_CHAIN_STATE

    def stamp_block(self, processed_block: ProcessedBlock, block: BlockEvent, parent_state_hash: str) -> str:
        """Record the state hash of a block being applied; part of the block's unit of work"""
        processed_block.state_hash = _digest(
            [
                parent_state_hash,
                block.height,
                block.block_hash,
                self.operation_digest(block),
            ]
        )
        self.logger.debug(
            "Block fingerprint recorded",
            height=block.height,
            state_hash=processed_block.state_hash,
        )
        return processed_block.state_hash

    def location_watermark(self):
        """Aggregate over every Location row; any row added, removed or re-timed changes it"""
        epoch = extract("epoch", Location.timestamp)
        return self.db.query(
            func.count(Location.id),
            func.max(Location.timestamp),
            func.sum(epoch),
            func.sum(Location.block_height * epoch),
            func.sum((Location.tx_index + 1) * epoch),
        ).one()

    def index_fingerprint(self) -> str:
        """Fingerprint of every listing-style query over inscriptions and locations"""
        inscription_count = self.db.query(func.count(Inscription.id)).scalar()
        return _digest(
            [
                "index",
                self.chain_state_hash(),
                inscription_count,
                *self.location_watermark(),
            ]
        )

    def block_stats_fingerprint(self) -> str:
        return _digest(["stats", self.index_fingerprint()])

    def inscription_fingerprint(self, genesis_id: Optional[str] = None, number: Optional[int] = None) -> Optional[str]:
        """Fingerprint of one inscription and its full location history; None if absent"""
        query = self.db.query(Inscription)
        if genesis_id is not None:
            query = query.filter(Inscription.genesis_id == genesis_id)
        elif number is not None:
            query = query.filter(Inscription.number == number)
        else:
            raise ValueError("genesis_id or number is required")

        inscription = query.first()
        if inscription is None:
            return None

        locations = (
            self.db.query(Location)
            .filter(Location.inscription_id == inscription.id)
            .order_by(Location.block_height, Location.tx_index, Location.op_index)
            .all()
        )

        parts = [
            inscription.genesis_id,
            inscription.number,
            inscription.genesis_block_hash,
            inscription.curse_type,
        ]
        for location in locations:
            parts.extend(
                [
                    location.block_hash,
                    location.tx_id,
                    location.output,
                    location.offset,
                    location.address,
                    location.value,
                    location.timestamp,
                ]
            )
        return _digest(parts)
