"""
Reorg coordination service for Ordinals indexer.

Orders incoming block events, tells rollbacks from forward applies and drives
the EventApplier one block per transaction, so that an undone block is fully
retracted before any block built on different history is applied.
"""

import threading
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ordinals.models.block import ProcessedBlock
from ordinals.services.error_handler import ErrorHandler
from ordinals.services.event_applier import BlockApplyResult, EventApplier
from ordinals.services.events import BlockDirection, BlockEvent, ChainhookPayload
from ordinals.services.fingerprint_service import FingerprintService
from ordinals.utils.exceptions import (
    IndexerError,
    IngestionErrorCodes,
    OrderingError,
    StorageError,
)

# Single writer: at most one block unit of work runs at a time in this process
_write_lock = threading.RLock()


@dataclass
class PayloadResult:

    applied: List[Tuple[int, str]] = field(default_factory=list)
    rolled_back: List[Tuple[int, str]] = field(default_factory=list)
    skipped: List[Tuple[int, str]] = field(default_factory=list)

    def as_dict(self):
        return {
            "applied": [{"height": h, "hash": bh} for h, bh in self.applied],
            "rolled_back": [{"height": h, "hash": bh} for h, bh in self.rolled_back],
            "skipped": [{"height": h, "hash": bh} for h, bh in self.skipped],
        }


class ReorgCoordinator:
    """Sequence block applies and rollbacks against the ledger"""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.fingerprints = FingerprintService(db_session)
        self.applier = EventApplier(db_session, self.fingerprints)
        self.error_handler = ErrorHandler()
        self.logger = structlog.get_logger()

    def get_chain_tip(self) -> Optional[ProcessedBlock]:
        """Last fully committed block, None on an empty ledger"""
        return self.db.query(ProcessedBlock).order_by(ProcessedBlock.height.desc()).first()

    def get_last_processed_height(self) -> Optional[int]:
        tip = self.get_chain_tip()
        return tip.height if tip else None

    def process_payload(self, payload: ChainhookPayload) -> PayloadResult:
        """
        Process one chainhook delivery: rollbacks tip-first, then applies in
        ascending height. Each block commits on its own; the first failure
        stops processing and propagates.
        """
        result = PayloadResult()
        with _write_lock:
            for block in sorted(payload.rollback, key=lambda b: b.height, reverse=True):
                if self.rollback_block(block) is None:
                    result.skipped.append((block.height, block.block_hash))
                else:
                    result.rolled_back.append((block.height, block.block_hash))

            for block in sorted(payload.apply, key=lambda b: b.height):
                if self.apply_block(block) is None:
                    result.skipped.append((block.height, block.block_hash))
                else:
                    result.applied.append((block.height, block.block_hash))
        return result

    def apply_block(self, block: BlockEvent) -> Optional[BlockApplyResult]:
        """
        Apply a block extending the chain tip.

        Returns:
            The apply result, or None when the identical block is already applied
        """
        with _write_lock:
            existing = self.db.query(ProcessedBlock).filter_by(height=block.height).first()
            if existing is not None and existing.block_hash == block.block_hash:
                self.logger.info("Block already applied, skipping", height=block.height, block_hash=block.block_hash)
                return None

            tip = self.get_chain_tip()
            self._check_extends_tip(block, tip)

            return self._run_unit_of_work(block, lambda: self.applier.apply_block(block, tip))

    def rollback_block(self, block: BlockEvent) -> Optional[BlockApplyResult]:
        """
        Roll back the block at the chain tip.

        Returns:
            The rollback result, or None when the block is not applied
            (never applied or already rolled back)
        """
        with _write_lock:
            processed = (
                self.db.query(ProcessedBlock).filter_by(height=block.height, block_hash=block.block_hash).first()
            )
            if processed is None:
                self.logger.info(
                    "Block not applied, rollback is a no-op",
                    height=block.height,
                    block_hash=block.block_hash,
                )
                return None

            tip = self.get_chain_tip()
            if tip.height != block.height:
                raise OrderingError(
                    IngestionErrorCodes.ROLLBACK_NOT_AT_TIP,
                    f"Cannot roll back block {block.height} while tip is {tip.height}",
                    height=block.height,
                    block_hash=block.block_hash,
                    tip_height=tip.height,
                )

            self.logger.warning("Rolling back block", height=block.height, block_hash=block.block_hash)
            return self._run_unit_of_work(block, lambda: self.applier.rollback_block(block, processed))

    def _check_extends_tip(self, block: BlockEvent, tip: Optional[ProcessedBlock]) -> None:
        if tip is None:
            return

        if block.height != tip.height + 1:
            raise OrderingError(
                IngestionErrorCodes.OUT_OF_SEQUENCE,
                f"Block {block.height} ({block.block_hash}) does not extend tip {tip.height} ({tip.block_hash})",
                height=block.height,
                block_hash=block.block_hash,
                tip_height=tip.height,
            )

        if block.parent_hash and block.parent_hash != tip.block_hash:
            raise OrderingError(
                IngestionErrorCodes.OUT_OF_SEQUENCE,
                f"Block {block.height} builds on {block.parent_hash}, tip is {tip.block_hash}",
                height=block.height,
                block_hash=block.block_hash,
                tip_height=tip.height,
            )

    def _run_unit_of_work(self, block: BlockEvent, work) -> BlockApplyResult:
        context = {
            "height": block.height,
            "block_hash": block.block_hash,
            "direction": block.direction.value,
        }
        try:
            result = work()
            self.db.commit()
        except IndexerError as e:
            self.db.rollback()
            self.error_handler.handle_ingestion_error(e, context)
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            error = StorageError(f"Block {block.height} unit of work failed: {e}")
            self.error_handler.handle_ingestion_error(error, context)
            raise error from e
        except Exception as e:
            self.db.rollback()
            self.error_handler.handle_ingestion_error(e, context)
            raise

        self.logger.info(
            "Block rolled back" if result.direction == BlockDirection.ROLLBACK else "Block applied",
            height=result.height,
            block_hash=result.block_hash,
            inscriptions=result.inscriptions_revealed,
            blessed=result.blessed_revealed,
            cursed=result.cursed_revealed,
            transfers=result.transfers,
            skipped_operations=result.skipped_operations,
            processing_time=round(result.processing_time, 3),
        )
        return result
