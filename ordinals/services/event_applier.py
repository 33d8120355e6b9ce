"""
Event applier for Ordinals indexer.

Executes every operation of one block against the location ledger. The
caller owns the transaction: the applier only flushes, so a block is
committed or discarded as a whole.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional

import structlog
from sqlalchemy.orm import Session

from ordinals.config import settings
from ordinals.models.block import ProcessedBlock
from ordinals.models.inscription import Inscription
from ordinals.models.location import Location
from ordinals.services.events import (
    BlockDirection,
    BlockEvent,
    Operation,
    RevealOperation,
    RevealUndoOperation,
    TransferOperation,
    TransferUndoOperation,
)
from ordinals.services.fingerprint_service import FingerprintService
from ordinals.services.location_ledger import LocationLedger
from ordinals.utils.exceptions import (
    IngestionErrorCodes,
    InvariantViolationError,
    MalformedEventError,
    SatpointMismatchError,
    UnknownInscriptionError,
)
from ordinals.utils.numbering import classify_curse, next_inscription_number
from ordinals.utils.sat import sat_rarity


@dataclass
class BlockApplyResult:

    height: int
    block_hash: str
    direction: BlockDirection
    inscriptions_revealed: int = 0
    blessed_revealed: int = 0
    cursed_revealed: int = 0
    transfers: int = 0
    skipped_operations: int = 0
    processing_time: float = 0.0
    assigned_numbers: List[int] = field(default_factory=list)


class EventApplier:
    """Apply or roll back the inscription operations of a single block"""

    def __init__(self, db_session: Session, fingerprints: Optional[FingerprintService] = None):
        self.db = db_session
        self.ledger = LocationLedger(db_session)
        self.fingerprints = fingerprints or FingerprintService(db_session)
        self.logger = structlog.get_logger()

        self._handlers = {
            RevealOperation: self._apply_reveal,
            TransferOperation: self._apply_transfer,
            RevealUndoOperation: self._undo_reveal,
            TransferUndoOperation: self._undo_transfer,
        }

    def apply_block(self, block: BlockEvent, parent: Optional[ProcessedBlock] = None) -> BlockApplyResult:
        """Apply a new block on top of `parent` (None for the first block)"""
        self._check_direction(block, BlockDirection.APPLY)
        start_time = time.time()
        result = BlockApplyResult(block.height, block.block_hash, BlockDirection.APPLY)

        for operation in block.operations:
            self._dispatch(operation, block, result)

        accum = (parent.inscription_count_accum if parent else 0) + result.inscriptions_revealed
        processed_block = ProcessedBlock(
            height=block.height,
            block_hash=block.block_hash,
            parent_hash=block.parent_hash or (parent.block_hash if parent else None),
            timestamp=block.timestamp,
            tx_count=block.tx_count,
            inscriptions_revealed=result.inscriptions_revealed,
            blessed_revealed=result.blessed_revealed,
            cursed_revealed=result.cursed_revealed,
            transfers=result.transfers,
            inscription_count_accum=accum,
        )
        self.fingerprints.stamp_block(
            processed_block,
            block,
            parent.state_hash if parent else self.fingerprints.chain_state_hash(),
        )
        self.db.add(processed_block)
        self.db.flush()

        result.processing_time = time.time() - start_time
        return result

    def rollback_block(self, block: BlockEvent, processed_block: ProcessedBlock) -> BlockApplyResult:
        """Undo an applied block; operations are undone last-first"""
        self._check_direction(block, BlockDirection.ROLLBACK)
        start_time = time.time()
        result = BlockApplyResult(block.height, block.block_hash, BlockDirection.ROLLBACK)

        for operation in reversed(block.operations):
            self._dispatch(operation, block, result)

        residue = self.ledger.count_block_residue(block.block_hash)
        if residue:
            raise InvariantViolationError(
                IngestionErrorCodes.ROLLBACK_RESIDUE,
                f"{residue} rows of block {block.height} ({block.block_hash}) survived its rollback",
            )

        self.db.delete(processed_block)
        self.db.flush()

        result.processing_time = time.time() - start_time
        return result

    @staticmethod
    def _check_direction(block: BlockEvent, expected: BlockDirection) -> None:
        if block.direction != expected:
            raise MalformedEventError(
                f"Block {block.height} is a {block.direction.value} event, expected {expected.value}"
            )

    def _dispatch(self, operation: Operation, block: BlockEvent, result: BlockApplyResult) -> None:
        handler = self._handlers.get(type(operation))
        if handler is None:
            raise MalformedEventError(
                f"Unsupported operation {type(operation).__name__}",
                IngestionErrorCodes.UNKNOWN_OPERATION,
            )
        handler(operation, block, result)

    def _apply_reveal(self, op: RevealOperation, block: BlockEvent, result: BlockApplyResult) -> None:
        existing = self.ledger.get_inscription(op.inscription_id)
        if existing is not None:
            if existing.genesis_block_hash == block.block_hash:
                self.logger.debug("Reveal already applied", inscription_id=op.inscription_id)
                result.skipped_operations += 1
                return
            raise InvariantViolationError(
                IngestionErrorCodes.DUPLICATE_GENESIS,
                f"Inscription {op.inscription_id} was already revealed in block "
                f"{existing.genesis_block_height} ({existing.genesis_block_hash})",
            )

        curse_type = classify_curse(op.curse_type, op.number_hint)
        cursed = curse_type is not None

        position = (block.height, op.tx_index, op.op_index)
        latest_position = self.ledger.latest_genesis_position(cursed)
        if latest_position is not None and latest_position >= position:
            raise InvariantViolationError(
                IngestionErrorCodes.GENESIS_ORDER,
                f"Reveal of {op.inscription_id} at {position} precedes numbered genesis at {latest_position}",
            )

        max_blessed, min_cursed = self.ledger.number_bounds()
        number = next_inscription_number(cursed, max_blessed, min_cursed, op.number_hint)
        if op.number_hint is not None and op.number_hint != number:
            self.logger.warning(
                "Assigned number differs from upstream hint",
                inscription_id=op.inscription_id,
                number=number,
                number_hint=op.number_hint,
            )

        inscription = self.ledger.insert_inscription(
            Inscription(
                genesis_id=op.inscription_id,
                number=number,
                number_hint=op.number_hint,
                mime_type=op.mime_type,
                content_type=op.content_type,
                content_length=op.content_length,
                content=op.content_bytes,
                fee=op.fee,
                genesis_block_height=block.height,
                genesis_block_hash=block.block_hash,
                genesis_tx_id=op.tx_id,
                genesis_tx_index=op.tx_index,
                genesis_op_index=op.op_index,
                genesis_address=op.inscriber_address,
                genesis_timestamp=block.timestamp,
                sat_ordinal=op.ordinal_number,
                sat_rarity=sat_rarity(op.ordinal_number).value,
                sat_coinbase_height=op.ordinal_block_height,
                curse_type=curse_type,
            )
        )

        self.ledger.insert_location(
            Location(
                inscription=inscription,
                genesis_id=op.inscription_id,
                block_height=block.height,
                block_hash=block.block_hash,
                tx_id=op.tx_id,
                tx_index=op.tx_index,
                op_index=op.op_index,
                output=op.satpoint.output,
                offset=op.satpoint.offset,
                address=op.inscriber_address,
                value=op.output_value,
                genesis=True,
                timestamp=block.timestamp,
            )
        )

        result.inscriptions_revealed += 1
        if cursed:
            result.cursed_revealed += 1
        else:
            result.blessed_revealed += 1
        result.assigned_numbers.append(number)

    def _apply_transfer(self, op: TransferOperation, block: BlockEvent, result: BlockApplyResult) -> None:
        inscription = self.ledger.get_inscription(op.inscription_id)
        if inscription is None:
            raise UnknownInscriptionError(op.inscription_id)

        if self.ledger.find_location(inscription, block.block_hash, op.tx_index, op.op_index) is not None:
            self.logger.debug("Transfer already applied", inscription_id=op.inscription_id)
            result.skipped_operations += 1
            return

        current = self.ledger.current_location(inscription)
        if settings.VERIFY_SATPOINT_CONTINUITY and current is not None:
            if current.satpoint != str(op.satpoint_pre_transfer):
                raise SatpointMismatchError(op.inscription_id, current.satpoint, str(op.satpoint_pre_transfer))

        self.ledger.insert_location(
            Location(
                inscription=inscription,
                genesis_id=op.inscription_id,
                block_height=block.height,
                block_hash=block.block_hash,
                tx_id=op.tx_id,
                tx_index=op.tx_index,
                op_index=op.op_index,
                output=op.satpoint_post_transfer.output,
                offset=op.satpoint_post_transfer.offset,
                address=op.updated_address,
                value=op.post_transfer_output_value,
                genesis=False,
                timestamp=block.timestamp,
            )
        )
        result.transfers += 1

    def _undo_reveal(self, op: RevealUndoOperation, block: BlockEvent, result: BlockApplyResult) -> None:
        inscription = self.ledger.get_inscription(op.inscription_id)
        if inscription is None:
            raise UnknownInscriptionError(op.inscription_id)

        if inscription.genesis_block_hash != block.block_hash:
            raise InvariantViolationError(
                IngestionErrorCodes.LOCATION_MISMATCH,
                f"Inscription {op.inscription_id} was revealed in block {inscription.genesis_block_hash}, "
                f"not in rolled back block {block.block_hash}",
            )

        latest = self.ledger.latest_location(inscription)
        if latest is not None and not latest.genesis:
            raise InvariantViolationError(
                IngestionErrorCodes.LOCATION_MISMATCH,
                f"Inscription {op.inscription_id} still has transfers after its reveal",
            )

        number = inscription.number
        cursed = inscription.is_cursed
        self.ledger.delete_inscription(inscription)

        result.inscriptions_revealed += 1
        if cursed:
            result.cursed_revealed += 1
        else:
            result.blessed_revealed += 1
        result.assigned_numbers.append(number)

    def _undo_transfer(self, op: TransferUndoOperation, block: BlockEvent, result: BlockApplyResult) -> None:
        inscription = self.ledger.get_inscription(op.inscription_id)
        if inscription is None:
            raise UnknownInscriptionError(op.inscription_id)

        latest = self.ledger.latest_location(inscription)
        if (
            latest is None
            or latest.genesis
            or latest.block_hash != block.block_hash
            or (latest.tx_index, latest.op_index) != (op.tx_index, op.op_index)
        ):
            raise InvariantViolationError(
                IngestionErrorCodes.LOCATION_MISMATCH,
                f"Latest location of {op.inscription_id} is not the transfer being rolled back "
                f"(block {block.height}, tx {op.tx_id})",
            )

        self.ledger.delete_location(latest)
        result.transfers += 1
