"""
Chainhook payload parsing service.

Turns the JSON body delivered by the chainhook node into BlockEvent objects
carrying typed operations. Anything that does not fit the expected shape is
rejected with a MalformedEventError instead of being skipped.
"""

from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

import structlog

from ordinals.services.events import (
    BlockDirection,
    BlockEvent,
    ChainhookPayload,
    Operation,
    RevealOperation,
    RevealUndoOperation,
    TransferOperation,
    TransferUndoOperation,
)
from ordinals.utils.exceptions import IngestionErrorCodes, MalformedEventError
from ordinals.utils.sat import LAST_SAT
from ordinals.utils.satpoint import SatPoint, normalize_hex

REVEAL_REQUIRED_FIELDS = (
    "inscription_id",
    "content_type",
    "content_length",
    "inscription_fee",
    "ordinal_number",
    "ordinal_block_height",
    "satpoint_post_inscription",
)

TRANSFER_REQUIRED_FIELDS = (
    "inscription_id",
    "satpoint_pre_transfer",
    "satpoint_post_transfer",
)


class ChainhookPayloadParser:
    """Parse chainhook `inscription_feed` payloads"""

    def __init__(self):
        self.logger = structlog.get_logger()

    def parse_payload(self, payload: Dict[str, Any]) -> ChainhookPayload:
        if not isinstance(payload, dict):
            raise MalformedEventError("Payload must be a JSON object")

        apply_blocks = payload.get("apply") or []
        rollback_blocks = payload.get("rollback") or []
        if not isinstance(apply_blocks, list) or not isinstance(rollback_blocks, list):
            raise MalformedEventError("Payload apply/rollback must be lists")

        parsed = ChainhookPayload(
            apply=[self.parse_block(block, BlockDirection.APPLY) for block in apply_blocks],
            rollback=[self.parse_block(block, BlockDirection.ROLLBACK) for block in rollback_blocks],
        )
        self.logger.debug(
            "Payload parsed",
            apply=[block.height for block in parsed.apply],
            rollback=[block.height for block in parsed.rollback],
        )
        return parsed

    def parse_block(self, block: Dict[str, Any], direction: BlockDirection) -> BlockEvent:
        if not isinstance(block, dict):
            raise MalformedEventError("Block must be a JSON object")

        identifier = block.get("block_identifier")
        if not isinstance(identifier, dict):
            raise MalformedEventError("Block is missing block_identifier", IngestionErrorCodes.MISSING_FIELD)
        self._require(identifier, ("index", "hash"), "block_identifier")

        height = self._int(identifier["index"], "block_identifier.index")
        block_hash = normalize_hex(str(identifier["hash"]))

        parent = block.get("parent_block_identifier")
        parent_hash = None
        if isinstance(parent, dict) and parent.get("hash"):
            parent_hash = normalize_hex(str(parent["hash"]))

        transactions = block.get("transactions") or []
        if not isinstance(transactions, list):
            raise MalformedEventError(f"Block {height} transactions must be a list")

        operations: List[Operation] = []
        for tx_index, tx in enumerate(transactions):
            operations.extend(self.parse_transaction(tx, tx_index, direction))

        return BlockEvent(
            height=height,
            block_hash=block_hash,
            direction=direction,
            timestamp=self._block_timestamp(block.get("timestamp")),
            parent_hash=parent_hash,
            tx_count=len(transactions),
            operations=operations,
        )

    def parse_transaction(self, tx: Dict[str, Any], tx_index: int, direction: BlockDirection) -> List[Operation]:
        if not isinstance(tx, dict):
            raise MalformedEventError("Transaction must be a JSON object")

        identifier = tx.get("transaction_identifier")
        if not isinstance(identifier, dict) or not identifier.get("hash"):
            raise MalformedEventError("Transaction is missing transaction_identifier", IngestionErrorCodes.MISSING_FIELD)
        tx_id = normalize_hex(str(identifier["hash"]))

        metadata = tx.get("metadata") or {}
        ordinal_operations = metadata.get("ordinal_operations") or []

        operations = []
        for op_index, raw_op in enumerate(ordinal_operations):
            operations.append(self.parse_operation(raw_op, tx_id, tx_index, op_index, direction))
        return operations

    def parse_operation(
        self,
        raw_op: Dict[str, Any],
        tx_id: str,
        tx_index: int,
        op_index: int,
        direction: BlockDirection,
    ) -> Operation:
        if not isinstance(raw_op, dict) or len(raw_op) != 1:
            raise MalformedEventError(
                f"Operation in tx {tx_id} must have exactly one tag",
                IngestionErrorCodes.UNKNOWN_OPERATION,
            )

        tag, data = next(iter(raw_op.items()))
        if not isinstance(data, dict):
            raise MalformedEventError(f"Operation {tag} in tx {tx_id} must be an object")

        if tag == "inscription_revealed":
            reveal = self._parse_reveal(data, tx_id, tx_index, op_index)
            if direction == BlockDirection.ROLLBACK:
                return RevealUndoOperation(tx_id, tx_index, op_index, reveal.inscription_id)
            return reveal

        if tag == "inscription_transferred":
            transfer = self._parse_transfer(data, tx_id, tx_index, op_index)
            if direction == BlockDirection.ROLLBACK:
                return TransferUndoOperation(
                    tx_id,
                    tx_index,
                    op_index,
                    transfer.inscription_id,
                    satpoint_post_transfer=transfer.satpoint_post_transfer,
                )
            return transfer

        raise MalformedEventError(
            f"Unknown ordinal operation {tag!r} in tx {tx_id}",
            IngestionErrorCodes.UNKNOWN_OPERATION,
        )

    def _parse_reveal(self, data: Dict[str, Any], tx_id: str, tx_index: int, op_index: int) -> RevealOperation:
        self._require(data, REVEAL_REQUIRED_FIELDS, "inscription_revealed")

        ordinal_number = self._int(data["ordinal_number"], "ordinal_number")
        if ordinal_number < 0 or ordinal_number > LAST_SAT:
            raise MalformedEventError(f"Sat ordinal out of range: {ordinal_number}")

        number_hint = data.get("inscription_number")
        if isinstance(number_hint, dict):
            # Newer chainhook versions report {"classic": n, "jubilee": m}
            number_hint = number_hint.get("classic", number_hint.get("jubilee"))

        return RevealOperation(
            tx_id=tx_id,
            tx_index=tx_index,
            op_index=op_index,
            inscription_id=str(data["inscription_id"]).lower(),
            content_bytes=self._content_bytes(data.get("content_bytes")),
            content_type=str(data["content_type"]),
            content_length=self._int(data["content_length"], "content_length"),
            fee=self._int(data["inscription_fee"], "inscription_fee"),
            output_value=self._optional_int(data.get("inscription_output_value"), "inscription_output_value"),
            inscriber_address=data.get("inscriber_address") or None,
            ordinal_number=ordinal_number,
            ordinal_block_height=self._int(data["ordinal_block_height"], "ordinal_block_height"),
            ordinal_offset=self._optional_int(data.get("ordinal_offset"), "ordinal_offset") or 0,
            satpoint=SatPoint.parse(data["satpoint_post_inscription"]),
            number_hint=self._optional_int(number_hint, "inscription_number"),
            curse_type=data.get("curse_type"),
        )

    def _parse_transfer(self, data: Dict[str, Any], tx_id: str, tx_index: int, op_index: int) -> TransferOperation:
        self._require(data, TRANSFER_REQUIRED_FIELDS, "inscription_transferred")

        return TransferOperation(
            tx_id=tx_id,
            tx_index=tx_index,
            op_index=op_index,
            inscription_id=str(data["inscription_id"]).lower(),
            updated_address=data.get("updated_address") or None,
            satpoint_pre_transfer=SatPoint.parse(data["satpoint_pre_transfer"]),
            satpoint_post_transfer=SatPoint.parse(data["satpoint_post_transfer"]),
            post_transfer_output_value=self._optional_int(
                data.get("post_transfer_output_value"), "post_transfer_output_value"
            ),
        )

    @staticmethod
    def _require(data: Dict[str, Any], fields, context: str) -> None:
        missing = [name for name in fields if data.get(name) is None]
        if missing:
            raise MalformedEventError(
                f"{context} is missing required fields: {', '.join(missing)}",
                IngestionErrorCodes.MISSING_FIELD,
            )

    @staticmethod
    def _int(value: Any, name: str) -> int:
        if isinstance(value, bool):
            raise MalformedEventError(f"Field {name} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise MalformedEventError(f"Field {name} must be an integer, got {value!r}")

    def _optional_int(self, value: Any, name: str) -> Optional[int]:
        if value is None:
            return None
        return self._int(value, name)

    @staticmethod
    def _content_bytes(value: Optional[str]) -> bytes:
        if not value:
            return b""
        try:
            return bytes.fromhex(normalize_hex(value))
        except ValueError:
            raise MalformedEventError("content_bytes must be hex encoded")

    def _block_timestamp(self, value: Any) -> datetime:
        if value is None:
            raise MalformedEventError("Block is missing timestamp", IngestionErrorCodes.MISSING_FIELD)
        seconds = self._int(value, "timestamp")
        if seconds <= 0:
            raise MalformedEventError(f"Invalid block timestamp: {value!r}")
        return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
