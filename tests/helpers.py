"""Builders for chainhook inscription feed payloads used across the tests."""

import hashlib
from typing import Any, Dict, Optional

DEFAULT_BLOCK_TIMESTAMP = 1677803510
TEST_AUTH_TOKEN = "test-token"


def random_hash(seed: Any) -> str:
    return "0x" + hashlib.sha256(str(seed).encode()).hexdigest()


class ChainhookPayloadBuilder:
    """Fluent builder: .apply().block(...).transaction(...).inscription_revealed(...).build()"""

    def __init__(self):
        self.payload: Dict[str, list] = {"apply": [], "rollback": []}
        self._event_list = self.payload["apply"]
        self._block: Optional[Dict] = None
        self._transaction: Optional[Dict] = None

    def apply(self) -> "ChainhookPayloadBuilder":
        self._event_list = self.payload["apply"]
        return self

    def rollback(self) -> "ChainhookPayloadBuilder":
        self._event_list = self.payload["rollback"]
        return self

    def block(
        self,
        height: int,
        hash: Optional[str] = None,
        parent_hash: Optional[str] = None,
        timestamp: Optional[int] = DEFAULT_BLOCK_TIMESTAMP,
    ) -> "ChainhookPayloadBuilder":
        self._block = {
            "block_identifier": {"index": height, "hash": hash or random_hash(f"block-{height}")},
            "timestamp": timestamp,
            "transactions": [],
        }
        if parent_hash is not None:
            self._block["parent_block_identifier"] = {"index": height - 1, "hash": parent_hash}
        self._event_list.append(self._block)
        return self

    def transaction(self, hash: str) -> "ChainhookPayloadBuilder":
        self._transaction = {
            "transaction_identifier": {"hash": hash},
            "metadata": {"ordinal_operations": []},
        }
        self._block["transactions"].append(self._transaction)
        return self

    def inscription_revealed(self, **fields) -> "ChainhookPayloadBuilder":
        self._transaction["metadata"]["ordinal_operations"].append({"inscription_revealed": fields})
        return self

    def inscription_transferred(self, **fields) -> "ChainhookPayloadBuilder":
        self._transaction["metadata"]["ordinal_operations"].append({"inscription_transferred": fields})
        return self

    def build(self) -> Dict[str, list]:
        return self.payload


def reveal_fields(tx_hash: str, index: int = 0, **overrides) -> Dict[str, Any]:
    """A valid inscription_revealed body for the transaction `tx_hash`"""
    tx_id = tx_hash[2:] if tx_hash.startswith("0x") else tx_hash
    fields = {
        "content_bytes": "0x48656C6C6F",
        "content_type": "text/plain;charset=utf-8",
        "content_length": 5,
        "inscription_number": 0,
        "inscription_fee": 705,
        "inscription_id": f"{tx_id}i{index}",
        "inscription_output_value": 10000,
        "inscriber_address": "bc1pscktlmn99gyzlvymvrezh6vwd0l4kg06tg5rvssw0czg8873gz5sdkteqj",
        "ordinal_number": 257418248345364,
        "ordinal_block_height": 51483,
        "ordinal_offset": 0,
        "satpoint_post_inscription": f"{tx_id}:0:0",
    }
    fields.update(overrides)
    return fields


def transfer_fields(inscription_id: str, pre: str, post: str, **overrides) -> Dict[str, Any]:
    fields = {
        "inscription_id": inscription_id,
        "updated_address": "bc1p3cyx5e2hgh53w7kpxcvm8s4kkega9gv5wfw7c4qxsvxl0u8x834qf0u2td",
        "satpoint_pre_transfer": pre,
        "satpoint_post_transfer": post,
        "post_transfer_output_value": 9000,
    }
    fields.update(overrides)
    return fields
