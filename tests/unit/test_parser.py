from datetime import datetime

import pytest

from ordinals.services.events import (
    BlockDirection,
    RevealOperation,
    RevealUndoOperation,
    TransferOperation,
    TransferUndoOperation,
)
from ordinals.services.parser import ChainhookPayloadParser
from ordinals.utils.exceptions import IngestionErrorCodes, MalformedEventError
from tests.helpers import ChainhookPayloadBuilder, reveal_fields, transfer_fields

TX_HASH = "0x38c46a8bf7ec90bc7f6b797e7dc84baa97f4e5fd4286b92fe1b50176d03b18dc"
TX_ID = TX_HASH[2:]
INSCRIPTION_ID = f"{TX_ID}i0"


@pytest.fixture
def parser():
    return ChainhookPayloadParser()


class TestChainhookPayloadParser:
    def test_parse_reveal(self, parser):
        payload = (
            ChainhookPayloadBuilder()
            .apply()
            .block(height=775617, hash="0x" + "AB" * 32, timestamp=1677803510)
            .transaction(hash=TX_HASH)
            .inscription_revealed(**reveal_fields(TX_HASH, inscription_number=7, content_type="image/png"))
            .build()
        )

        result = parser.parse_payload(payload)

        assert result.rollback == []
        assert len(result.apply) == 1
        block = result.apply[0]
        assert block.height == 775617
        assert block.block_hash == "ab" * 32
        assert block.direction == BlockDirection.APPLY
        assert block.timestamp == datetime(2023, 3, 3, 0, 31, 50)
        assert block.tx_count == 1

        reveal = block.operations[0]
        assert isinstance(reveal, RevealOperation)
        assert reveal.inscription_id == INSCRIPTION_ID
        assert reveal.tx_id == TX_ID
        assert reveal.tx_index == 0
        assert reveal.op_index == 0
        assert reveal.content_bytes == b"Hello"
        assert reveal.mime_type == "image/png"
        assert reveal.number_hint == 7
        assert reveal.satpoint.output == f"{TX_ID}:0"

    def test_mime_type_drops_parameters(self, parser):
        payload = (
            ChainhookPayloadBuilder()
            .block(height=1)
            .transaction(hash=TX_HASH)
            .inscription_revealed(**reveal_fields(TX_HASH))
            .build()
        )
        reveal = parser.parse_payload(payload).apply[0].operations[0]
        assert reveal.content_type == "text/plain;charset=utf-8"
        assert reveal.mime_type == "text/plain"

    def test_inscription_number_object(self, parser):
        payload = (
            ChainhookPayloadBuilder()
            .block(height=1)
            .transaction(hash=TX_HASH)
            .inscription_revealed(**reveal_fields(TX_HASH, inscription_number={"classic": -5, "jubilee": 12}))
            .build()
        )
        reveal = parser.parse_payload(payload).apply[0].operations[0]
        assert reveal.number_hint == -5

    def test_rollback_maps_to_undo_operations(self, parser):
        payload = (
            ChainhookPayloadBuilder()
            .rollback()
            .block(height=2)
            .transaction(hash=TX_HASH)
            .inscription_revealed(**reveal_fields(TX_HASH))
            .inscription_transferred(**transfer_fields(INSCRIPTION_ID, f"{TX_ID}:0:0", f"{TX_ID}:1:0"))
            .build()
        )

        block = parser.parse_payload(payload).rollback[0]

        assert block.direction == BlockDirection.ROLLBACK
        undo_reveal, undo_transfer = block.operations
        assert isinstance(undo_reveal, RevealUndoOperation)
        assert isinstance(undo_transfer, TransferUndoOperation)
        assert undo_transfer.op_index == 1
        assert str(undo_transfer.satpoint_post_transfer) == f"{TX_ID}:1:0"

    def test_transfer(self, parser):
        payload = (
            ChainhookPayloadBuilder()
            .block(height=3)
            .transaction(hash="0x" + "11" * 32)
            .transaction(hash=TX_HASH)
            .inscription_transferred(**transfer_fields(INSCRIPTION_ID, f"{TX_ID}:0:0", f"{TX_ID}:1:5"))
            .build()
        )

        block = parser.parse_payload(payload).apply[0]

        assert block.tx_count == 2
        transfer = block.operations[0]
        assert isinstance(transfer, TransferOperation)
        assert transfer.tx_index == 1
        assert transfer.satpoint_post_transfer.offset == 5
        assert transfer.post_transfer_output_value == 9000

    def test_missing_block_timestamp_is_rejected(self, parser):
        payload = ChainhookPayloadBuilder().block(height=4, timestamp=None).build()

        with pytest.raises(MalformedEventError) as exc_info:
            parser.parse_payload(payload)
        assert exc_info.value.error_code == IngestionErrorCodes.MISSING_FIELD

    @pytest.mark.parametrize("ordinal", [-1, 2099999997690000])
    def test_ordinal_out_of_range_is_rejected(self, parser, ordinal):
        payload = (
            ChainhookPayloadBuilder()
            .block(height=1)
            .transaction(hash=TX_HASH)
            .inscription_revealed(**reveal_fields(TX_HASH, ordinal_number=ordinal))
            .build()
        )

        with pytest.raises(MalformedEventError) as exc_info:
            parser.parse_payload(payload)
        assert exc_info.value.error_code == IngestionErrorCodes.INVALID_FIELD

    def test_last_sat_is_accepted(self, parser):
        payload = (
            ChainhookPayloadBuilder()
            .block(height=1)
            .transaction(hash=TX_HASH)
            .inscription_revealed(**reveal_fields(TX_HASH, ordinal_number=2099999997689999))
            .build()
        )

        assert parser.parse_payload(payload).apply[0].operations[0].ordinal_number == 2099999997689999

    def test_missing_field_is_rejected(self, parser):
        fields = reveal_fields(TX_HASH)
        del fields["ordinal_number"]
        payload = ChainhookPayloadBuilder().block(height=1).transaction(hash=TX_HASH).inscription_revealed(**fields).build()

        with pytest.raises(MalformedEventError) as exc_info:
            parser.parse_payload(payload)
        assert exc_info.value.error_code == IngestionErrorCodes.MISSING_FIELD

    def test_unknown_operation_is_rejected(self, parser):
        payload = ChainhookPayloadBuilder().block(height=1).transaction(hash=TX_HASH).build()
        payload["apply"][0]["transactions"][0]["metadata"]["ordinal_operations"].append({"cursed_inscription_revealed": {}})

        with pytest.raises(MalformedEventError) as exc_info:
            parser.parse_payload(payload)
        assert exc_info.value.error_code == IngestionErrorCodes.UNKNOWN_OPERATION

    def test_invalid_satpoint_is_rejected(self, parser):
        payload = (
            ChainhookPayloadBuilder()
            .block(height=1)
            .transaction(hash=TX_HASH)
            .inscription_revealed(**reveal_fields(TX_HASH, satpoint_post_inscription="not-a-satpoint"))
            .build()
        )

        with pytest.raises(MalformedEventError) as exc_info:
            parser.parse_payload(payload)
        assert exc_info.value.error_code == IngestionErrorCodes.INVALID_SATPOINT

    @pytest.mark.parametrize("payload", [[], {"apply": "x"}, {"apply": [{"transactions": []}]}])
    def test_malformed_payload_shapes(self, parser, payload):
        with pytest.raises(MalformedEventError):
            parser.parse_payload(payload)
