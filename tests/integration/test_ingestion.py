"""
Ingestion tests against a real (SQLite) ledger.

Tests cover:
- Reveal and transfer application
- Replay idempotence
- Rollback as the exact inverse of apply
- Fork switches and numbering density
- Ordering and consistency failures
- Change fingerprints
"""

from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

from ordinals.models.block import ProcessedBlock
from ordinals.models.current_location import CurrentLocation
from ordinals.models.inscription import Inscription
from ordinals.models.location import Location
from ordinals.services.fingerprint_service import FingerprintService
from ordinals.services.parser import ChainhookPayloadParser
from ordinals.services.reorg_coordinator import ReorgCoordinator
from ordinals.utils.exceptions import (
    IngestionErrorCodes,
    InvariantViolationError,
    OrderingError,
    SatpointMismatchError,
    UnknownInscriptionError,
)
from tests.helpers import ChainhookPayloadBuilder, random_hash, reveal_fields, transfer_fields

TX_A = "0x38c46a8bf7ec90bc7f6b797e7dc84baa97f4e5fd4286b92fe1b50176d03b18dc"
TX_B = "0x9f4a9b73b0713c5da01c0a47f97c6c001af9028d6bdd9e264dfacbc4e6790201"
TX_C = "0x00000000000000000002a90330a99f67e3f01eb2ce070b45930581e82fb7a91d"
TX_D = random_hash("tx-d")

ID_A = f"{TX_A[2:]}i0"
ID_B = f"{TX_B[2:]}i0"
ID_C = f"{TX_C[2:]}i0"


def reveal_block(height, tx_hash, block_hash=None, **fields):
    return (
        ChainhookPayloadBuilder()
        .apply()
        .block(height=height, hash=block_hash)
        .transaction(hash=tx_hash)
        .inscription_revealed(**reveal_fields(tx_hash, **fields))
        .build()
    )


def transfer_block(height, tx_hash, inscription_id, pre, post, block_hash=None):
    return (
        ChainhookPayloadBuilder()
        .apply()
        .block(height=height, hash=block_hash)
        .transaction(hash=tx_hash)
        .inscription_transferred(**transfer_fields(inscription_id, pre, post))
        .build()
    )


def reveals_block(height, reveals, block_hash=None):
    """One block revealing each (tx_hash, fields) pair in its own transaction"""
    builder = ChainhookPayloadBuilder().apply().block(height=height, hash=block_hash)
    for tx_hash, fields in reveals:
        builder.transaction(hash=tx_hash).inscription_revealed(**reveal_fields(tx_hash, **fields))
    return builder.build()


def cursed(number):
    return {"inscription_number": number, "curse_type": "DuplicateField"}


def blessed(number):
    return {"inscription_number": number}


def as_rollback(payload):
    return {"apply": [], "rollback": payload["apply"]}


def numbers_by_class(db_session):
    numbers = sorted(number for (number,) in db_session.query(Inscription.number).all())
    return [n for n in numbers if n >= 0], [n for n in numbers if n < 0]


@pytest.fixture
def coordinator(db_session):
    return ReorgCoordinator(db_session)


@pytest.fixture
def ingest(coordinator):
    parser = ChainhookPayloadParser()

    def _ingest(payload):
        return coordinator.process_payload(parser.parse_payload(payload))

    return _ingest


@pytest.fixture
def fingerprints(db_session):
    return FingerprintService(db_session)


def current_location(db_session, genesis_id):
    inscription = db_session.query(Inscription).filter_by(genesis_id=genesis_id).one()
    current = db_session.get(CurrentLocation, inscription.id)
    return db_session.get(Location, current.location_id)


class TestApply:
    def test_reveal_creates_inscription_and_genesis_location(self, db_session, ingest):
        result = ingest(reveal_block(775617, TX_A, inscription_number=7, content_type="image/png"))

        assert result.applied == [(775617, random_hash("block-775617")[2:])]
        inscription = db_session.query(Inscription).filter_by(genesis_id=ID_A).one()
        assert inscription.number == 7
        assert inscription.mime_type == "image/png"
        assert inscription.content == b"Hello"
        assert inscription.sat_rarity == "common"
        assert inscription.curse_type is None

        location = current_location(db_session, ID_A)
        assert location.genesis is True
        assert location.output == f"{TX_A[2:]}:0"
        assert location.block_height == 775617

        tip = db_session.query(ProcessedBlock).one()
        assert tip.inscriptions_revealed == 1
        assert tip.blessed_revealed == 1
        assert tip.inscription_count_accum == 1

    def test_transfer_moves_current_location(self, db_session, ingest):
        ingest(reveal_block(775617, TX_A))
        ingest(transfer_block(775618, TX_B, ID_A, f"{TX_A[2:]}:0:0", f"{TX_B[2:]}:1:0"))

        location = current_location(db_session, ID_A)
        assert location.genesis is False
        assert location.output == f"{TX_B[2:]}:1"
        assert location.value == 9000
        assert db_session.query(Location).count() == 2
        assert db_session.get(ProcessedBlock, 775618).transfers == 1

    def test_replayed_block_is_a_noop(self, db_session, ingest, fingerprints):
        payload = reveal_block(775617, TX_A)
        ingest(payload)
        before = fingerprints.index_fingerprint()

        result = ingest(payload)

        assert result.applied == []
        assert result.skipped == [(775617, random_hash("block-775617")[2:])]
        assert db_session.query(Inscription).count() == 1
        assert db_session.query(Location).count() == 1
        assert fingerprints.index_fingerprint() == before

    def test_curse_and_numbering_classes(self, db_session, ingest):
        ingest(reveal_block(100, TX_A, inscription_number=0))
        ingest(reveal_block(101, TX_B, inscription_number=-1, curse_type="DuplicateField"))
        ingest(reveal_block(102, TX_C, inscription_number=1))
        ingest(reveal_block(103, TX_D, inscription_number=-2, curse_type="IncompleteField"))

        numbers = {i.genesis_id: (i.number, i.curse_type) for i in db_session.query(Inscription).all()}
        assert numbers[ID_A] == (0, None)
        assert numbers[ID_B] == (-1, "duplicate_field")
        assert numbers[ID_C] == (1, None)
        assert numbers[f"{TX_D[2:]}i0"] == (-2, "incomplete_field")

        block = db_session.get(ProcessedBlock, 101)
        assert block.cursed_revealed == 1
        assert block.blessed_revealed == 0

    def test_numbers_follow_the_ledger_not_the_hint(self, db_session, ingest):
        ingest(reveal_block(100, TX_A, inscription_number=5))
        ingest(reveal_block(101, TX_B, inscription_number=9))

        assert db_session.query(Inscription).filter_by(genesis_id=ID_B).one().number == 6

    def test_multiple_operations_in_one_block(self, db_session, ingest):
        payload = (
            ChainhookPayloadBuilder()
            .block(height=200)
            .transaction(hash=TX_A)
            .inscription_revealed(**reveal_fields(TX_A, inscription_number=0))
            .transaction(hash=TX_B)
            .inscription_revealed(**reveal_fields(TX_B, inscription_number=1))
            .inscription_transferred(**transfer_fields(ID_A, f"{TX_A[2:]}:0:0", f"{TX_B[2:]}:0:0"))
            .build()
        )

        ingest(payload)

        block = db_session.get(ProcessedBlock, 200)
        assert block.inscriptions_revealed == 2
        assert block.transfers == 1
        assert current_location(db_session, ID_A).tx_id == TX_B[2:]


class TestRollback:
    def test_rollback_is_inverse_of_apply(self, db_session, ingest, fingerprints):
        ingest(reveal_block(775617, TX_A))
        after_reveal = fingerprints.index_fingerprint()
        inscription_after_reveal = fingerprints.inscription_fingerprint(genesis_id=ID_A)

        transfer = transfer_block(775618, TX_B, ID_A, f"{TX_A[2:]}:0:0", f"{TX_B[2:]}:1:0")
        ingest(transfer)
        assert fingerprints.index_fingerprint() != after_reveal

        result = ingest(as_rollback(transfer))

        assert result.rolled_back == [(775618, random_hash("block-775618")[2:])]
        assert fingerprints.index_fingerprint() == after_reveal
        assert fingerprints.inscription_fingerprint(genesis_id=ID_A) == inscription_after_reveal
        assert current_location(db_session, ID_A).genesis is True
        assert db_session.get(ProcessedBlock, 775618) is None

    def test_rollback_of_reveal_empties_ledger(self, db_session, ingest, fingerprints):
        empty = fingerprints.index_fingerprint()
        reveal = reveal_block(775617, TX_A)
        ingest(reveal)

        ingest(as_rollback(reveal))

        assert db_session.query(Inscription).count() == 0
        assert db_session.query(Location).count() == 0
        assert db_session.query(CurrentLocation).count() == 0
        assert db_session.query(ProcessedBlock).count() == 0
        assert fingerprints.index_fingerprint() == empty

    def test_reapply_after_rollback_restores_fingerprint(self, ingest, fingerprints):
        ingest(reveal_block(775617, TX_A))
        transfer = transfer_block(775618, TX_B, ID_A, f"{TX_A[2:]}:0:0", f"{TX_B[2:]}:1:0")
        ingest(transfer)
        applied = fingerprints.index_fingerprint()

        ingest(as_rollback(transfer))
        ingest(transfer)

        assert fingerprints.index_fingerprint() == applied

    def test_rollback_of_unknown_block_is_a_noop(self, ingest):
        ingest(reveal_block(100, TX_A))

        result = ingest(as_rollback(reveal_block(101, TX_B)))

        assert result.rolled_back == []
        assert result.skipped == [(101, random_hash("block-101")[2:])]

    def test_rollback_below_tip_is_rejected(self, db_session, ingest):
        first = reveal_block(100, TX_A)
        ingest(first)
        ingest(reveal_block(101, TX_B))

        with pytest.raises(OrderingError) as exc_info:
            ingest(as_rollback(first))

        assert exc_info.value.error_code == IngestionErrorCodes.ROLLBACK_NOT_AT_TIP
        assert db_session.query(Inscription).count() == 2

    def test_fork_switch_reuses_freed_number(self, db_session, ingest):
        ingest(reveal_block(100, TX_A, inscription_number=0))
        ingest(reveal_block(101, TX_B, block_hash=random_hash("fork-a"), inscription_number=1))

        payload = (
            ChainhookPayloadBuilder()
            .rollback()
            .block(height=101, hash=random_hash("fork-a"))
            .transaction(hash=TX_B)
            .inscription_revealed(**reveal_fields(TX_B, inscription_number=1))
            .apply()
            .block(height=101, hash=random_hash("fork-b"))
            .transaction(hash=TX_C)
            .inscription_revealed(**reveal_fields(TX_C, inscription_number=1))
            .build()
        )
        result = ingest(payload)

        assert result.rolled_back == [(101, random_hash("fork-a")[2:])]
        assert result.applied == [(101, random_hash("fork-b")[2:])]
        assert db_session.query(Inscription).filter_by(genesis_id=ID_B).first() is None
        assert db_session.query(Inscription).filter_by(genesis_id=ID_C).one().number == 1
        assert db_session.get(ProcessedBlock, 101).block_hash == random_hash("fork-b")[2:]

    def test_numbering_stays_dense_across_repeated_forks(self, db_session, ingest):
        tx = [random_hash(f"tx-{i}") for i in range(10)]
        first = reveals_block(100, [(tx[0], blessed(0))])
        fork_a_101 = reveals_block(101, [(tx[1], cursed(-1))], block_hash=random_hash("fork-a-101"))
        fork_a_102 = reveals_block(
            102, [(tx[2], blessed(1)), (tx[3], cursed(-2))], block_hash=random_hash("fork-a-102")
        )
        for payload in (first, fork_a_101, fork_a_102):
            ingest(payload)
        assert numbers_by_class(db_session) == ([0, 1], [-2, -1])

        fork_b_101 = reveals_block(
            101, [(tx[4], blessed(1)), (tx[5], cursed(-1))], block_hash=random_hash("fork-b-101")
        )
        fork_b_102 = reveals_block(
            102, [(tx[6], cursed(-2)), (tx[7], blessed(2))], block_hash=random_hash("fork-b-102")
        )
        result = ingest(
            {
                "rollback": fork_a_101["apply"] + fork_a_102["apply"],
                "apply": fork_b_101["apply"] + fork_b_102["apply"],
            }
        )

        assert [height for height, _ in result.rolled_back] == [102, 101]
        assert [height for height, _ in result.applied] == [101, 102]
        assert numbers_by_class(db_session) == ([0, 1, 2], [-2, -1])
        for tx_hash in tx[1:4]:
            assert db_session.query(Inscription).filter_by(genesis_id=f"{tx_hash[2:]}i0").first() is None

        fork_c_102 = reveals_block(
            102, [(tx[8], cursed(-2)), (tx[9], cursed(-3))], block_hash=random_hash("fork-c-102")
        )
        ingest({"rollback": fork_b_102["apply"], "apply": fork_c_102["apply"]})

        assert numbers_by_class(db_session) == ([0, 1], [-3, -2, -1])
        numbers = {i.genesis_id: i.number for i in db_session.query(Inscription).all()}
        assert numbers[f"{tx[5][2:]}i0"] == -1
        assert numbers[f"{tx[8][2:]}i0"] == -2
        assert numbers[f"{tx[9][2:]}i0"] == -3

    def test_transfer_chain_unwinds_one_hop_at_a_time(self, db_session, ingest, fingerprints):
        ingest(reveal_block(100, TX_A))
        at_genesis = fingerprints.inscription_fingerprint(genesis_id=ID_A)

        two_hops = (
            ChainhookPayloadBuilder()
            .block(height=101)
            .transaction(hash=TX_B)
            .inscription_transferred(**transfer_fields(ID_A, f"{TX_A[2:]}:0:0", f"{TX_B[2:]}:0:0"))
            .transaction(hash=TX_C)
            .inscription_transferred(**transfer_fields(ID_A, f"{TX_B[2:]}:0:0", f"{TX_C[2:]}:1:0"))
            .build()
        )
        ingest(two_hops)
        assert current_location(db_session, ID_A).output == f"{TX_C[2:]}:1"
        after_two_hops = fingerprints.inscription_fingerprint(genesis_id=ID_A)

        third_hop = transfer_block(102, TX_D, ID_A, f"{TX_C[2:]}:1:0", f"{TX_D[2:]}:0:0")
        ingest(third_hop)
        assert current_location(db_session, ID_A).output == f"{TX_D[2:]}:0"
        assert db_session.query(Location).count() == 4

        ingest(as_rollback(third_hop))
        assert current_location(db_session, ID_A).output == f"{TX_C[2:]}:1"
        assert fingerprints.inscription_fingerprint(genesis_id=ID_A) == after_two_hops

        ingest(as_rollback(two_hops))
        location = current_location(db_session, ID_A)
        assert location.genesis is True
        assert location.output == f"{TX_A[2:]}:0"
        assert db_session.query(Location).count() == 1
        assert fingerprints.inscription_fingerprint(genesis_id=ID_A) == at_genesis

        ingest(two_hops)
        ingest(third_hop)
        assert current_location(db_session, ID_A).output == f"{TX_D[2:]}:0"


class TestRejectedBlocks:
    def test_gap_is_rejected(self, db_session, ingest):
        ingest(reveal_block(100, TX_A))

        with pytest.raises(OrderingError) as exc_info:
            ingest(reveal_block(102, TX_B))

        assert exc_info.value.error_code == IngestionErrorCodes.OUT_OF_SEQUENCE
        assert exc_info.value.tip_height == 100
        assert db_session.query(Inscription).count() == 1

    def test_parent_mismatch_is_rejected(self, ingest):
        ingest(reveal_block(100, TX_A))
        payload = (
            ChainhookPayloadBuilder()
            .block(height=101, parent_hash=random_hash("other-parent"))
            .transaction(hash=TX_B)
            .inscription_revealed(**reveal_fields(TX_B))
            .build()
        )

        with pytest.raises(OrderingError):
            ingest(payload)

    def test_unknown_inscription_aborts_block(self, db_session, ingest):
        ingest(reveal_block(100, TX_A))
        payload = (
            ChainhookPayloadBuilder()
            .block(height=101)
            .transaction(hash=TX_B)
            .inscription_revealed(**reveal_fields(TX_B, inscription_number=1))
            .transaction(hash=TX_C)
            .inscription_transferred(**transfer_fields(ID_C, f"{TX_C[2:]}:0:0", f"{TX_C[2:]}:1:0"))
            .build()
        )

        with pytest.raises(UnknownInscriptionError):
            ingest(payload)

        assert db_session.query(Inscription).count() == 1
        assert db_session.get(ProcessedBlock, 101) is None

    def test_satpoint_discontinuity_is_rejected(self, db_session, ingest):
        ingest(reveal_block(100, TX_A))

        with pytest.raises(SatpointMismatchError):
            ingest(transfer_block(101, TX_B, ID_A, f"{TX_B[2:]}:3:0", f"{TX_B[2:]}:1:0"))

        assert current_location(db_session, ID_A).genesis is True

    def test_reveal_in_second_block_is_rejected(self, ingest):
        ingest(reveal_block(100, TX_A))

        with pytest.raises(InvariantViolationError) as exc_info:
            ingest(reveal_block(101, TX_A))

        assert exc_info.value.error_code == IngestionErrorCodes.DUPLICATE_GENESIS

    def test_fresh_coordinator_resumes_after_failed_block(self, db_session, ingest):
        ingest(reveal_block(100, TX_A))
        bad = reveals_block(101, [(TX_B, blessed(1))])
        bad["apply"][0]["transactions"][0]["metadata"]["ordinal_operations"].append(
            {"inscription_transferred": transfer_fields(ID_C, f"{TX_C[2:]}:0:0", f"{TX_C[2:]}:1:0")}
        )
        with pytest.raises(UnknownInscriptionError):
            ingest(bad)

        session = sessionmaker(autocommit=False, autoflush=False, bind=db_session.get_bind())()
        try:
            resumed = ReorgCoordinator(session)
            assert resumed.get_last_processed_height() == 100

            parser = ChainhookPayloadParser()
            result = resumed.process_payload(parser.parse_payload(reveal_block(101, TX_B, inscription_number=1)))
            assert result.applied == [(101, random_hash("block-101")[2:])]
            resumed.process_payload(parser.parse_payload(reveal_block(102, TX_C, inscription_number=2)))
            assert resumed.get_last_processed_height() == 102
        finally:
            session.close()

        db_session.expire_all()
        assert [n for (n,) in db_session.query(Inscription.number).order_by(Inscription.number)] == [0, 1, 2]
        assert db_session.query(ProcessedBlock).count() == 3


class TestFingerprints:
    def test_index_fingerprint_tracks_every_location_timestamp(self, db_session, ingest, fingerprints):
        for height, tx_hash, timestamp in ((100, TX_A, 1000), (101, TX_B, 5000)):
            ingest(
                ChainhookPayloadBuilder()
                .block(height=height, timestamp=timestamp)
                .transaction(hash=tx_hash)
                .inscription_revealed(**reveal_fields(tx_hash, inscription_number=height - 100))
                .build()
            )
        before = fingerprints.index_fingerprint()

        # Neither the row count nor the newest timestamp moves
        db_session.query(Location).filter(Location.genesis_id == ID_A).update(
            {Location.timestamp: datetime(1970, 1, 1, 0, 40)}, synchronize_session=False
        )
        db_session.commit()

        assert fingerprints.index_fingerprint() != before

    def test_index_fingerprint_ignores_replays(self, ingest, fingerprints):
        ingest(reveal_block(100, TX_A))
        ingest(transfer_block(101, TX_B, ID_A, f"{TX_A[2:]}:0:0", f"{TX_B[2:]}:1:0"))
        before = fingerprints.index_fingerprint()

        ingest(transfer_block(101, TX_B, ID_A, f"{TX_A[2:]}:0:0", f"{TX_B[2:]}:1:0"))

        assert fingerprints.index_fingerprint() == before
