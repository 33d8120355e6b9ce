"""
Ordinals indexer exceptions and standardized error codes
"""

from typing import Optional


class IngestionErrorCodes:
    """Standardized error codes for ingestion failures"""

    # Malformed events
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"
    INVALID_SATPOINT = "INVALID_SATPOINT"
    UNKNOWN_OPERATION = "UNKNOWN_OPERATION"
    UNKNOWN_INSCRIPTION = "UNKNOWN_INSCRIPTION"
    SATPOINT_MISMATCH = "SATPOINT_MISMATCH"

    # Ordering
    OUT_OF_SEQUENCE = "OUT_OF_SEQUENCE"
    ROLLBACK_NOT_AT_TIP = "ROLLBACK_NOT_AT_TIP"

    # Invariants
    NUMBER_COLLISION = "NUMBER_COLLISION"
    GENESIS_ORDER = "GENESIS_ORDER"
    DUPLICATE_GENESIS = "DUPLICATE_GENESIS"
    ROLLBACK_RESIDUE = "ROLLBACK_RESIDUE"
    LOCATION_MISMATCH = "LOCATION_MISMATCH"

    # System
    STORAGE_FAILURE = "STORAGE_FAILURE"


class IndexerError(Exception):

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class CodedIndexerError(IndexerError):
    """Indexer error carrying one of the IngestionErrorCodes"""

    def __init__(self, error_code: str, message: str):
        self.error_code = error_code
        super().__init__(f"{error_code}: {message}")
        self.message = message


class MalformedEventError(CodedIndexerError):
    """Payload is missing required fields or cannot exist given ordering rules"""

    def __init__(self, message: str, error_code: str = IngestionErrorCodes.INVALID_FIELD):
        super().__init__(error_code, message)


class UnknownInscriptionError(MalformedEventError):

    def __init__(self, genesis_id: str):
        self.genesis_id = genesis_id
        super().__init__(
            f"Inscription {genesis_id} is not known to the ledger",
            IngestionErrorCodes.UNKNOWN_INSCRIPTION,
        )


class SatpointMismatchError(MalformedEventError):

    def __init__(self, genesis_id: str, expected: str, found: str):
        self.genesis_id = genesis_id
        self.expected = expected
        self.found = found
        super().__init__(
            f"Inscription {genesis_id} is at {expected} but transfer spends {found}",
            IngestionErrorCodes.SATPOINT_MISMATCH,
        )


class OrderingError(CodedIndexerError):
    """Block does not extend (or is not at) the current chain tip"""

    def __init__(
        self,
        error_code: str,
        message: str,
        height: Optional[int] = None,
        block_hash: Optional[str] = None,
        tip_height: Optional[int] = None,
    ):
        self.height = height
        self.block_hash = block_hash
        self.tip_height = tip_height
        super().__init__(error_code, message)


class InvariantViolationError(CodedIndexerError):
    """Ledger invariant broken; indicates a classifier or ordering bug"""


class StorageError(CodedIndexerError):

    def __init__(self, message: str):
        super().__init__(IngestionErrorCodes.STORAGE_FAILURE, message)


class RegistrationError(IndexerError):
    """Chainhook node refused predicate registration"""
