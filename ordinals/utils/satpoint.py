"""Satpoint value type: a sat's position as tx id, output index and offset."""

from typing import NamedTuple, Optional

from ordinals.utils.exceptions import IngestionErrorCodes, MalformedEventError


def normalize_hex(value: str) -> str:
    """Strip an optional 0x prefix and lowercase a hex string"""
    if value[:2].lower() == "0x":
        value = value[2:]
    return value.lower()


class SatPoint(NamedTuple):
    tx_id: str
    vout: int
    offset: int

    @property
    def output(self) -> str:
        return f"{self.tx_id}:{self.vout}"

    def __str__(self):
        return f"{self.tx_id}:{self.vout}:{self.offset}"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SatPoint":
        """Parse a `<tx_id>:<output_index>:<offset>` string"""
        if not isinstance(value, str):
            raise MalformedEventError(f"Invalid satpoint: {value!r}", IngestionErrorCodes.INVALID_SATPOINT)

        parts = value.split(":")
        if len(parts) != 3 or not parts[0]:
            raise MalformedEventError(f"Invalid satpoint: {value!r}", IngestionErrorCodes.INVALID_SATPOINT)

        tx_id, vout, offset = parts
        try:
            vout_int = int(vout)
            offset_int = int(offset)
        except ValueError:
            raise MalformedEventError(f"Invalid satpoint: {value!r}", IngestionErrorCodes.INVALID_SATPOINT)

        if vout_int < 0 or offset_int < 0:
            raise MalformedEventError(f"Invalid satpoint: {value!r}", IngestionErrorCodes.INVALID_SATPOINT)

        return cls(normalize_hex(tx_id), vout_int, offset_int)
