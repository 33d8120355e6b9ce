"""
Location ledger access layer.

Owns every read and write against the inscriptions, locations and
current_locations tables made by the ingestion path, and keeps the current
location projection equal to the latest surviving location row.
"""

from typing import Optional, Tuple

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from ordinals.models.current_location import CurrentLocation
from ordinals.models.inscription import Inscription
from ordinals.models.location import Location
from ordinals.utils.exceptions import IngestionErrorCodes, InvariantViolationError


class LocationLedger:
    """Per-inscription location history and its current-location projection"""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.logger = structlog.get_logger()

    # Inscriptions

    def get_inscription(self, genesis_id: str) -> Optional[Inscription]:
        return self.db.query(Inscription).filter_by(genesis_id=genesis_id).first()

    def get_inscription_by_number(self, number: int) -> Optional[Inscription]:
        return self.db.query(Inscription).filter_by(number=number).first()

    def number_bounds(self) -> Tuple[Optional[int], Optional[int]]:
        """Highest blessed and lowest cursed number currently assigned"""
        max_blessed = (
            self.db.query(func.max(Inscription.number)).filter(Inscription.curse_type.is_(None)).scalar()
        )
        min_cursed = (
            self.db.query(func.min(Inscription.number)).filter(Inscription.curse_type.isnot(None)).scalar()
        )
        return max_blessed, min_cursed

    def latest_genesis_position(self, cursed: bool) -> Optional[Tuple[int, int, int]]:
        """Genesis (height, tx_index, op_index) of the last numbered inscription of a class"""
        query = self.db.query(Inscription)
        if cursed:
            query = query.filter(Inscription.curse_type.isnot(None)).order_by(Inscription.number.asc())
        else:
            query = query.filter(Inscription.curse_type.is_(None)).order_by(Inscription.number.desc())
        last = query.first()
        if last is None:
            return None
        return last.genesis_block_height, last.genesis_tx_index, last.genesis_op_index

    def insert_inscription(self, inscription: Inscription) -> Inscription:
        if self.get_inscription_by_number(inscription.number) is not None:
            raise InvariantViolationError(
                IngestionErrorCodes.NUMBER_COLLISION,
                f"Number {inscription.number} is already assigned",
            )
        self.db.add(inscription)
        self.db.flush()
        return inscription

    def delete_inscription(self, inscription: Inscription) -> int:
        """Remove an inscription with its projection and every location; returns locations deleted"""
        current = self.db.get(CurrentLocation, inscription.id)
        if current is not None:
            self.db.delete(current)
            self.db.flush()

        deleted = self.count_locations(inscription)
        # Locations go with the inscription through the relationship cascade
        self.db.delete(inscription)
        self.db.flush()
        return deleted

    # Locations

    def find_location(self, inscription: Inscription, block_hash: str, tx_index: int, op_index: int) -> Optional[Location]:
        return (
            self.db.query(Location)
            .filter_by(
                inscription_id=inscription.id,
                block_hash=block_hash,
                tx_index=tx_index,
                op_index=op_index,
            )
            .first()
        )

    def latest_location(self, inscription: Inscription) -> Optional[Location]:
        return (
            self.db.query(Location)
            .filter_by(inscription_id=inscription.id)
            .order_by(
                Location.block_height.desc(),
                Location.tx_index.desc(),
                Location.op_index.desc(),
            )
            .first()
        )

    def count_locations(self, inscription: Inscription) -> int:
        return self.db.query(Location).filter_by(inscription_id=inscription.id).count()

    def insert_location(self, location: Location) -> Location:
        latest = self.latest_location(location.inscription)
        if latest is not None and (latest.block_height, latest.tx_index, latest.op_index) >= (
            location.block_height,
            location.tx_index,
            location.op_index,
        ):
            raise InvariantViolationError(
                IngestionErrorCodes.LOCATION_MISMATCH,
                f"Location of {location.genesis_id} at block {location.block_height} "
                f"does not follow its latest location at block {latest.block_height}",
            )
        self.db.add(location)
        self.db.flush()
        self.refresh_current_location(location.inscription)
        return location

    def delete_location(self, location: Location) -> None:
        inscription = location.inscription
        current = self.db.get(CurrentLocation, inscription.id)
        if current is not None and current.location_id == location.id:
            self.db.delete(current)
            self.db.flush()

        self.db.delete(location)
        self.db.flush()
        self.db.expire(inscription, ["locations"])
        self.refresh_current_location(inscription)

    def refresh_current_location(self, inscription: Inscription) -> Optional[CurrentLocation]:
        """Point the projection at the latest surviving location"""
        latest = self.latest_location(inscription)
        current = self.db.get(CurrentLocation, inscription.id)

        if latest is None:
            if current is not None:
                self.db.delete(current)
                self.db.flush()
            return None

        if current is None:
            current = CurrentLocation(inscription_id=inscription.id)
            self.db.add(current)

        current.location_id = latest.id
        current.block_height = latest.block_height
        current.address = latest.address
        self.db.flush()
        return current

    def current_location(self, inscription: Inscription) -> Optional[Location]:
        current = self.db.get(CurrentLocation, inscription.id)
        if current is None:
            return None
        return self.db.get(Location, current.location_id)

    def count_block_residue(self, block_hash: str) -> int:
        """Rows still attributed to a block; zero after a complete rollback"""
        inscriptions = self.db.query(Inscription).filter_by(genesis_block_hash=block_hash).count()
        locations = self.db.query(Location).filter_by(block_hash=block_hash).count()
        return inscriptions + locations
