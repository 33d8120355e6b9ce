from typing import Dict, List, Optional, Union

import structlog
from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Session

from ordinals.models.block import ProcessedBlock
from ordinals.models.current_location import CurrentLocation
from ordinals.models.inscription import Inscription
from ordinals.models.location import Location
from ordinals.utils.sat import Sat, SatRarity
from ordinals.utils.satpoint import normalize_hex

logger = structlog.get_logger()

RARITY_RANK = {rarity.value: rank for rank, rarity in enumerate(SatRarity)}

ORDER_COLUMNS = {
    "number": Inscription.number,
    "genesis_block_height": Inscription.genesis_block_height,
    "ordinal": Inscription.sat_ordinal,
    "rarity": case(RARITY_RANK, value=Inscription.sat_rarity, else_=-1),
}


def inscription_key(id_or_number: Union[str, int]) -> Dict:
    """Tell an inscription number from a genesis id (`<tx_id>i<index>`)"""
    if isinstance(id_or_number, int):
        return {"number": id_or_number}
    value = str(id_or_number).strip()
    if value.lstrip("-").isdigit():
        return {"number": int(value)}
    return {"genesis_id": value.lower()}


def inscription_key_filter(id_or_number: Union[str, int]):
    key = inscription_key(id_or_number)
    if "number" in key:
        return Inscription.number == key["number"]
    return Inscription.genesis_id == key["genesis_id"]


def location_before(location: Location):
    """Locations that precede `location` in (block_height, tx_index, op_index) order"""
    return or_(
        Location.block_height < location.block_height,
        and_(
            Location.block_height == location.block_height,
            or_(
                Location.tx_index < location.tx_index,
                and_(Location.tx_index == location.tx_index, Location.op_index < location.op_index),
            ),
        ),
    )


class InscriptionQueryService:
    """Read side of the ledger: inscriptions, locations, block stats and sats"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def _inscriptions_with_location(self):
        return (
            self.db.query(Inscription, Location)
            .outerjoin(CurrentLocation, CurrentLocation.inscription_id == Inscription.id)
            .outerjoin(Location, Location.id == CurrentLocation.location_id)
        )

    def find_inscription(self, id_or_number: Union[str, int]) -> Optional[Inscription]:
        return self.db.query(Inscription).filter(inscription_key_filter(id_or_number)).first()

    def get_inscription(self, id_or_number: Union[str, int]) -> Optional[Dict]:
        row = self._inscriptions_with_location().filter(inscription_key_filter(id_or_number)).first()
        if row is None:
            return None
        return self._inscription_row(*row)

    def get_inscription_content(self, id_or_number: Union[str, int]) -> Optional[Dict]:
        inscription = self.find_inscription(id_or_number)
        if inscription is None:
            return None
        return {
            "content": inscription.content or b"",
            "content_type": inscription.content_type,
            "content_length": inscription.content_length,
        }

    def list_inscriptions(
        self,
        filters: Optional[Dict] = None,
        order_by: str = "number",
        order: str = "desc",
        start: int = 0,
        size: int = 20,
    ) -> Dict:
        """Filtered, ordered and paginated inscription listing"""
        filters = filters or {}
        query = self._inscriptions_with_location()

        if filters.get("address"):
            query = query.filter(CurrentLocation.address == filters["address"])
        if filters.get("genesis_address"):
            query = query.filter(Inscription.genesis_address == filters["genesis_address"])
        if filters.get("from_genesis_block_height") is not None:
            query = query.filter(Inscription.genesis_block_height >= filters["from_genesis_block_height"])
        if filters.get("to_genesis_block_height") is not None:
            query = query.filter(Inscription.genesis_block_height <= filters["to_genesis_block_height"])
        if filters.get("from_number") is not None:
            query = query.filter(Inscription.number >= filters["from_number"])
        if filters.get("to_number") is not None:
            query = query.filter(Inscription.number <= filters["to_number"])
        if filters.get("rarity"):
            query = query.filter(Inscription.sat_rarity.in_(filters["rarity"]))
        if filters.get("mime_type"):
            query = query.filter(Inscription.mime_type.in_(filters["mime_type"]))
        if filters.get("cursed") is True:
            query = query.filter(Inscription.curse_type.isnot(None))
        elif filters.get("cursed") is False:
            query = query.filter(Inscription.curse_type.is_(None))

        if order_by not in ORDER_COLUMNS:
            raise ValueError(f"Unsupported order_by: {order_by}")
        column = ORDER_COLUMNS[order_by]
        if order == "asc":
            query = query.order_by(column.asc(), Inscription.number.asc())
        elif order == "desc":
            query = query.order_by(column.desc(), Inscription.number.desc())
        else:
            raise ValueError(f"Unsupported order: {order}")

        total = query.count()
        rows = query.offset(start).limit(size).all()
        return {
            "total": total,
            "start": start,
            "size": size,
            "data": [self._inscription_row(inscription, location) for inscription, location in rows],
        }

    def get_location_history(self, id_or_number: Union[str, int], start: int = 0, size: int = 20) -> Optional[Dict]:
        """Every location of an inscription, genesis first; None if unknown"""
        inscription = self.find_inscription(id_or_number)
        if inscription is None:
            return None

        query = (
            self.db.query(Location)
            .filter(Location.inscription_id == inscription.id)
            .order_by(Location.block_height.asc(), Location.tx_index.asc(), Location.op_index.asc())
        )
        total = query.count()
        locations = query.offset(start).limit(size).all()
        return {
            "total": total,
            "start": start,
            "size": size,
            "data": [self._location_row(location) for location in locations],
        }

    def get_block_transfers(self, block: Union[str, int], start: int = 0, size: int = 20) -> Dict:
        """Transfers (non-genesis locations) recorded in a block, by height or hash"""
        query = (
            self.db.query(Location, Inscription)
            .join(Inscription, Inscription.id == Location.inscription_id)
            .filter(Location.genesis.is_(False))
        )
        if isinstance(block, int) or str(block).isdigit():
            query = query.filter(Location.block_height == int(block))
        else:
            query = query.filter(Location.block_hash == normalize_hex(str(block)))

        query = query.order_by(Location.tx_index.asc(), Location.op_index.asc())
        total = query.count()
        rows = query.offset(start).limit(size).all()

        data = []
        for location, inscription in rows:
            previous = (
                self.db.query(Location)
                .filter(
                    Location.inscription_id == inscription.id,
                    location_before(location),
                )
                .order_by(Location.block_height.desc(), Location.tx_index.desc(), Location.op_index.desc())
                .first()
            )
            row = self._location_row(location)
            row.update(
                {
                    "genesis_id": inscription.genesis_id,
                    "number": inscription.number,
                    "from": self._location_row(previous) if previous else None,
                }
            )
            data.append(row)

        return {"total": total, "start": start, "size": size, "data": data}

    def get_block_stats(self, from_height: Optional[int] = None, to_height: Optional[int] = None) -> List[Dict]:
        """Per-block inscription statistics, newest block first"""
        query = self.db.query(ProcessedBlock)
        if from_height is not None:
            query = query.filter(ProcessedBlock.height >= from_height)
        if to_height is not None:
            query = query.filter(ProcessedBlock.height <= to_height)
        blocks = query.order_by(ProcessedBlock.height.desc()).all()
        if not blocks:
            return []

        rarity_query = self.db.query(
            Inscription.genesis_block_height,
            Inscription.sat_rarity,
            func.count(Inscription.id),
        ).filter(Inscription.genesis_block_height.in_([block.height for block in blocks]))
        by_rarity: Dict[int, Dict[str, int]] = {}
        for height, rarity, count in rarity_query.group_by(
            Inscription.genesis_block_height, Inscription.sat_rarity
        ).all():
            by_rarity.setdefault(height, {})[rarity] = count

        return [
            {
                "block_height": block.height,
                "block_hash": block.block_hash,
                "timestamp": block.timestamp,
                "inscriptions": block.inscriptions_revealed,
                "blessed": block.blessed_revealed,
                "cursed": block.cursed_revealed,
                "transfers": block.transfers,
                "inscription_count_accum": block.inscription_count_accum,
                "by_rarity": by_rarity.get(block.height, {}),
            }
            for block in blocks
        ]

    def get_sat(self, ordinal: int) -> Dict:
        """Classifier facts of a sat plus its inscription count; ValueError if out of range"""
        sat = Sat(ordinal)
        inscription_count = self.db.query(func.count(Inscription.id)).filter(Inscription.sat_ordinal == ordinal).scalar()
        return {
            "ordinal": sat.ordinal,
            "coinbase_height": sat.height,
            "cycle": sat.cycle,
            "epoch": sat.epoch,
            "period": sat.period,
            "offset": sat.third,
            "decimal": sat.decimal,
            "degree": sat.degree,
            "name": sat.name,
            "percentile": sat.percentile,
            "rarity": sat.rarity.value,
            "inscription_count": inscription_count,
        }

    def get_sat_inscriptions(self, ordinal: int, start: int = 0, size: int = 20) -> Dict:
        Sat(ordinal)
        query = self._inscriptions_with_location().filter(Inscription.sat_ordinal == ordinal)
        total = query.count()
        rows = query.order_by(Inscription.number.asc()).offset(start).limit(size).all()
        return {
            "total": total,
            "start": start,
            "size": size,
            "data": [self._inscription_row(inscription, location) for inscription, location in rows],
        }

    def get_indexer_status(self) -> Dict:
        tip = self.db.query(ProcessedBlock).order_by(ProcessedBlock.height.desc()).first()
        max_blessed = self.db.query(func.max(Inscription.number)).filter(Inscription.curse_type.is_(None)).scalar()
        min_cursed = self.db.query(func.min(Inscription.number)).filter(Inscription.curse_type.isnot(None)).scalar()
        return {
            "block_height": tip.height if tip else None,
            "block_hash": tip.block_hash if tip else None,
            "max_inscription_number": max_blessed,
            "max_cursed_inscription_number": min_cursed,
        }

    @staticmethod
    def _inscription_row(inscription: Inscription, location: Optional[Location]) -> Dict:
        return {
            "genesis_id": inscription.genesis_id,
            "number": inscription.number,
            "curse_type": inscription.curse_type,
            "mime_type": inscription.mime_type,
            "content_type": inscription.content_type,
            "content_length": inscription.content_length,
            "fee": inscription.fee,
            "genesis_block_height": inscription.genesis_block_height,
            "genesis_block_hash": inscription.genesis_block_hash,
            "genesis_tx_id": inscription.genesis_tx_id,
            "genesis_address": inscription.genesis_address,
            "genesis_timestamp": inscription.genesis_timestamp,
            "sat_ordinal": inscription.sat_ordinal,
            "sat_rarity": inscription.sat_rarity,
            "sat_coinbase_height": inscription.sat_coinbase_height,
            "location": InscriptionQueryService._location_row(location) if location else None,
        }

    @staticmethod
    def _location_row(location: Location) -> Dict:
        return {
            "block_height": location.block_height,
            "block_hash": location.block_hash,
            "tx_id": location.tx_id,
            "output": location.output,
            "offset": location.offset,
            "address": location.address,
            "value": location.value,
            "genesis": location.genesis,
            "timestamp": location.timestamp,
        }
