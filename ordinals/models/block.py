from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from .base import Base


class ProcessedBlock(Base):
    """A block whose inscription activity is currently applied to the ledger"""

    __tablename__ = "processed_blocks"

    height = Column(Integer, primary_key=True)
    block_hash = Column(String, unique=True, nullable=False)
    parent_hash = Column(String, nullable=True)
    processed_at = Column(DateTime, default=func.now())
    timestamp = Column(DateTime, nullable=True)  # Bitcoin block timestamp
    tx_count = Column(Integer, nullable=False, default=0)
    inscriptions_revealed = Column(Integer, nullable=False, default=0)
    blessed_revealed = Column(Integer, nullable=False, default=0)
    cursed_revealed = Column(Integer, nullable=False, default=0)
    transfers = Column(Integer, nullable=False, default=0)
    inscription_count_accum = Column(Integer, nullable=False, default=0)
    state_hash = Column(
        String,
        nullable=False,
        comment="Change fingerprint of the ledger after this block was applied",
    )
