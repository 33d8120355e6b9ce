from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from .base import Base


class Location(Base):
    """One output an inscription has occupied, from reveal onwards"""

    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    inscription_id = Column(Integer, ForeignKey("inscriptions.id"), nullable=False)
    genesis_id = Column(String, nullable=False, index=True)

    block_height = Column(Integer, nullable=False, index=True)
    block_hash = Column(String, nullable=False, index=True)
    tx_id = Column(String, nullable=False)
    tx_index = Column(Integer, nullable=False, comment="Transaction position within the block")
    op_index = Column(Integer, nullable=False, default=0, comment="Operation position within the transaction")

    output = Column(String, nullable=False, index=True, comment="<tx_id>:<vout>")
    offset = Column(BigInteger, nullable=True)
    address = Column(String, nullable=True, index=True)
    value = Column(BigInteger, nullable=True)
    genesis = Column(Boolean, nullable=False, default=False)
    timestamp = Column(DateTime, nullable=False)

    inscription = relationship("Inscription", back_populates="locations")

    __table_args__ = (
        Index(
            "ix_locations_inscription_position",
            "inscription_id",
            "block_height",
            "tx_index",
            "op_index",
            unique=True,
        ),
    )

    @property
    def satpoint(self) -> str:
        return f"{self.output}:{self.offset}"
