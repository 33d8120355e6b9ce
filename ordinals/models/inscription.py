from sqlalchemy import Column, Integer, BigInteger, String, DateTime, LargeBinary, Index
from sqlalchemy.orm import relationship
from .base import Base


class Inscription(Base):
    __tablename__ = "inscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    genesis_id = Column(String, unique=True, nullable=False)
    number = Column(BigInteger, unique=True, nullable=False)
    number_hint = Column(BigInteger, nullable=True, comment="Number reported by the event source")

    mime_type = Column(String, nullable=False, index=True)
    content_type = Column(String, nullable=False)
    content_length = Column(Integer, nullable=False)
    content = Column(LargeBinary, nullable=True)
    fee = Column(BigInteger, nullable=False)

    genesis_block_height = Column(Integer, nullable=False, index=True)
    genesis_block_hash = Column(String, nullable=False, index=True)
    genesis_tx_id = Column(String, nullable=False)
    genesis_tx_index = Column(Integer, nullable=False)
    genesis_op_index = Column(Integer, nullable=False, default=0)
    genesis_address = Column(String, nullable=True, index=True)
    genesis_timestamp = Column(DateTime, nullable=False)

    sat_ordinal = Column(BigInteger, nullable=False, index=True)
    sat_rarity = Column(String, nullable=False, index=True)
    sat_coinbase_height = Column(Integer, nullable=False)
    curse_type = Column(String, nullable=True, comment="NULL for blessed inscriptions")

    locations = relationship(
        "Location",
        back_populates="inscription",
        order_by="Location.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index(
            "ix_inscriptions_genesis_position",
            "genesis_block_height",
            "genesis_tx_index",
            "genesis_op_index",
        ),
    )

    @property
    def is_cursed(self) -> bool:
        return self.curse_type is not None
