from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base


class CurrentLocation(Base):
    """Projection of each inscription's latest surviving location"""

    __tablename__ = "current_locations"

    inscription_id = Column(Integer, ForeignKey("inscriptions.id"), primary_key=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, unique=True)
    block_height = Column(Integer, nullable=False)
    address = Column(String, nullable=True, index=True)

    location = relationship("Location")
