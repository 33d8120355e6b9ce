from .base import Base
from .block import ProcessedBlock
from .inscription import Inscription
from .location import Location
from .current_location import CurrentLocation

__all__ = [
    "Base",
    "ProcessedBlock",
    "Inscription",
    "Location",
    "CurrentLocation",
]
