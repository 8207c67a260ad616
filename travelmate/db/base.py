"""
Database base configuration
Imports all models to ensure they're registered with SQLModel metadata
"""

from sqlmodel import SQLModel

from travelmate.db.models import (
    User,
    Destination,
    Trip,
    Stay,
    Restaurant,
    Rental,
    Activity,
    Review,
    Booking,
    Image,
)

Base = SQLModel.metadata

__all__ = [
    "Base",
    "SQLModel",
    "User",
    "Destination",
    "Trip",
    "Stay",
    "Restaurant",
    "Rental",
    "Activity",
    "Review",
    "Booking",
    "Image",
]
