"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """
    Trip lifecycle status.
    
    Derived from the departure/arrival window and the current time; the stored
    value is a cache refreshed by the status reconciler.
    """
    UPCOMING = "upcoming"  # Departure still ahead
    ACTIVE = "active"  # Between departure and arrival, inclusive
    COMPLETED = "completed"  # Arrival has passed
    INVALID = "invalid"  # Arrival before departure; never bookable


class LocationDirection(str, enum.Enum):
    """Which trip field a location lookup searches."""
    FROM = "from"  # origin
    TO = "to"  # destination
