"""
TripSync - Offline sync layer for a travel planner
==================================================

Keeps itinerary edits and map lookups working when the network does not.

Modules:
- core: Configuration, logging, errors, events, retry, connectivity
- sync: Offline change queue replayed against the trip backend
- geo: Cached geocoding and weather lookups
- app: Composition root wiring everything together
"""

__version__ = "1.0.0"
__author__ = "TripSync Project"
