"""Lead sources: Google Maps places and the freelance project feed."""

from .feed import FeedResult, FeedSource
from .places import PlacesClient, PlacesError, filter_relevant_businesses

__all__ = [
    "FeedResult",
    "FeedSource",
    "PlacesClient",
    "PlacesError",
    "filter_relevant_businesses",
]
