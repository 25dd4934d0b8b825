"""Google Maps Places lookup for local business leads.

Zones are geocoded, searched once per target keyword, deduplicated by
place_id and enriched with place details. Hotels and other lodging are
never returned.
"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Tuple

import googlemaps
from googlemaps.exceptions import ApiError, TransportError, Timeout

from ..config import config
from ..logging_utils import get_logger
from ..models import PlaceRecord

logger = get_logger(__name__)

MAX_KEYWORDS_PER_ZONE = 5
DETAILS_DELAY_SECONDS = 0.1

HOTEL_TYPES = frozenset({"lodging", "hotel", "motel", "hostel", "guest_house"})
LODGING_TYPES = HOTEL_TYPES | {"campground", "rv_park"}

# Activities that genuinely need a web presence
HIGH_VALUE_TYPES = frozenset({
    "restaurant", "cafe", "bar", "bakery", "meal_takeaway", "food",
    "store", "clothing_store", "shoe_store", "jewelry_store",
    "furniture_store", "home_goods_store", "electronics_store", "book_store",
    "beauty_salon", "hair_care", "spa", "gym", "fitness_center",
    "lawyer", "accounting", "insurance_agency", "real_estate_agency",
    "car_dealer", "car_repair", "dentist", "doctor", "physiotherapist",
    "veterinary_care", "pharmacy", "florist", "pet_store",
    "shopping_mall", "department_store", "supermarket",
})

# "type" is the Place Details field name; the response key is "types"
DETAIL_FIELDS = [
    "place_id",
    "name",
    "formatted_address",
    "formatted_phone_number",
    "website",
    "rating",
    "user_ratings_total",
    "type",
]

_GOOGLE_ERRORS = (ApiError, TransportError, Timeout)


class PlacesError(Exception):
    """Raised when a zone cannot be geocoded or searched."""

    pass


def _has_type(types: Iterable[str], excluded: frozenset) -> bool:
    return any(place_type in excluded for place_type in types)


def parse_place(place_data: Dict[str, Any]) -> PlaceRecord:
    """Parse a raw Places API result into a PlaceRecord."""
    return PlaceRecord(
        place_id=place_data.get("place_id", ""),
        name=place_data.get("name", ""),
        address=place_data.get(
            "formatted_address", place_data.get("vicinity", "")
        ),
        phone=place_data.get("formatted_phone_number"),
        website=place_data.get("website"),
        rating=place_data.get("rating"),
        review_count=place_data.get("user_ratings_total"),
        types=place_data.get("types", []),
    )


def filter_relevant_businesses(
    places: List[PlaceRecord],
    min_reviews: Optional[int] = None,
    min_rating: Optional[float] = None,
) -> List[PlaceRecord]:
    """Keep active, well-rated businesses of a web-dependent type.

    Args:
        places: Candidate places.
        min_reviews: Minimum review count. Defaults to config.MIN_REVIEWS.
        min_rating: Minimum rating. Defaults to config.MIN_RATING.

    Returns:
        The relevant places, in input order.
    """
    min_reviews = min_reviews if min_reviews is not None else config.MIN_REVIEWS
    min_rating = min_rating if min_rating is not None else config.MIN_RATING

    relevant: List[PlaceRecord] = []
    for place in places:
        if _has_type(place.types, LODGING_TYPES):
            logger.debug("Excluded lodging", extra={"place_name": place.name})
            continue
        if not place.review_count or place.review_count < min_reviews:
            continue
        if not place.rating or place.rating < min_rating:
            continue
        if not _has_type(place.types, HIGH_VALUE_TYPES):
            logger.debug(
                "Skipped irrelevant type",
                extra={"place_name": place.name, "types": place.types},
            )
            continue
        relevant.append(place)

    return relevant


class PlacesClient:
    """Client for the Google Maps Geocoding, Nearby Search and Details APIs.

    Attributes:
        radius_meters: Search radius around each zone center.
        max_results: Maximum places returned per zone.
        keywords: Target keywords; only the first five are searched.
        delay_seconds: Pause between nearby searches.

    Example:
        >>> client = PlacesClient()
        >>> places = await client.search_zone("Lyon 7, France")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[googlemaps.Client] = None,
        radius_meters: Optional[int] = None,
        max_results: Optional[int] = None,
        keywords: Optional[List[str]] = None,
        delay_seconds: Optional[float] = None,
    ) -> None:
        """Initialize the places client.

        Args:
            api_key: Google Maps API key. Defaults to config value.
            client: Preconfigured googlemaps.Client.
            radius_meters: Search radius. Defaults to config value.
            max_results: Results per zone. Defaults to config value.
            keywords: Search keywords. Defaults to config value.
            delay_seconds: Pause between searches. Defaults to config value.

        Raises:
            ConfigError: If no client is given and no API key is configured.
        """
        if client is None:
            if api_key is None:
                config.validate_for_places()
                api_key = config.GOOGLE_MAPS_API_KEY
            client = googlemaps.Client(key=api_key)

        self._client = client
        self.radius_meters = radius_meters or config.SEARCH_RADIUS_METERS
        self.max_results = max_results or config.MAX_RESULTS_PER_ZONE
        self.keywords = keywords or config.SEARCH_KEYWORDS
        self.delay_seconds = (
            delay_seconds
            if delay_seconds is not None
            else config.PLACES_DELAY_MS / 1000
        )

    async def geocode(self, zone: str) -> Tuple[float, float]:
        """Convert a zone name to latitude/longitude.

        Raises:
            PlacesError: If the zone cannot be geocoded.
        """
        loop = asyncio.get_event_loop()
        try:
            results = await loop.run_in_executor(
                None, lambda: self._client.geocode(zone)
            )
        except _GOOGLE_ERRORS as e:
            raise PlacesError(f"Impossible de géocoder: {zone} ({e})") from e

        if not results:
            raise PlacesError(f"Impossible de géocoder: {zone}")

        location = results[0]["geometry"]["location"]
        lat, lng = location["lat"], location["lng"]
        logger.debug("Geocoded zone", extra={"zone": zone, "lat": lat, "lng": lng})
        return (lat, lng)

    async def _nearby(
        self, location: Tuple[float, float], keyword: str
    ) -> List[Dict[str, Any]]:
        loop = asyncio.get_event_loop()
        try:
            response = await loop.run_in_executor(
                None,
                lambda: self._client.places_nearby(
                    location=location,
                    radius=self.radius_meters,
                    keyword=keyword,
                ),
            )
        except _GOOGLE_ERRORS as e:
            logger.warning(
                "Nearby search failed", extra={"keyword": keyword, "error": str(e)}
            )
            return []
        return response.get("results", [])

    async def fetch_details(self, place_id: str) -> Optional[Dict[str, Any]]:
        """Fetch place details; None when the lookup fails."""
        loop = asyncio.get_event_loop()
        try:
            response = await loop.run_in_executor(
                None,
                lambda: self._client.place(place_id, fields=DETAIL_FIELDS),
            )
        except _GOOGLE_ERRORS as e:
            logger.warning(
                "Failed to fetch place details",
                extra={"place_id": place_id, "error": str(e)},
            )
            return None
        return response.get("result") or None

    async def search_zone(self, zone: str) -> List[PlaceRecord]:
        """Search one zone for target businesses.

        Args:
            zone: Free-form location, e.g. "Lyon 7, France".

        Returns:
            Detailed place records, deduplicated, hotels excluded.

        Raises:
            PlacesError: If the zone cannot be geocoded.
        """
        location = await self.geocode(zone)
        found: Dict[str, Dict[str, Any]] = {}

        for keyword in self.keywords[:MAX_KEYWORDS_PER_ZONE]:
            for place_data in await self._nearby(location, keyword):
                place_id = place_data.get("place_id")
                if not place_id or place_id in found:
                    continue
                if _has_type(place_data.get("types", []), HOTEL_TYPES):
                    continue
                found[place_id] = place_data

            await asyncio.sleep(self.delay_seconds)
            if len(found) >= self.max_results:
                break

        candidates = list(found.values())[: self.max_results]
        logger.info(
            "Zone searched",
            extra={"zone": zone, "candidates": len(candidates)},
        )

        places: List[PlaceRecord] = []
        for place_data in candidates:
            details = await self.fetch_details(place_data["place_id"])
            if details:
                details.setdefault("place_id", place_data["place_id"])
                places.append(parse_place(details))
            await asyncio.sleep(DETAILS_DELAY_SECONDS if self.delay_seconds else 0)

        return places

    def close(self) -> None:
        """Clean up client resources."""
        session = getattr(self._client, "session", None)
        if session is not None:
            session.close()

    async def __aenter__(self) -> "PlacesClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
