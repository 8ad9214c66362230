"""Client-side listing filters used by search pages and filter panels."""

from __future__ import annotations

from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

from ..models.listing import DEFAULT_MAX_DISTANCE, DEFAULT_PRICE_RANGE, Listing, SearchFilters
from ..utils.logging import get_logger

LOGGER = get_logger("services.filters")

Predicate = Callable[[Listing], bool]
FilterInput = Union[SearchFilters, Mapping[str, Any], None]


def _guard(predicate: Predicate) -> Predicate:
    """A record that is missing the data a predicate needs simply does not match."""

    def wrapper(listing: Listing) -> bool:
        try:
            return bool(predicate(listing))
        except (AttributeError, KeyError, TypeError, ValueError):
            LOGGER.debug("malformed_listing id=%s predicate=%s", getattr(listing, "id", None), predicate.__name__)
            return False

    wrapper.__name__ = predicate.__name__
    return wrapper


def coerce_filters(filters: FilterInput) -> Optional[SearchFilters]:
    """Accept a full SearchFilters or a partial mapping layered over the defaults."""

    if filters is None or isinstance(filters, SearchFilters):
        return filters
    return SearchFilters().merge(**dict(filters))


def build_predicates(filters: SearchFilters) -> List[Predicate]:
    """Return one predicate per active filter field.

    A field is active when it differs from its default: a non-empty list, a
    non-zero threshold, the verified flag set, or a price range / walking
    distance other than the permissive defaults.
    """

    predicates: List[Predicate] = []

    if tuple(filters.price_range) != tuple(DEFAULT_PRICE_RANGE):
        low, high = filters.price_range

        def price_in_range(listing: Listing) -> bool:
            price = listing.price
            return price is not None and low <= price <= high

        predicates.append(price_in_range)

    if filters.house_types:
        accepted_types = set(filters.house_types)

        def type_accepted(listing: Listing) -> bool:
            return getattr(listing.type, "value", listing.type) in accepted_types

        predicates.append(type_accepted)

    if filters.estate:
        accepted_estates = set(filters.estate)

        def estate_accepted(listing: Listing) -> bool:
            return listing.location.estate in accepted_estates

        predicates.append(estate_accepted)

    if filters.amenities:
        required = list(filters.amenities)

        def amenities_available(listing: Listing) -> bool:
            available = set(listing.available_amenities())
            return all(name in available for name in required)

        predicates.append(amenities_available)

    if filters.min_rating:
        min_rating = filters.min_rating

        def rating_at_least(listing: Listing) -> bool:
            return listing.rating >= min_rating

        predicates.append(rating_at_least)

    if filters.safety_rating:
        min_safety = filters.safety_rating

        def safety_at_least(listing: Listing) -> bool:
            return listing.safety_rating >= min_safety

        predicates.append(safety_at_least)

    if filters.verified:

        def verified_only(listing: Listing) -> bool:
            return listing.verification.verified is True

        predicates.append(verified_only)

    if filters.max_distance > 0 and filters.max_distance != DEFAULT_MAX_DISTANCE:
        max_walk = filters.max_distance

        def within_walking(listing: Listing) -> bool:
            walking = listing.location.distance_from_university.walking
            return walking is not None and walking <= max_walk

        predicates.append(within_walking)

    return [_guard(predicate) for predicate in predicates]


def filter_listings(listings: Iterable[Listing], filters: FilterInput) -> List[Listing]:
    """Return the listings that satisfy every active filter, in input order."""

    resolved = coerce_filters(filters)
    if resolved is None:
        return list(listings)
    predicates = build_predicates(resolved)
    return [listing for listing in listings if all(predicate(listing) for predicate in predicates)]


def match_query(listing: Listing, query: str) -> bool:
    """Case-insensitive substring match on title, estate or any amenity name."""

    needle = (query or "").strip().lower()
    if not needle:
        return True
    fields: List[str] = []
    title = getattr(listing, "title", None)
    if isinstance(title, str):
        fields.append(title)
    location = getattr(listing, "location", None)
    estate = getattr(location, "estate", None)
    if isinstance(estate, str):
        fields.append(estate)
    for amenity in getattr(listing, "amenities", None) or []:
        name = getattr(amenity, "name", None)
        if isinstance(name, str):
            fields.append(name)
    return any(needle in field.lower() for field in fields)


def search_listings(listings: Iterable[Listing], query: str, filters: FilterInput = None) -> List[Listing]:
    filtered = filter_listings(listings, filters)
    return [listing for listing in filtered if match_query(listing, query)]


def filter_simple(
    listings: Iterable[Listing],
    price: Optional[float] = None,
    estate: Optional[str] = None,
    house_type: Optional[str] = None,
) -> List[Listing]:
    """Equality filter behind the compact filter panel; empty values are ignored."""

    predicates: List[Predicate] = []
    if estate:

        def estate_equals(listing: Listing) -> bool:
            return listing.location.estate == estate

        predicates.append(estate_equals)
    if price not in (None, ""):
        wanted = float(price)

        def price_equals(listing: Listing) -> bool:
            return float(listing.price) == wanted

        predicates.append(price_equals)
    if house_type:
        wanted_type = getattr(house_type, "value", house_type)

        def type_equals(listing: Listing) -> bool:
            return listing.type == wanted_type

        predicates.append(type_equals)
    guarded = [_guard(predicate) for predicate in predicates]
    return [listing for listing in listings if all(predicate(listing) for predicate in guarded)]


def _distinct(values: Iterable[Any]) -> List[str]:
    return sorted({str(value) for value in values if value})


def distinct_estates(listings: Iterable[Listing]) -> List[str]:
    return _distinct(getattr(getattr(listing, "location", None), "estate", None) for listing in listings)


def distinct_types(listings: Iterable[Listing]) -> List[str]:
    return _distinct(getattr(listing, "type", None) for listing in listings)


__all__ = [
    "coerce_filters",
    "build_predicates",
    "filter_listings",
    "match_query",
    "search_listings",
    "filter_simple",
    "distinct_estates",
    "distinct_types",
]
