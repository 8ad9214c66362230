"""Pydantic models representing rental listings and search filters."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..utils.coerce import clamp, to_float, to_int


class HouseType(str, Enum):
    BEDSITTER = "bedsitter"
    SINGLE = "single"
    ONE_BR = "1BR"
    TWO_BR = "2BR"
    THREE_BR = "3BR"
    HOSTEL = "hostel"


class ListingStatus(str, Enum):
    VACANT = "vacant"
    OCCUPIED = "occupied"


class NearbyPlaceType(str, Enum):
    SHOP = "shop"
    MARKET = "market"
    HOSPITAL = "hospital"
    POLICE = "police"
    ATM = "atm"
    RESTAURANT = "restaurant"


class VerificationBadge(str, Enum):
    VERIFIED_LANDLORD = "verified-landlord"
    PHOTO_VERIFIED = "photo-verified"
    PRICE_VERIFIED = "price-verified"
    SAFETY_CHECKED = "safety-checked"


class KejaniModel(BaseModel):
    """Snake_case attributes in Python, camelCase keys on the wire and in cache."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _rating(value: Any) -> float:
    return clamp(to_float(value), 0.0, 5.0)


class Coordinates(KejaniModel):
    lat: float = 0.0
    lng: float = 0.0


class TravelTimes(KejaniModel):
    """Minutes from the university for each travel mode; None when unknown."""

    walking: Optional[float] = None
    boda: Optional[float] = None
    matatu: Optional[float] = None


class NearbyPlace(KejaniModel):
    # Kept as a plain string so unknown tags from the backend survive.
    type: str = ""
    name: str = ""
    distance: float = 0.0  # meters


class Location(KejaniModel):
    estate: str = ""
    address: str = ""
    coordinates: Coordinates = Field(default_factory=Coordinates)
    distance_from_university: TravelTimes = Field(default_factory=TravelTimes)
    nearby_essentials: List[NearbyPlace] = Field(default_factory=list)


class Amenity(KejaniModel):
    name: str
    available: bool = False
    icon: str = ""


class Landlord(KejaniModel):
    id: Optional[str] = None
    name: str = ""
    phone: str = ""
    email: Optional[str] = None
    verified: bool = False
    rating: float = 0.0

    @field_validator("rating", mode="before")
    @classmethod
    def clamp_rating(cls, value: Any) -> float:
        return _rating(value)


class Verification(KejaniModel):
    verified: bool = False
    verified_by: Optional[str] = None
    verification_date: Optional[datetime] = None
    badges: List[str] = Field(default_factory=list)


class Review(KejaniModel):
    id: str = ""
    user_id: Optional[str] = None
    user_name: str = ""
    rating: float = 0.0
    comment: str = ""
    created_at: Optional[datetime] = None
    helpful: int = 0

    @field_validator("rating", mode="before")
    @classmethod
    def clamp_rating(cls, value: Any) -> float:
        return _rating(value)


class Listing(KejaniModel):
    id: str = Field(..., min_length=1)
    title: str = ""
    description: str = ""
    price: Optional[int] = None  # None when the backend sent no usable price
    images: List[str] = Field(default_factory=list)
    type: str = ""
    location: Location = Field(default_factory=Location)
    amenities: List[Amenity] = Field(default_factory=list)
    landlord: Landlord = Field(default_factory=Landlord)
    status: ListingStatus = ListingStatus.VACANT
    rating: float = 0.0
    verification: Verification = Field(default_factory=Verification)
    reviews: List[Review] = Field(default_factory=list)
    review_count: Optional[int] = None
    safety_rating: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("rating", mode="before")
    @classmethod
    def clamp_rating(cls, value: Any) -> float:
        return _rating(value)

    @field_validator("price", mode="before")
    @classmethod
    def non_negative_price(cls, value: Any) -> Optional[int]:
        price = to_int(value)
        return None if price is None else max(0, price)

    @field_validator("safety_rating", mode="before")
    @classmethod
    def clamp_safety(cls, value: Any) -> int:
        return int(round(clamp(to_float(value), 0.0, 5.0)))

    @property
    def house_type(self) -> Optional[HouseType]:
        try:
            return HouseType(self.type)
        except ValueError:
            return None

    def available_amenities(self) -> List[str]:
        return [amenity.name for amenity in self.amenities if amenity.available]

    def with_review_stats(self) -> "Listing":
        """Return a copy whose rating and review count reflect its reviews."""

        if not self.reviews:
            return self.model_copy(update={"review_count": 0})
        average = sum(review.rating for review in self.reviews) / len(self.reviews)
        return self.model_copy(update={"rating": round(average, 1), "review_count": len(self.reviews)})


DEFAULT_PRICE_RANGE: Tuple[float, float] = (0, 50000)
DEFAULT_MAX_DISTANCE = 30.0


class SearchFilters(KejaniModel):
    price_range: Tuple[float, float] = DEFAULT_PRICE_RANGE
    house_types: List[str] = Field(default_factory=list)
    max_distance: float = DEFAULT_MAX_DISTANCE  # walking minutes
    amenities: List[str] = Field(default_factory=list)
    min_rating: float = 0.0
    safety_rating: float = 0.0
    verified: bool = False
    estate: List[str] = Field(default_factory=list)

    @field_validator("house_types", mode="before")
    @classmethod
    def type_values(cls, value: Any) -> Any:
        if value is None:
            return []
        return [getattr(item, "value", item) for item in value]

    @field_validator("price_range", mode="after")
    @classmethod
    def ordered_range(cls, value: Tuple[float, float]) -> Tuple[float, float]:
        low, high = value
        if low > high:
            low, high = high, low
        return (low, high)

    def merge(self, **changes: Any) -> "SearchFilters":
        """Return a copy with ``changes`` applied on top of the current values."""

        payload: Dict[str, Any] = self.model_dump()
        aliases = {info.alias: name for name, info in type(self).model_fields.items() if info.alias}
        for key, value in changes.items():
            payload[aliases.get(key, key)] = value
        return type(self).model_validate(payload)

    def is_default(self) -> bool:
        return self.model_dump() == SearchFilters().model_dump()


__all__ = [
    "HouseType",
    "ListingStatus",
    "NearbyPlaceType",
    "VerificationBadge",
    "KejaniModel",
    "Coordinates",
    "TravelTimes",
    "NearbyPlace",
    "Location",
    "Amenity",
    "Landlord",
    "Verification",
    "Review",
    "Listing",
    "SearchFilters",
    "DEFAULT_PRICE_RANGE",
    "DEFAULT_MAX_DISTANCE",
]
