from typing import Any, Callable, Dict, List, Optional

from ..utils.coerce import to_bool, to_datetime, to_float, to_int, to_str


def _dict(v: Any) -> Dict[str, Any]:
    return v if isinstance(v, dict) else {}


def _list(v: Any) -> List[Any]:
    return v if isinstance(v, list) else []


def _record_id(r: Dict[str, Any]) -> str:
    return to_str(r.get("_id")) or to_str(r.get("id"))


def _absolute(images: Any, rewrite: Optional[Callable[[str], str]]) -> List[str]:
    urls = [to_str(img) for img in _list(images) if img]
    if rewrite is None:
        return urls
    return [rewrite(url) for url in urls]


def map_review_row(r: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": _record_id(r),
        "user_id": to_str(r.get("userId")) or None,
        "user_name": to_str(r.get("userName") or r.get("author")),
        "rating": to_float(r.get("rating")) or 0.0,
        "comment": to_str(r.get("comment")),
        "created_at": to_datetime(r.get("createdAt")),
        "helpful": to_int(r.get("helpful")) or 0,
    }


def map_review_record_row(r: Dict[str, Any]) -> Dict[str, Any]:
    mapped = map_review_row(r)
    mapped.pop("user_id")
    house = r.get("houseId")
    # houseId is sometimes populated with the whole house document
    mapped["house_id"] = _record_id(house) if isinstance(house, dict) else to_str(house)
    status = to_str(r.get("status")).lower()
    mapped["status"] = status if status in {"pending", "approved", "rejected"} else None
    return mapped


def map_house_row(r: Dict[str, Any], rewrite_image: Optional[Callable[[str], str]] = None) -> Dict[str, Any]:
    location = _dict(r.get("location"))
    coordinates = _dict(location.get("coordinates"))
    distances = _dict(location.get("distanceFromUniversity"))
    landlord = _dict(r.get("landlord"))
    verification = _dict(r.get("verification"))
    status = to_str(r.get("status")).lower()
    verified = to_bool(verification["verified"]) if "verified" in verification else to_bool(landlord.get("verified"))
    reviews = [map_review_row(_dict(item)) for item in _list(r.get("reviews"))]
    return {
        "id": _record_id(r),
        "title": to_str(r.get("title")),
        "description": to_str(r.get("description")),
        "price": to_int(r.get("price")),
        "type": to_str(r.get("type")),
        "images": _absolute(r.get("images"), rewrite_image),
        "location": {
            "estate": to_str(location.get("estate")),
            "address": to_str(location.get("address")),
            "coordinates": {
                "lat": to_float(coordinates.get("lat")) or 0.0,
                "lng": to_float(coordinates.get("lng")) or 0.0,
            },
            "distance_from_university": {
                "walking": to_float(distances.get("walking")),
                "boda": to_float(distances.get("boda")),
                "matatu": to_float(distances.get("matatu")),
            },
            "nearby_essentials": [
                {
                    "type": to_str(_dict(place).get("type")),
                    "name": to_str(_dict(place).get("name")),
                    "distance": to_float(_dict(place).get("distance")) or 0.0,
                }
                for place in _list(location.get("nearbyEssentials"))
            ],
        },
        "amenities": [
            {
                "name": to_str(_dict(item).get("name")),
                "available": to_bool(_dict(item).get("available")),
                "icon": to_str(_dict(item).get("icon")),
            }
            for item in _list(r.get("amenities"))
            if _dict(item).get("name")
        ],
        "landlord": {
            "id": _record_id(landlord) or None,
            "name": to_str(landlord.get("name")),
            "phone": to_str(landlord.get("phone")),
            "email": to_str(landlord.get("email")) or None,
            "verified": to_bool(landlord.get("verified")),
            "rating": to_float(landlord.get("rating")) or 0.0,
        },
        "status": status if status in {"vacant", "occupied"} else "vacant",
        "rating": to_float(r.get("rating")) or 0.0,
        "verification": {
            "verified": verified,
            "verified_by": to_str(verification.get("verifiedBy")) or None,
            "verification_date": to_datetime(verification.get("verificationDate")),
            "badges": [to_str(badge) for badge in _list(verification.get("badges"))],
        },
        "reviews": reviews,
        "review_count": to_int(r.get("reviewCount")),
        "safety_rating": to_float(r.get("safetyRating")) or 0,
        "created_at": to_datetime(r.get("createdAt")),
        "updated_at": to_datetime(r.get("updatedAt")),
    }


def map_forum_reply_row(r: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": _record_id(r),
        "content": to_str(r.get("content")),
        "author": to_str(r.get("author")),
        "timestamp": to_datetime(r.get("timestamp") or r.get("createdAt")),
    }


def map_forum_post_row(r: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": _record_id(r),
        "title": to_str(r.get("title")),
        "category": to_str(r.get("category")),
        "content": to_str(r.get("content")),
        "author": to_str(r.get("author")),
        "timestamp": to_datetime(r.get("timestamp") or r.get("createdAt")),
        "replies": [map_forum_reply_row(_dict(item)) for item in _list(r.get("replies"))],
        "likes": [to_str(user) for user in _list(r.get("likes"))],
    }


def map_notification_row(r: Dict[str, Any]) -> Dict[str, Any]:
    house = r.get("houseId")
    return {
        "id": _record_id(r),
        "type": to_str(r.get("type")) or "new-listing",
        "title": to_str(r.get("title")),
        "message": to_str(r.get("message")),
        "house_id": (_record_id(house) if isinstance(house, dict) else to_str(house)) or None,
        "read": to_bool(r.get("read")),
        "created_at": to_datetime(r.get("createdAt")),
    }


def map_landlord_row(r: Dict[str, Any]) -> Dict[str, Any]:
    properties = r.get("properties")
    return {
        "id": _record_id(r),
        "name": to_str(r.get("name")),
        "phone": to_str(r.get("phone") or r.get("phonePrimary")),
        "email": to_str(r.get("email")) or None,
        "verified": to_bool(r.get("verified")),
        "rating": to_float(r.get("rating")) or 0.0,
        "properties": len(properties) if isinstance(properties, list) else (to_int(properties) or 0),
    }


def map_price_trend_row(r: Dict[str, Any]) -> Dict[str, Any]:
    trend = to_str(r.get("trend")).lower()
    return {
        "period": to_str(r.get("month") or r.get("period")),
        "average_price": to_int(r.get("averagePrice")) or 0,
        "estate": to_str(r.get("estate")) or None,
        "house_type": to_str(r.get("houseType")) or None,
        "trend": trend if trend in {"up", "down", "stable"} else "stable",
        "percentage_change": to_float(r.get("percentageChange")) or 0.0,
    }


def map_popular_estate_row(r: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "estate": to_str(r.get("estate") or r.get("name")),
        "views": to_int(r.get("views")) or 0,
        "listings": to_int(r.get("listings")) or 0,
        "house_types": [to_str(t) for t in _list(r.get("houseTypes"))],
    }


def map_trending_search_row(r: Any) -> Dict[str, Any]:
    if not isinstance(r, dict):
        return {"term": to_str(r), "count": 0}
    return {
        "term": to_str(r.get("term") or r.get("query")),
        "count": to_int(r.get("count")) or 0,
    }
