import json
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import pytest
import requests

from kejani.remote.client import KejaniClient
from kejani.utils.storage import MemoryStorage

BASE_URL = "https://kejani.test"


def make_response(url: str, status: int = 200, body: Any = None, raw: Optional[str] = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.url = url
    resp.reason = "OK" if status < 400 else "Error"
    if raw is not None:
        resp._content = raw.encode("utf-8")
        resp.headers["Content-Type"] = "text/html"
    elif body is not None:
        resp._content = json.dumps(body).encode("utf-8")
        resp.headers["Content-Type"] = "application/json"
    else:
        resp._content = b""
    return resp


class FakeSession:
    """Routes requests by (method, path) to canned responses and records every call."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.calls: List[Dict[str, Any]] = []

    def add(self, method: str, path: str, status: int = 200, body: Any = None, raw: Optional[str] = None, exc=None):
        self.routes[(method.upper(), path)] = {"status": status, "body": body, "raw": raw, "exc": exc}
        return self

    def request(self, method, url, **kwargs):
        path = urlparse(url).path
        self.calls.append({"method": method, "url": url, "path": path, **kwargs})
        route = self.routes.get((method.upper(), path))
        if route is None:
            return make_response(url, 404, {"message": f"no route for {method} {path}"})
        if route["exc"] is not None:
            raise route["exc"]
        return make_response(url, route["status"], route["body"], route["raw"])

    def calls_to(self, method: str, path: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["method"] == method and call["path"] == path]


def house_dto(house_id: str = "h1", **overrides: Any) -> Dict[str, Any]:
    dto = {
        "_id": house_id,
        "title": "Cozy bedsitter near campus",
        "price": 8000,
        "type": "bedsitter",
        "location": {
            "estate": "Amalemba",
            "address": "Amalemba Road",
            "coordinates": {"lat": 0.28, "lng": 34.76},
            "distanceFromUniversity": {"walking": 12, "boda": 4, "matatu": 6},
            "nearbyEssentials": [{"type": "shop", "name": "Mama Mboga", "distance": 120}],
        },
        "images": ["/uploads/a.jpg", "https://cdn.example.com/b.jpg"],
        "amenities": [{"name": "WiFi", "available": True, "icon": "wifi"}],
        "landlord": {"name": "Jane", "phone": "0700000000", "verified": True, "rating": 4.5},
        "status": "vacant",
        "rating": 4.2,
        "reviews": [
            {"id": "r1", "userName": "Otieno", "rating": 4, "comment": "Quiet", "createdAt": "2024-03-01T10:00:00.000Z", "helpful": 2}
        ],
        "safetyRating": 4,
        "createdAt": "2024-01-05T08:00:00.000Z",
        "updatedAt": "2024-02-05T08:00:00.000Z",
    }
    dto.update(overrides)
    return dto


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def token_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def client(fake_session, token_storage) -> KejaniClient:
    return KejaniClient(base_url=BASE_URL, timeout=2, session=fake_session, token_storage=token_storage)


@pytest.fixture
def admin_client(client) -> KejaniClient:
    client.store_token("secret-token")
    return client
