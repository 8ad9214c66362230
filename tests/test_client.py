import logging

import pytest
import requests

from kejani.errors import AuthenticationError, FormValidationError, NotFoundError, ParseError, TransportError
from kejani.models.community import LandlordForm, ModerationStatus
from conftest import BASE_URL, house_dto

API = "/api/v1"


def test_get_houses_maps_dtos(client, fake_session):
    fake_session.add("GET", f"{API}/houses/getAll", body=[house_dto("h1"), house_dto("h2", price=12000)])
    houses = client.get_houses()
    assert [house.id for house in houses] == ["h1", "h2"]
    first = houses[0]
    assert first.location.estate == "Amalemba"
    assert first.location.distance_from_university.walking == 12
    assert first.amenities[0].name == "WiFi"
    assert first.reviews[0].user_name == "Otieno"
    assert first.safety_rating == 4
    assert first.verification.verified is True
    assert first.images == [f"{BASE_URL}/uploads/a.jpg", "https://cdn.example.com/b.jpg"]


def test_house_defaults_for_sparse_records(client, fake_session):
    sparse = {"id": "s1", "price": -50, "rating": 9, "status": "demolished", "location": {"estate": "Lurambi"}}
    fake_session.add("GET", f"{API}/houses/getAll", body=[sparse])
    house = client.get_houses()[0]
    assert house.price == 0
    assert house.rating == 5.0
    assert house.status.value == "vacant"
    assert house.location.coordinates.lat == 0.0
    assert house.amenities == []
    assert house.images == []
    assert house.verification.verified is False


def test_get_houses_skips_unmappable_rows(client, fake_session):
    fake_session.add("GET", f"{API}/houses/getAll", body=[house_dto("h1"), "garbage", {"title": "no id"}])
    assert [house.id for house in client.get_houses()] == ["h1"]


def test_get_houses_applies_filters_locally(client, fake_session):
    fake_session.add("GET", f"{API}/houses/getAll", body=[house_dto("h1"), house_dto("h2", price=30000)])
    houses = client.get_houses({"priceRange": [0, 10000]})
    assert [house.id for house in houses] == ["h1"]


def test_get_houses_rejects_non_list(client, fake_session):
    fake_session.add("GET", f"{API}/houses/getAll", body={"houses": "nope"})
    with pytest.raises(ParseError):
        client.get_houses()


def test_invalid_json_raises_parse_error(client, fake_session):
    fake_session.add("GET", f"{API}/houses/getAll", raw="<html>oops</html>")
    with pytest.raises(ParseError):
        client.get_houses()


def test_get_house_not_found(client, fake_session):
    fake_session.add("GET", f"{API}/houses/house/missing", status=404, body={"message": "House not found"})
    with pytest.raises(NotFoundError) as excinfo:
        client.get_house("missing")
    assert str(excinfo.value) == "House not found"
    assert excinfo.value.status_code == 404


def test_server_error_carries_message(client, fake_session):
    fake_session.add("GET", f"{API}/forums/getAll", status=500, body={"error": "database down"})
    with pytest.raises(TransportError) as excinfo:
        client.get_forum_posts()
    assert excinfo.value.status_code == 500
    assert "database down" in str(excinfo.value)


def test_network_failure_becomes_transport_error(client, fake_session):
    fake_session.add("GET", f"{API}/houses/getAll", exc=requests.ConnectionError("refused"))
    with pytest.raises(TransportError) as excinfo:
        client.get_houses()
    assert excinfo.value.status_code is None


def test_auth_header_sent_and_masked_in_logs(admin_client, fake_session, caplog, monkeypatch):
    monkeypatch.setattr(logging.getLogger("kejani"), "propagate", True)
    fake_session.add("POST", f"{API}/users/favorites/h1", body={"ok": True})
    with caplog.at_level(logging.DEBUG, logger="kejani"):
        assert admin_client.add_favorite("h1") is True
    call = fake_session.calls_to("POST", f"{API}/users/favorites/h1")[0]
    assert call["headers"]["Authorization"] == "Bearer secret-token"
    assert call["timeout"] == 2
    assert "secret-token" not in caplog.text
    assert "Bearer ***" in caplog.text


def test_missing_token_fails_before_dispatch(client, fake_session):
    with pytest.raises(AuthenticationError) as excinfo:
        client.delete_house("h1")
    assert excinfo.value.status_code is None
    assert fake_session.calls == []


def test_server_401_is_authentication_error(admin_client, fake_session):
    fake_session.add("DELETE", f"{API}/houses/house/h1", status=401, body={"message": "jwt expired"})
    with pytest.raises(AuthenticationError) as excinfo:
        admin_client.delete_house("h1")
    assert excinfo.value.status_code == 401
    assert str(excinfo.value) == AuthenticationError.DEFAULT_MESSAGE


def test_login_stores_token(client, fake_session, token_storage):
    fake_session.add("POST", f"{API}/admin/login", body={"token": "t0k", "user": {"_id": "u1"}})
    session = client.login("admin@kejani.co.ke", "pw")
    assert session.token == "t0k"
    assert session.user_id == "u1"
    assert client.token == "t0k"
    assert token_storage.get_item("authToken") == "t0k"
    assert fake_session.calls[0]["json"] == {"email": "admin@kejani.co.ke", "password": "pw"}
    client.logout()
    assert client.token is None


def test_login_without_token_fails(client, fake_session):
    fake_session.add("POST", f"{API}/admin/login", body={"message": "ok"})
    with pytest.raises(AuthenticationError):
        client.login("a@b.c", "pw")
    assert client.token is None


def test_submit_review_validates_before_sending(client, fake_session):
    with pytest.raises(FormValidationError) as excinfo:
        client.submit_review("h1", "Wanjiru", 7, "Great")
    assert "rating" in excinfo.value.errors
    assert fake_session.calls == []


def test_submit_review_posts_camel_case(client, fake_session):
    fake_session.add("POST", f"{API}/reviews/create", status=201, body={"success": True})
    assert client.submit_review("h1", "Wanjiru", 4, "Great") is True
    assert fake_session.calls[0]["json"] == {"houseId": "h1", "userName": "Wanjiru", "rating": 4.0, "comment": "Great"}


def test_reviews_accept_populated_house(client, fake_session):
    rows = [
        {"_id": "r1", "houseId": {"_id": "h9", "title": "x"}, "userName": "A", "rating": 5, "status": "Approved"},
        {"_id": "r2", "houseId": "h3", "author": "B", "rating": 2, "status": "weird"},
    ]
    fake_session.add("GET", f"{API}/reviews/recent", body=rows)
    reviews = client.get_recent_reviews(limit=20)
    assert [(r.id, r.house_id, r.user_name) for r in reviews] == [("r1", "h9", "A"), ("r2", "h3", "B")]
    assert reviews[0].status == ModerationStatus.APPROVED
    assert reviews[1].status is None
    assert fake_session.calls[0]["params"] == {"limit": 20}


def test_get_all_reviews_swallows_errors(client, fake_session):
    fake_session.add("GET", f"{API}/reviews/recent", status=500, body={"message": "down"})
    assert client.get_all_reviews() == []


def test_moderate_review_sends_status(admin_client, fake_session):
    fake_session.add("PUT", f"{API}/reviews/r1", body={"review": {"_id": "r1", "status": "approved", "rating": 4}})
    review = admin_client.moderate_review("r1", "approved")
    assert review.status == ModerationStatus.APPROVED
    assert fake_session.calls[0]["json"] == {"status": "approved"}


def test_create_house_limits_images(admin_client, fake_session):
    images = [(f"{i}.jpg", b"x") for i in range(6)]
    with pytest.raises(FormValidationError):
        admin_client.create_house({"title": "Too many"}, images)
    assert fake_session.calls == []


def test_create_house_sends_multipart(admin_client, fake_session):
    fake_session.add("POST", f"{API}/houses/create", status=201, body={"house": house_dto("new")})
    house = admin_client.create_house(
        {"title": "New", "price": 9000, "amenities": [{"name": "WiFi", "available": True}]},
        [("front.jpg", b"jpeg")],
    )
    assert house.id == "new"
    call = fake_session.calls[0]
    assert call["data"]["price"] == "9000"
    assert call["data"]["amenities"] == '[{"name": "WiFi", "available": true}]'
    assert call["files"] == [("images", ("front.jpg", b"jpeg"))]


def test_notifications_unwrap_and_mark_read(admin_client, fake_session):
    fake_session.add(
        "GET",
        f"{API}/notifications/getAll",
        body={"notifications": [{"_id": "n1", "title": "New", "read": False, "houseId": {"_id": "h1"}}]},
    )
    fake_session.add("PUT", f"{API}/notifications/updateNotification/n1", body={})
    notifications = admin_client.get_notifications()
    assert notifications[0].house_id == "h1"
    assert admin_client.mark_notification_read("n1") is True
    assert fake_session.calls_to("PUT", f"{API}/notifications/updateNotification/n1")[0]["json"] == {"read": True}


def test_forum_flow(client, fake_session):
    post = {"_id": "p1", "title": "Water issues", "category": "estates", "content": "?", "author": "Kim",
            "replies": [{"_id": "x", "content": "same", "author": "Ann"}], "likes": ["u1"]}
    fake_session.add("POST", f"{API}/forums/p1/like", body={"post": post})
    liked = client.like_forum_post("p1", "u1")
    assert liked.liked_by("u1")
    assert liked.replies[0].author == "Ann"
    with pytest.raises(FormValidationError):
        client.reply_to_forum_post("p1", "", "Kim")


def test_insights_unwrap_keys(client, fake_session):
    fake_session.add("GET", f"{API}/insights/price-trends",
                     body={"priceTrends": [{"month": "2024-01", "averagePrice": 9000, "trend": "UP"}]})
    fake_session.add("GET", f"{API}/insights/trending-searches", body={"trendingSearches": ["bedsitter"]})
    trends = client.get_price_trends()
    assert trends[0].period == "2024-01"
    assert trends[0].trend == "up"
    assert client.get_trending_searches()[0].term == "bedsitter"


def test_landlords_use_case_sensitive_path(admin_client, fake_session):
    fake_session.add("GET", f"{API}/landlords/Landlords",
                     body=[{"_id": "l1", "name": "Jane", "phone": "07", "properties": ["a", "b"]}])
    fake_session.add("PUT", f"{API}/landlords/l1", body={"message": "updated"})
    landlords = admin_client.get_landlords()
    assert landlords[0].properties == 2
    updated = admin_client.update_landlord("l1", LandlordForm(name="Jane W", phone="07"))
    assert updated.id == "l1"
    assert updated.name == "Jane W"
