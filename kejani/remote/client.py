"""REST client for the Kejani listings backend."""

from __future__ import annotations

import json
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

import requests
from pydantic import BaseModel, ValidationError
from requests import Response

from .. import config
from ..errors import AuthenticationError, FormValidationError, KejaniError, NotFoundError, ParseError, TransportError
from ..models.community import (
    AuthSession,
    ForumPost,
    ForumPostForm,
    ForumReplyForm,
    LandlordForm,
    LandlordRecord,
    ModerationStatus,
    Notification,
    ReportForm,
    ReviewForm,
    ReviewRecord,
)
from ..models.insights import PopularEstate, PriceTrend, TrendingSearch
from ..models.listing import Listing, SearchFilters
from ..services.filters import filter_listings, search_listings
from ..utils.logging import get_logger, mask_headers, preview_body
from ..utils.storage import MemoryStorage, session_storage
from .endpoints import Endpoints
from .mappers import (
    map_forum_post_row,
    map_house_row,
    map_landlord_row,
    map_notification_row,
    map_popular_estate_row,
    map_price_trend_row,
    map_review_record_row,
    map_trending_search_row,
)

LOGGER = get_logger("remote.client")

M = TypeVar("M", bound=BaseModel)
F = TypeVar("F", bound=BaseModel)

MAX_HOUSE_IMAGES = 5

ImageUpload = Tuple[str, bytes]


def validate_form(form_cls: type, **values: Any):
    """Build a form model or raise :class:`FormValidationError` without touching the network."""

    try:
        return form_cls(**values)
    except ValidationError as exc:
        raise FormValidationError.from_pydantic(form_cls.__name__, exc) from exc


class KejaniClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        token_storage: Optional[MemoryStorage] = None,
    ) -> None:
        self.endpoints = Endpoints(base_url)
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT
        self.session = session or requests.Session()
        self.token_storage = token_storage if token_storage is not None else session_storage()

    # ------------------------------------------------------------------
    # Auth
    @property
    def token(self) -> Optional[str]:
        return self.token_storage.get_item(config.AUTH_TOKEN_KEY) or None

    def store_token(self, token: str) -> None:
        self.token_storage.set_item(config.AUTH_TOKEN_KEY, token)

    def logout(self) -> None:
        self.token_storage.remove_item(config.AUTH_TOKEN_KEY)

    def login(self, email: str, password: str) -> AuthSession:
        payload = self._request("POST", self.endpoints.login, json_body={"email": email, "password": password})
        body = payload if isinstance(payload, dict) else {}
        token = body.get("token")
        if not token:
            raise AuthenticationError("Login response did not include a token")
        user = body.get("user") if isinstance(body.get("user"), dict) else {}
        self.store_token(str(token))
        LOGGER.info("login_ok email=%s", email)
        return AuthSession(token=str(token), user_id=str(user.get("_id") or user.get("id") or "") or None, email=email)

    # ------------------------------------------------------------------
    # Houses
    def get_houses(self, filters: Union[SearchFilters, Mapping[str, Any], None] = None) -> List[Listing]:
        payload = self._request("GET", self.endpoints.houses)
        houses = self._map_many(self._expect_list(payload, "houses"), self._house)
        # the backend has no filter parameters yet
        if filters is not None:
            houses = filter_listings(houses, filters)
        return houses

    def get_house(self, house_id: str) -> Listing:
        payload = self._request("GET", self.endpoints.house(house_id))
        if not isinstance(payload, dict):
            raise ParseError(f"Expected a house object for {house_id}")
        return self._house(payload)

    def search_houses(self, query: str, filters: Union[SearchFilters, Mapping[str, Any], None] = None) -> List[Listing]:
        return search_listings(self.get_houses(), query, filters)

    def create_house(self, fields: Mapping[str, Any], images: Sequence[ImageUpload] = ()) -> Listing:
        if len(images) > MAX_HOUSE_IMAGES:
            raise FormValidationError(
                f"At most {MAX_HOUSE_IMAGES} images can be uploaded", {"images": "too many images"}
            )
        self._require_token()
        data = {key: self._form_value(value) for key, value in fields.items()}
        files = [("images", (name, content)) for name, content in images]
        payload = self._request("POST", self.endpoints.create_house, data=data, files=files or None, auth=True)
        return self._house(self._unwrap(payload, "house"))

    def update_house(self, house_id: str, fields: Mapping[str, Any]) -> Listing:
        payload = self._request("PUT", self.endpoints.house(house_id), json_body=dict(fields), auth=True, require_token=True)
        return self._house(self._unwrap(payload, "house"))

    def delete_house(self, house_id: str) -> bool:
        self._request("DELETE", self.endpoints.house(house_id), auth=True, require_token=True)
        return True

    # ------------------------------------------------------------------
    # Reviews
    def get_reviews_for_house(self, house_id: str) -> List[ReviewRecord]:
        payload = self._request("GET", self.endpoints.reviews_for_house(house_id))
        return self._map_many(self._lenient_list(payload), self._review)

    def get_recent_reviews(self, limit: Optional[int] = None) -> List[ReviewRecord]:
        params = {"limit": limit} if limit else None
        payload = self._request("GET", self.endpoints.recent_reviews, params=params)
        return self._map_many(self._lenient_list(payload), self._review)

    def get_top_reviews(self) -> List[ReviewRecord]:
        payload = self._request("GET", self.endpoints.top_reviews)
        return self._map_many(self._lenient_list(payload), self._review)

    def get_all_reviews(self) -> List[ReviewRecord]:
        try:
            return self.get_recent_reviews(limit=100)
        except KejaniError as exc:
            LOGGER.warning("all_reviews_failed error=%s", exc)
            return []

    def submit_review(self, house_id: str, user_name: str, rating: float, comment: str) -> bool:
        form = validate_form(ReviewForm, house_id=house_id, user_name=user_name, rating=rating, comment=comment)
        self._request("POST", self.endpoints.create_review, json_body=self._dump(form))
        return True

    def moderate_review(self, review_id: str, status: Union[ModerationStatus, str]) -> Optional[ReviewRecord]:
        value = ModerationStatus(status).value
        payload = self._request(
            "PUT", self.endpoints.review(review_id), json_body={"status": value}, auth=True, require_token=True
        )
        body = self._unwrap(payload, "review") if isinstance(payload, dict) else None
        if isinstance(body, dict) and (body.get("_id") or body.get("id")):
            return self._review(body)
        return None

    # ------------------------------------------------------------------
    # Favorites
    def add_favorite(self, house_id: str) -> bool:
        self._request("POST", self.endpoints.favorite(house_id), auth=True, require_token=True)
        return True

    def remove_favorite(self, house_id: str) -> bool:
        self._request("DELETE", self.endpoints.favorite(house_id), auth=True, require_token=True)
        return True

    # ------------------------------------------------------------------
    # Notifications
    def get_notifications(self) -> List[Notification]:
        payload = self._request("GET", self.endpoints.notifications, auth=True)
        rows = self._lenient_list(self._unwrap(payload, "notifications"))
        return self._map_many(rows, lambda row: Notification.model_validate(map_notification_row(row)))

    def mark_notification_read(self, notification_id: str) -> bool:
        self._request("PUT", self.endpoints.update_notification(notification_id), json_body={"read": True}, auth=True)
        return True

    # ------------------------------------------------------------------
    # Forum
    def get_forum_posts(self) -> List[ForumPost]:
        payload = self._request("GET", self.endpoints.forum_posts)
        return self._map_many(self._lenient_list(payload), self._forum_post)

    def get_forum_post(self, post_id: str) -> ForumPost:
        payload = self._request("GET", self.endpoints.forum_post(post_id))
        if not isinstance(payload, dict):
            raise ParseError(f"Expected a forum post object for {post_id}")
        return self._forum_post(payload)

    def create_forum_post(self, title: str, category: str, content: str, author: str) -> ForumPost:
        form = validate_form(ForumPostForm, title=title, category=category, content=content, author=author)
        payload = self._request("POST", self.endpoints.create_forum_post, json_body=self._dump(form))
        return self._forum_post(self._unwrap(payload, "post"))

    def reply_to_forum_post(self, post_id: str, content: str, author: str) -> ForumPost:
        form = validate_form(ForumReplyForm, content=content, author=author)
        payload = self._request("POST", self.endpoints.forum_reply(post_id), json_body=self._dump(form))
        return self._forum_post(self._unwrap(payload, "post"))

    def like_forum_post(self, post_id: str, user_id: str) -> ForumPost:
        payload = self._request("POST", self.endpoints.forum_like(post_id), json_body={"userId": user_id})
        return self._forum_post(self._unwrap(payload, "post"))

    # ------------------------------------------------------------------
    # Insights; a 404 surfaces as NotFoundError so callers can fall back
    def get_price_trends(self) -> List[PriceTrend]:
        payload = self._request("GET", self.endpoints.price_trends)
        rows = self._lenient_list(self._unwrap(payload, "priceTrends"))
        return self._map_many(rows, lambda row: PriceTrend.model_validate(map_price_trend_row(row)))

    def get_popular_estates(self) -> List[PopularEstate]:
        payload = self._request("GET", self.endpoints.popular_estates)
        rows = self._lenient_list(self._unwrap(payload, "popularEstates"))
        return self._map_many(rows, lambda row: PopularEstate.model_validate(map_popular_estate_row(row)))

    def get_trending_searches(self) -> List[TrendingSearch]:
        payload = self._request("GET", self.endpoints.trending_searches)
        rows = self._lenient_list(self._unwrap(payload, "trendingSearches"))
        return [TrendingSearch.model_validate(map_trending_search_row(row)) for row in rows]

    # ------------------------------------------------------------------
    # Reports
    def submit_report(self, description: str, report_type: str) -> bool:
        form = validate_form(ReportForm, description=description, type=report_type)
        self._request("POST", self.endpoints.create_report, json_body=self._dump(form))
        return True

    # ------------------------------------------------------------------
    # Landlords (admin)
    def get_landlords(self) -> List[LandlordRecord]:
        payload = self._request("GET", self.endpoints.landlords)
        return self._map_many(self._lenient_list(payload), self._landlord)

    def create_landlord(self, form: LandlordForm) -> Optional[LandlordRecord]:
        payload = self._request(
            "POST", self.endpoints.add_landlord, json_body=self._dump(form), auth=True, require_token=True
        )
        body = self._unwrap(payload, "landlord")
        if isinstance(body, dict) and (body.get("_id") or body.get("id")):
            return self._landlord(body)
        return None

    def update_landlord(self, landlord_id: str, form: LandlordForm) -> LandlordRecord:
        payload = self._request(
            "PUT", self.endpoints.landlord(landlord_id), json_body=self._dump(form), auth=True, require_token=True
        )
        body = self._unwrap(payload, "landlord")
        if isinstance(body, dict) and (body.get("_id") or body.get("id")):
            return self._landlord(body)
        return LandlordRecord(id=landlord_id, **form.model_dump())

    def delete_landlord(self, landlord_id: str) -> bool:
        self._request("DELETE", self.endpoints.landlord(landlord_id), auth=True, require_token=True)
        return True

    # ------------------------------------------------------------------
    # Mapping helpers
    def _house(self, row: Any) -> Listing:
        if not isinstance(row, dict):
            raise ParseError("Expected a house object")
        return Listing.model_validate(map_house_row(row, self.endpoints.absolute_media))

    def _review(self, row: Dict[str, Any]) -> ReviewRecord:
        return ReviewRecord.model_validate(map_review_record_row(row))

    def _forum_post(self, row: Any) -> ForumPost:
        if not isinstance(row, dict):
            raise ParseError("Expected a forum post object")
        return ForumPost.model_validate(map_forum_post_row(row))

    def _landlord(self, row: Dict[str, Any]) -> LandlordRecord:
        return LandlordRecord.model_validate(map_landlord_row(row))

    def _map_many(self, rows: List[Any], build: Callable[[Dict[str, Any]], M]) -> List[M]:
        items: List[M] = []
        for row in rows:
            if not isinstance(row, dict):
                LOGGER.warning("skipping_record reason=not_an_object value=%r", row)
                continue
            try:
                items.append(build(row))
            except ValidationError as exc:
                LOGGER.warning("skipping_record id=%s errors=%d", row.get("_id") or row.get("id"), exc.error_count())
        return items

    @staticmethod
    def _expect_list(payload: Any, what: str) -> List[Any]:
        if not isinstance(payload, list):
            raise ParseError(f"Expected a list of {what}")
        return payload

    @staticmethod
    def _lenient_list(payload: Any) -> List[Any]:
        return payload if isinstance(payload, list) else []

    @staticmethod
    def _unwrap(payload: Any, key: str) -> Any:
        if isinstance(payload, dict) and key in payload:
            return payload[key]
        return payload

    @staticmethod
    def _dump(form: F) -> Dict[str, Any]:
        return form.model_dump(mode="json", by_alias=True, exclude_none=True)

    @staticmethod
    def _form_value(value: Any) -> str:
        if isinstance(value, BaseModel):
            return value.model_dump_json(by_alias=True)
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    # ------------------------------------------------------------------
    # Transport
    def _require_token(self) -> str:
        token = self.token
        if not token:
            raise AuthenticationError("Not logged in: an admin token is required", status_code=None)
        return token

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        data: Optional[Dict[str, Any]] = None,
        files: Any = None,
        auth: bool = False,
        require_token: bool = False,
    ) -> Any:
        headers = {"Accept": "application/json"}
        if require_token:
            self._require_token()
        token = self.token
        if auth and token:
            headers["Authorization"] = f"Bearer {token}"

        body_text = json.dumps(json_body) if json_body is not None else None
        LOGGER.debug(
            "http_request method=%s url=%s headers=%s body=%s",
            method,
            url,
            mask_headers(headers),
            preview_body(body_text),
        )
        started = time.perf_counter()
        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json=json_body,
                data=data,
                files=files,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            LOGGER.warning("http_error method=%s url=%s error=%s", method, url, exc)
            raise TransportError(f"{method} {url} failed: {exc}", url=url) from exc
        duration_ms = int((time.perf_counter() - started) * 1000)
        LOGGER.debug("http_response method=%s url=%s status=%s duration_ms=%d", method, url, resp.status_code, duration_ms)
        self._raise_for_status(resp, method, url)
        return self._json(resp, url)

    def _raise_for_status(self, response: Response, method: str, url: str) -> None:
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = response.status_code
            detail = self._error_detail(response)
            if status == 401:
                raise AuthenticationError(url=url) from exc
            if status == 404:
                raise NotFoundError(detail or f"{method} {url} returned 404", url=url) from exc
            LOGGER.warning("http_status method=%s url=%s status=%s detail=%s", method, url, status, detail)
            raise TransportError(detail or f"{method} {url} returned {status}", status_code=status, url=url) from exc

    @staticmethod
    def _error_detail(response: Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            message = body.get("message") or body.get("error")
            return str(message) if message else None
        return None

    @staticmethod
    def _json(response: Response, url: str) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ParseError(f"Invalid JSON from {url}") from exc


__all__ = ["KejaniClient", "validate_form", "MAX_HOUSE_IMAGES"]
