"""URL table for the Kejani REST backend."""

from __future__ import annotations

from typing import Optional

from .. import config


class Endpoints:
    def __init__(self, base_url: Optional[str] = None) -> None:
        self.origin = (base_url or config.API_BASE_URL).rstrip("/")
        self.api = f"{self.origin}{config.API_PREFIX}"

    # Auth
    @property
    def login(self) -> str:
        return f"{self.api}/admin/login"

    # Houses
    @property
    def houses(self) -> str:
        return f"{self.api}/houses/getAll"

    def house(self, house_id: str) -> str:
        return f"{self.api}/houses/house/{house_id}"

    @property
    def create_house(self) -> str:
        return f"{self.api}/houses/create"

    # Reviews
    def reviews_for_house(self, house_id: str) -> str:
        return f"{self.api}/reviews/house/{house_id}"

    @property
    def recent_reviews(self) -> str:
        return f"{self.api}/reviews/recent"

    @property
    def top_reviews(self) -> str:
        return f"{self.api}/reviews/top"

    @property
    def create_review(self) -> str:
        return f"{self.api}/reviews/create"

    def review(self, review_id: str) -> str:
        return f"{self.api}/reviews/{review_id}"

    # Favorites
    def favorite(self, house_id: str) -> str:
        return f"{self.api}/users/favorites/{house_id}"

    # Notifications
    @property
    def notifications(self) -> str:
        return f"{self.api}/notifications/getAll"

    def update_notification(self, notification_id: str) -> str:
        return f"{self.api}/notifications/updateNotification/{notification_id}"

    # Forum
    @property
    def forum_posts(self) -> str:
        return f"{self.api}/forums/getAll"

    @property
    def create_forum_post(self) -> str:
        return f"{self.api}/forums/create"

    def forum_post(self, post_id: str) -> str:
        return f"{self.api}/forums/{post_id}"

    def forum_reply(self, post_id: str) -> str:
        return f"{self.api}/forums/{post_id}/reply"

    def forum_like(self, post_id: str) -> str:
        return f"{self.api}/forums/{post_id}/like"

    # Insights
    @property
    def price_trends(self) -> str:
        return f"{self.api}/insights/price-trends"

    @property
    def popular_estates(self) -> str:
        return f"{self.api}/insights/popular-estates"

    @property
    def trending_searches(self) -> str:
        return f"{self.api}/insights/trending-searches"

    # Reports
    @property
    def create_report(self) -> str:
        return f"{self.api}/reports/create"

    # Landlords (paths are case-sensitive on the server)
    @property
    def landlords(self) -> str:
        return f"{self.api}/landlords/Landlords"

    @property
    def add_landlord(self) -> str:
        return f"{self.api}/landlords/addLandlord"

    def landlord(self, landlord_id: str) -> str:
        return f"{self.api}/landlords/{landlord_id}"

    def absolute_media(self, path: str) -> str:
        if path.startswith("/uploads/"):
            return f"{self.origin}{path}"
        return path


__all__ = ["Endpoints"]
