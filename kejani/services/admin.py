"""Admin console operations: landlords, listings and review moderation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional

from ..errors import AuthenticationError, KejaniError
from ..models.community import LandlordForm, LandlordRecord, ModerationStatus, ReviewRecord
from ..models.listing import Listing
from ..remote.client import validate_form
from ..utils.logging import get_logger
from .toasts import ToastCenter

LOGGER = get_logger("services.admin")

MODERATION_ACTIONS = {
    "approve": ModerationStatus.APPROVED,
    "reject": ModerationStatus.REJECTED,
}

# stays on screen well past the default so it is not missed
UNSAVED_TOAST_DURATION = 15.0


@dataclass(frozen=True)
class ModerationResult:
    review: ReviewRecord
    persisted: bool


class AdminService:
    def __init__(self, client, toasts: Optional[ToastCenter] = None) -> None:
        self.client = client
        self.toasts = toasts if toasts is not None else ToastCenter()

    # ------------------------------------------------------------------
    # Landlords
    def list_landlords(self) -> List[LandlordRecord]:
        try:
            return self.client.get_landlords()
        except KejaniError as exc:
            LOGGER.warning("list_landlords_failed error=%s", exc)
            self.toasts.error("Failed to fetch landlords")
            return []

    def create_landlord(self, **fields: Any) -> Optional[LandlordRecord]:
        form = validate_form(LandlordForm, **fields)
        try:
            record = self.client.create_landlord(form)
        except KejaniError as exc:
            self._write_failed("Failed to add landlord", exc)
            raise
        self.toasts.success(f"Landlord {form.name} added")
        return record

    def update_landlord(self, landlord_id: str, **fields: Any) -> LandlordRecord:
        form = validate_form(LandlordForm, **fields)
        try:
            record = self.client.update_landlord(landlord_id, form)
        except KejaniError as exc:
            self._write_failed("Failed to update landlord", exc)
            raise
        self.toasts.success(f"Landlord {form.name} updated")
        return record

    def delete_landlord(self, landlord_id: str) -> None:
        try:
            self.client.delete_landlord(landlord_id)
        except KejaniError as exc:
            self._write_failed("Failed to delete landlord", exc)
            raise
        self.toasts.success("Landlord deleted")

    # ------------------------------------------------------------------
    # Listings
    def list_listings(self) -> List[Listing]:
        try:
            return self.client.get_houses()
        except KejaniError as exc:
            LOGGER.warning("list_listings_failed error=%s", exc)
            self.toasts.error("Failed to fetch listings")
            return []

    def delete_listing(self, house_id: str) -> None:
        try:
            self.client.delete_house(house_id)
        except KejaniError as exc:
            self._write_failed("Failed to delete listing", exc)
            raise
        self.toasts.success("Listing deleted")

    # ------------------------------------------------------------------
    # Reviews
    def moderate_review(self, review: ReviewRecord, action: str) -> ModerationResult:
        """Approve or reject a review.

        A missing token is a hard failure. When the server itself answers 401
        the new status is applied locally only and the result is marked
        ``persisted=False``; a long-lived error toast tells the moderator that
        the server still holds the old status.
        """

        try:
            status = MODERATION_ACTIONS[action]
        except KeyError:
            raise ValueError(f"Unknown moderation action: {action}") from None
        local = review.model_copy(update={"status": status})
        try:
            updated = self.client.moderate_review(review.id, status)
        except AuthenticationError as exc:
            if exc.status_code != 401:
                self._write_failed(f"Failed to {action} review", exc)
                raise
            LOGGER.warning("moderation_not_persisted review_id=%s action=%s", review.id, action)
            self.toasts.error(
                f"Review marked {status.value} locally only; the server rejected the change. Log in again and retry.",
                title="Not saved",
                duration=UNSAVED_TOAST_DURATION,
            )
            return ModerationResult(review=local, persisted=False)
        except KejaniError as exc:
            self._write_failed(f"Failed to {action} review", exc)
            raise
        self.toasts.success(f"Review {status.value}")
        return ModerationResult(review=updated or local, persisted=True)

    def _write_failed(self, message: str, exc: KejaniError) -> None:
        LOGGER.warning("admin_write_failed message=%s error=%s", message, exc)
        if isinstance(exc, AuthenticationError):
            self.toasts.error(str(exc), title=message)
        else:
            self.toasts.error(f"{message}: {exc}")


__all__ = ["AdminService", "ModerationResult", "MODERATION_ACTIONS"]
