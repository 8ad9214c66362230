"""Market insights with a local fallback when the backend lacks an endpoint."""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..errors import NotFoundError
from ..models.insights import MarketSummary, PopularEstate, PriceTrend, TrendingSearch
from ..models.listing import Listing
from ..utils.logging import get_logger

LOGGER = get_logger("services.insights")

FRAME_COLUMNS = ["id", "estate", "type", "price", "rating", "status"]
TRENDING_LIMIT = 10


def listings_frame(listings: Sequence[Listing]) -> pd.DataFrame:
    rows = []
    for listing in listings:
        location = getattr(listing, "location", None)
        rows.append(
            {
                "id": getattr(listing, "id", None),
                "estate": getattr(location, "estate", None) or None,
                "type": getattr(listing, "type", None) or None,
                "price": getattr(listing, "price", None),
                "rating": getattr(listing, "rating", None),
                "status": getattr(getattr(listing, "status", None), "value", None),
            }
        )
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    df["price"] = pd.to_numeric(df["price"], errors="coerce")
    df["rating"] = pd.to_numeric(df["rating"], errors="coerce")
    return df


class InsightsService:
    def __init__(self, client, listings_provider: Optional[Callable[[], Sequence[Listing]]] = None) -> None:
        self.client = client
        self.listings_provider = listings_provider or client.get_houses

    def price_trends(self) -> List[PriceTrend]:
        try:
            return self.client.get_price_trends()
        except NotFoundError:
            LOGGER.info("insights_fallback kind=price_trends")
            return self.estimate_price_trends(self.listings_provider())

    def popular_estates(self) -> List[PopularEstate]:
        try:
            return self.client.get_popular_estates()
        except NotFoundError:
            LOGGER.info("insights_fallback kind=popular_estates")
            return self.estimate_popular_estates(self.listings_provider())

    def trending_searches(self) -> List[TrendingSearch]:
        try:
            return self.client.get_trending_searches()
        except NotFoundError:
            LOGGER.info("insights_fallback kind=trending_searches")
            return self.estimate_trending_searches(self.listings_provider())

    def market_summary(self) -> MarketSummary:
        return self.summarize(self.listings_provider())

    # ------------------------------------------------------------------
    # Local approximations
    @staticmethod
    def estimate_price_trends(listings: Sequence[Listing]) -> List[PriceTrend]:
        """Average price per estate and house type; no history, so every trend is flat."""

        df = listings_frame(listings).dropna(subset=["estate", "type", "price"])
        if df.empty:
            return []
        averages = df.groupby(["estate", "type"], sort=True)["price"].mean()
        return [
            PriceTrend(
                period="current",
                average_price=int(round(float(price))),
                estate=str(estate),
                house_type=str(house_type),
                trend="stable",
                percentage_change=0.0,
            )
            for (estate, house_type), price in averages.items()
        ]

    @staticmethod
    def estimate_popular_estates(listings: Sequence[Listing]) -> List[PopularEstate]:
        df = listings_frame(listings).dropna(subset=["estate"])
        if df.empty:
            return []
        counts = df.groupby("estate")["id"].count()
        types = df.dropna(subset=["type"]).groupby("estate")["type"].unique()
        ranked = sorted(counts.items(), key=lambda item: (-int(item[1]), str(item[0])))
        return [
            PopularEstate(
                estate=str(estate),
                listings=int(count),
                views=0,
                house_types=sorted(str(t) for t in types.get(estate, [])),
            )
            for estate, count in ranked
        ]

    @staticmethod
    def estimate_trending_searches(listings: Sequence[Listing], limit: int = TRENDING_LIMIT) -> List[TrendingSearch]:
        df = listings_frame(listings)
        terms = pd.concat([df["estate"], df["type"]], ignore_index=True).dropna()
        if terms.empty:
            return []
        counts = terms.value_counts()
        ranked = sorted(counts.items(), key=lambda item: (-int(item[1]), str(item[0])))
        return [TrendingSearch(term=str(term), count=int(count)) for term, count in ranked[:limit]]

    @staticmethod
    def summarize(listings: Sequence[Listing]) -> MarketSummary:
        df = listings_frame(listings)
        if df.empty:
            return MarketSummary()
        prices = df["price"].to_numpy(dtype=float)
        ratings = df["rating"].to_numpy(dtype=float)
        average_price = float(np.nanmean(prices)) if np.isfinite(prices).any() else 0.0
        average_rating = float(np.nanmean(ratings)) if np.isfinite(ratings).any() else 0.0
        return MarketSummary(
            total_listings=int(len(df.index)),
            vacant_listings=int((df["status"] == "vacant").sum()),
            average_price=int(round(average_price)),
            average_rating=round(average_rating, 1),
        )


__all__ = ["InsightsService", "listings_frame"]
