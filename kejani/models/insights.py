"""Schemas for market insight aggregates."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import Field

from .listing import KejaniModel


class PriceTrend(KejaniModel):
    period: str
    average_price: int
    estate: Optional[str] = None
    house_type: Optional[str] = None
    trend: Literal["up", "down", "stable"] = "stable"
    percentage_change: float = 0.0


class PopularEstate(KejaniModel):
    estate: str
    views: int = 0
    listings: int = 0
    house_types: List[str] = Field(default_factory=list)


class TrendingSearch(KejaniModel):
    term: str
    count: int = 0


class MarketSummary(KejaniModel):
    total_listings: int = 0
    vacant_listings: int = 0
    average_price: int = 0
    average_rating: float = 0.0


__all__ = ["PriceTrend", "PopularEstate", "TrendingSearch", "MarketSummary"]
