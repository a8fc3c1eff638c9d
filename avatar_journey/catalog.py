"""Fixed catalogs offered to the character setup form."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

TravelMethodId = Literal["driving", "walking", "public", "backpacking", "luxury"]
TravelStyleId = Literal["adventure", "leisure", "cultural", "foodie"]


class CatalogItem(BaseModel):
    id: str
    name: str
    description: str


TRAVEL_METHODS: list[CatalogItem] = [
    CatalogItem(id="driving", name="Road trip", description="Driving yourself, free to change the route"),
    CatalogItem(id="walking", name="Hiking", description="Exploring on foot, up close with the place"),
    CatalogItem(id="public", name="Public transport", description="Trains, buses and other public transport"),
    CatalogItem(id="backpacking", name="Backpacking", description="Budget travel with a pack on your back"),
    CatalogItem(id="luxury", name="Luxury travel", description="Comfortable, high-end travel"),
]

TRAVEL_STYLES: list[CatalogItem] = [
    CatalogItem(id="adventure", name="Adventurer", description="Looking for thrills and new experiences"),
    CatalogItem(id="leisure", name="Leisurely", description="Relaxing and sightseeing at a slow pace"),
    CatalogItem(id="cultural", name="Culture seeker", description="Digging into local culture and history"),
    CatalogItem(id="foodie", name="Foodie", description="Tasting the local specialities everywhere"),
]

POPULAR_LOCATIONS: list[str] = [
    "Beijing", "Shanghai", "Chengdu", "Xi'an", "Hangzhou", "Nanjing",
    "Tokyo", "Seoul", "Bangkok", "Singapore", "Paris", "London",
    "New York", "Los Angeles", "Sydney", "Rome",
]


def travel_method(method_id: str) -> CatalogItem | None:
    for item in TRAVEL_METHODS:
        if item.id == method_id:
            return item
    return None


def travel_style(style_id: str) -> CatalogItem | None:
    for item in TRAVEL_STYLES:
        if item.id == style_id:
            return item
    return None
