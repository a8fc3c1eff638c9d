"""Pydantic request/response models for API endpoints."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from avatar_journey.catalog import CatalogItem


class MessageBody(BaseModel):
    message: str


class CatalogResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    travel_methods: list[CatalogItem]
    travel_styles: list[CatalogItem]
    popular_locations: list[str]
