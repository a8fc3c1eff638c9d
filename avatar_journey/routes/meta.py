"""Health check and setup catalog endpoints."""

from fastapi import APIRouter

from avatar_journey.catalog import POPULAR_LOCATIONS, TRAVEL_METHODS, TRAVEL_STYLES

from .models import CatalogResponse

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/catalog", response_model=CatalogResponse)
async def catalog():
    """Travel methods, travel styles and suggested locations for the setup form."""
    return CatalogResponse(
        travel_methods=TRAVEL_METHODS,
        travel_styles=TRAVEL_STYLES,
        popular_locations=POPULAR_LOCATIONS,
    )
