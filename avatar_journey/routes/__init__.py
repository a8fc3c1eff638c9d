"""FastAPI API endpoints under /api.

Endpoint groups: health + setup catalog, and the journey itself (snapshot,
events, start, messages, diary, reset). All journey endpoints talk to the
single JourneyOrchestrator held on app.state.
"""

from fastapi import APIRouter

from .journey import router as journey_router
from .meta import router as meta_router

router = APIRouter()
router.include_router(meta_router)
router.include_router(journey_router)
