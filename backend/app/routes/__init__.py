"""API routes."""

from .auth import router as auth_router
from .bids import router as bids_router
from .gigs import router as gigs_router
from .messages import router as messages_router
from .realtime import router as realtime_router

__all__ = [
    "auth_router",
    "gigs_router",
    "bids_router",
    "messages_router",
    "realtime_router",
]
