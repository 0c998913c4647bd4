"""
GigFlow - Freelance marketplace core.

Clients post gigs, freelancers bid on them, the gig owner hires exactly one
bid, and the two parties talk in real time.
"""

from .accounts import AccountService
from .config import GigFlowConfig
from .marketplace import HireResult, MarketplaceService
from .messaging import MessagingService
from .realtime import NotificationBus

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("gigflow")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "AccountService",
    "GigFlowConfig",
    "HireResult",
    "MarketplaceService",
    "MessagingService",
    "NotificationBus",
]
