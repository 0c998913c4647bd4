"""Gig routes: post, browse, view and delete gigs."""

from fastapi import APIRouter, Query, Request, status

from ..auth import CurrentAccount
from ..dependencies import Marketplace
from ..logging_config import get_logger
from ..models import GigCreate
from ..rate_limit import READ_LIMIT, WRITE_LIMIT, limiter

logger = get_logger("gigflow.api.gigs")
router = APIRouter(prefix="/gigs", tags=["gigs"])


@router.get("")
@limiter.limit(READ_LIMIT)
async def list_gigs(
    request: Request,
    marketplace: Marketplace,
    search: str | None = Query(None, max_length=100),
    category: str | None = Query(None),
    min_budget: float | None = Query(None, ge=0),
    max_budget: float | None = Query(None, ge=0),
    sort: str = Query("newest"),
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
):
    """
    Browse open gigs. Public.

    Filters:
    - search: case-insensitive substring of title or description
    - category, min_budget, max_budget
    - sort: newest (default), oldest, budget_asc, budget_desc
    """
    gigs = marketplace.list_open_gigs(
        search=search,
        category=category,
        min_budget=min_budget,
        max_budget=max_budget,
        sort=sort,
        limit=limit,
        offset=offset,
    )
    return {"success": True, "count": len(gigs), "data": gigs}


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
async def create_gig(
    request: Request,
    gig: GigCreate,
    account: CurrentAccount,
    marketplace: Marketplace,
):
    """
    Post a new gig.

    The authenticated account becomes the owner. Gigs start 'open'.
    """
    logger.info(f"POST /gigs | owner={account.id}")
    created = await marketplace.create_gig(
        account,
        title=gig.title,
        description=gig.description,
        budget=gig.budget,
        category=gig.category,
        deadline=gig.deadline,
    )
    return {"success": True, "data": marketplace.gig_view(created)}


@router.get("/mine")
@limiter.limit(READ_LIMIT)
async def list_my_gigs(
    request: Request,
    account: CurrentAccount,
    marketplace: Marketplace,
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
):
    """Gigs posted by the authenticated account, any status."""
    gigs = marketplace.list_gigs_for_owner(account.id, limit=limit, offset=offset)
    return {"success": True, "count": len(gigs), "data": gigs}


@router.get("/{gig_id}")
@limiter.limit(READ_LIMIT)
async def get_gig(request: Request, gig_id: str, marketplace: Marketplace):
    """Gig details with owner and hired freelancer. Public."""
    return {"success": True, "data": marketplace.get_gig(gig_id)}


@router.delete("/{gig_id}")
@limiter.limit(WRITE_LIMIT)
async def delete_gig(
    request: Request,
    gig_id: str,
    account: CurrentAccount,
    marketplace: Marketplace,
):
    """Delete an open gig. Only the owner can, and never once someone is hired."""
    logger.info(f"DELETE /gigs/{gig_id} | account={account.id}")
    marketplace.delete_gig(gig_id, account)
    return {"success": True, "data": {"id": gig_id, "deleted": True}}
