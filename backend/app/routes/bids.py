"""Bid routes: submit, list and hire."""

from fastapi import APIRouter, Request, status

from ..auth import CurrentAccount
from ..dependencies import Marketplace
from ..logging_config import get_logger
from ..models import BidCreate
from ..rate_limit import HIRE_LIMIT, READ_LIMIT, WRITE_LIMIT, limiter

logger = get_logger("gigflow.api.bids")
router = APIRouter(prefix="/bids", tags=["bids"])


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
async def submit_bid(
    request: Request,
    bid: BidCreate,
    account: CurrentAccount,
    marketplace: Marketplace,
):
    """
    Bid on an open gig.

    One bid per freelancer per gig; the gig owner is notified in real time.
    """
    logger.info(f"POST /bids | gig={bid.gig_id} | freelancer={account.id}")
    created = await marketplace.submit_bid(
        bid.gig_id,
        account,
        proposal=bid.proposal,
        price=bid.price,
        delivery_days=bid.delivery_days,
    )
    return {"success": True, "data": marketplace.bid_view(created)}


@router.get("/mine")
@limiter.limit(READ_LIMIT)
async def list_my_bids(request: Request, account: CurrentAccount, marketplace: Marketplace):
    """The authenticated freelancer's bids, each with its gig."""
    bids = marketplace.list_bids_for_freelancer(account.id)
    return {"success": True, "count": len(bids), "data": bids}


@router.get("/gig/{gig_id}")
@limiter.limit(READ_LIMIT)
async def list_gig_bids(
    request: Request,
    gig_id: str,
    account: CurrentAccount,
    marketplace: Marketplace,
):
    """All bids on a gig. Only the gig owner can view them."""
    bids = marketplace.list_bids_for_gig(gig_id, account)
    return {"success": True, "count": len(bids), "data": bids}


@router.patch("/{bid_id}/hire")
@limiter.limit(HIRE_LIMIT)
async def hire_bid(
    request: Request,
    bid_id: str,
    account: CurrentAccount,
    marketplace: Marketplace,
):
    """
    Hire a bid.

    Assigns the gig to the bidder and rejects every other pending bid, all or
    nothing. If two hires race on one gig, one gets 409.
    """
    logger.info(f"PATCH /bids/{bid_id}/hire | account={account.id}")
    result = await marketplace.hire(bid_id, account)
    return {"success": True, "data": result.to_dict()}
