"""
Marketplace service: gigs, bids and the hire transaction.

All state changes go through the ``EntityStore``; notifications go through the
``NotificationBus`` only after the store has committed, and a failed push is
logged and dropped. Every operation checks its preconditions in a fixed order
and raises the first ``GigFlowError`` that applies.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

from .config import GigFlowConfig
from .errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    OutOfRangeError,
    ValidationError,
    check_length,
    check_minimum,
    require,
)
from .models import (
    DEFAULT_CATEGORY,
    DESCRIPTION_MAX_LENGTH,
    DESCRIPTION_MIN_LENGTH,
    MIN_BUDGET,
    MIN_DELIVERY_DAYS,
    MIN_PRICE,
    PROPOSAL_MAX_LENGTH,
    PROPOSAL_MIN_LENGTH,
    TITLE_MAX_LENGTH,
    TITLE_MIN_LENGTH,
    Account,
    Bid,
    Gig,
    GigStatus,
    new_id,
    parse_datetime,
    utc_now,
)
from .realtime import EVENT_HIRED, EVENT_NEW_BID, EVENT_NEW_JOB, NotificationBus
from .storage.base import CONFLICT, GIG_SORTS, NOT_FOUND, DuplicateRecordError, EntityStore, GigFilters

logger = logging.getLogger(__name__)

CATEGORY_MAX_LENGTH = 50


@dataclass
class HireResult:
    """Outcome of a successful hire, with the parties resolved for display."""

    bid: Bid
    gig: Gig
    freelancer: Optional[Account]
    owner: Optional[Account]
    rejected_bid_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        bid = self.bid.to_dict()
        bid["freelancer"] = self.freelancer.summary() if self.freelancer else None
        gig = self.gig.to_dict()
        gig["owner"] = self.owner.summary() if self.owner else None
        gig["hired_freelancer"] = bid["freelancer"]
        return {"bid": bid, "gig": gig, "rejected_bid_ids": list(self.rejected_bid_ids)}


def _parse_deadline(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    try:
        return parse_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError("deadline must be an ISO-8601 date", field="deadline")


def _whole_number(field_name: str, value: Any, minimum: int) -> int:
    number = check_minimum(field_name, value, minimum)
    if number != int(number):
        raise ValidationError(f"{field_name} must be a whole number", field=field_name)
    return int(number)


class MarketplaceService:
    """Gig posting, bidding and hiring on top of an ``EntityStore``."""

    def __init__(
        self,
        store: EntityStore,
        bus: Optional[NotificationBus] = None,
        config: Optional[GigFlowConfig] = None,
    ):
        self.store = store
        self.bus = bus
        self.config = config or GigFlowConfig()

    # === Views ===

    def _summaries(self, account_ids: List[Optional[str]]) -> dict[str, dict[str, Any]]:
        ids = [a for a in account_ids if a]
        if not ids:
            return {}
        return {aid: account.summary() for aid, account in self.store.get_accounts(ids).items()}

    def _gig_views(self, gigs: List[Gig]) -> List[dict[str, Any]]:
        people = self._summaries(
            [g.owner_id for g in gigs] + [g.hired_freelancer_id for g in gigs]
        )
        views = []
        for gig in gigs:
            view = gig.to_dict()
            view["owner"] = people.get(gig.owner_id)
            view["hired_freelancer"] = people.get(gig.hired_freelancer_id) if gig.hired_freelancer_id else None
            views.append(view)
        return views

    def gig_view(self, gig: Gig) -> dict[str, Any]:
        """Gig with owner and hired freelancer resolved."""
        return self._gig_views([gig])[0]

    def _bid_views(self, bids: List[Bid], include_gig: bool = False) -> List[dict[str, Any]]:
        people = self._summaries([b.freelancer_id for b in bids])
        gigs = {}
        if include_gig and bids:
            found = self.store.get_gigs([b.gig_id for b in bids])
            gigs = {view["id"]: view for view in self._gig_views(list(found.values()))}
        views = []
        for bid in bids:
            view = bid.to_dict()
            view["freelancer"] = people.get(bid.freelancer_id)
            if include_gig:
                view["gig"] = gigs.get(bid.gig_id)
            views.append(view)
        return views

    def bid_view(self, bid: Bid) -> dict[str, Any]:
        """Bid with the freelancer resolved."""
        return self._bid_views([bid])[0]

    async def _notify(self, account_id: str, event: str, payload: dict[str, Any]) -> None:
        if self.bus is None:
            return
        try:
            await self.bus.notify(account_id, event, payload)
        except Exception as e:
            logger.warning(f"Notification failed | account={account_id} | event={event} | error={e}")

    # === Gigs ===

    async def create_gig(
        self,
        owner: Account,
        title: Optional[str],
        description: Optional[str],
        budget: Any,
        category: Optional[str] = None,
        deadline: Any = None,
    ) -> Gig:
        """Post a new open gig and announce it to everyone else online."""
        if not owner.can_post:
            raise ForbiddenError("Freelancer accounts cannot post gigs")

        title = check_length("title", title, TITLE_MIN_LENGTH, TITLE_MAX_LENGTH)
        description = check_length(
            "description", description, DESCRIPTION_MIN_LENGTH, DESCRIPTION_MAX_LENGTH
        )
        budget = check_minimum("budget", budget, MIN_BUDGET)
        category = (category or "").strip() or DEFAULT_CATEGORY
        if len(category) > CATEGORY_MAX_LENGTH:
            raise OutOfRangeError(
                f"category cannot exceed {CATEGORY_MAX_LENGTH} characters", field="category"
            )

        gig = self.store.save_gig(
            Gig(
                id=new_id(),
                owner_id=owner.id,
                title=title,
                description=description,
                budget=budget,
                category=category,
                deadline=_parse_deadline(deadline),
            )
        )
        logger.info(f"Gig created | id={gig.id} | owner={owner.id} | budget={gig.budget:g}")

        if self.bus is not None:
            try:
                await self.bus.broadcast(EVENT_NEW_JOB, self.gig_view(gig), exclude=[owner.id])
            except Exception as e:
                logger.warning(f"new_job broadcast failed | gig={gig.id} | error={e}")
        return gig

    def list_open_gigs(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        min_budget: Optional[float] = None,
        max_budget: Optional[float] = None,
        sort: str = "newest",
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[dict[str, Any]]:
        """Browse open gigs with plain substring search and simple filters."""
        if sort not in GIG_SORTS:
            raise ValidationError(f"sort must be one of {list(GIG_SORTS)}", field="sort")
        if offset < 0:
            raise OutOfRangeError("offset cannot be negative", field="offset")
        if min_budget is not None and max_budget is not None and min_budget > max_budget:
            raise OutOfRangeError("min_budget cannot exceed max_budget", field="min_budget")

        filters = GigFilters(
            status=GigStatus.OPEN.value,
            category=(category or "").strip() or None,
            search=(search or "").strip() or None,
            min_budget=min_budget,
            max_budget=max_budget,
            sort=sort,
            limit=self.config.clamp_limit(limit),
            offset=offset,
        )
        return self._gig_views(self.store.list_gigs(filters))

    def list_gigs_for_owner(
        self, owner_id: str, limit: Optional[int] = None, offset: int = 0
    ) -> List[dict[str, Any]]:
        """Every gig the account posted, newest first, any status."""
        filters = GigFilters(
            owner_id=owner_id, limit=self.config.clamp_limit(limit), offset=max(0, offset)
        )
        return self._gig_views(self.store.list_gigs(filters))

    def get_gig(self, gig_id: str) -> dict[str, Any]:
        gig = self.store.get_gig(gig_id)
        if gig is None:
            raise NotFoundError("Gig not found")
        return self.gig_view(gig)

    def delete_gig(self, gig_id: str, actor: Account) -> None:
        """Delete an open gig and its bids. Assigned gigs are permanent."""
        gig = self.store.get_gig(gig_id)
        if gig is None:
            raise NotFoundError("Gig not found")
        if gig.owner_id != actor.id:
            raise ForbiddenError("Only the gig owner can delete this gig")
        if not gig.is_open:
            raise ConflictError("Cannot delete a gig that has already been assigned")

        _, error = self.store.delete_open_gig(gig_id)
        if error == NOT_FOUND:
            raise NotFoundError("Gig not found")
        if error == CONFLICT:
            raise ConflictError("Cannot delete a gig that has already been assigned")
        logger.info(f"Gig deleted | id={gig_id} | owner={actor.id}")

    # === Bids ===

    async def submit_bid(
        self,
        gig_id: Optional[str],
        freelancer: Account,
        proposal: Optional[str],
        price: Any,
        delivery_days: Any,
    ) -> Bid:
        """Place a pending bid on an open gig and tell the gig owner."""
        if not freelancer.can_bid:
            raise ForbiddenError("Client accounts cannot submit bids")

        require("gig_id", gig_id)
        proposal = check_length("proposal", proposal, PROPOSAL_MIN_LENGTH, PROPOSAL_MAX_LENGTH)
        price = check_minimum("price", price, MIN_PRICE)
        delivery_days = _whole_number("delivery_days", delivery_days, MIN_DELIVERY_DAYS)

        gig = self.store.get_gig(gig_id)
        if gig is None:
            raise NotFoundError("Gig not found")
        if not gig.is_open:
            raise ConflictError("This gig is no longer accepting bids")
        if gig.owner_id == freelancer.id:
            raise ForbiddenError("You cannot bid on your own gig")

        try:
            bid, error = self.store.insert_bid(
                Bid(
                    id=new_id(),
                    gig_id=gig_id,
                    freelancer_id=freelancer.id,
                    proposal=proposal,
                    price=price,
                    delivery_days=delivery_days,
                )
            )
        except DuplicateRecordError:
            raise ConflictError("You have already submitted a bid for this gig")
        # The gig can be hired or deleted between the read above and the insert
        if error == NOT_FOUND:
            raise NotFoundError("Gig not found")
        if error == CONFLICT:
            raise ConflictError("This gig is no longer accepting bids")

        logger.info(f"Bid submitted | id={bid.id} | gig={gig_id} | freelancer={freelancer.id}")
        await self._notify(gig.owner_id, EVENT_NEW_BID, self.bid_view(bid))
        return bid

    def list_bids_for_gig(self, gig_id: str, actor: Account) -> List[dict[str, Any]]:
        """All bids on a gig, newest first. Only the owner may look."""
        gig = self.store.get_gig(gig_id)
        if gig is None:
            raise NotFoundError("Gig not found")
        if gig.owner_id != actor.id:
            raise ForbiddenError("Only the gig owner can view bids")
        return self._bid_views(self.store.list_bids(gig_id=gig_id))

    def list_bids_for_freelancer(self, freelancer_id: str) -> List[dict[str, Any]]:
        """The freelancer's own bids, newest first, each with its gig resolved."""
        return self._bid_views(self.store.list_bids(freelancer_id=freelancer_id), include_gig=True)

    # === Hire ===

    async def hire(self, bid_id: str, actor: Account) -> HireResult:
        """Accept ``bid_id``: assign its gig, reject the competing bids, notify the freelancer.

        Preconditions are checked in order (bid exists, gig exists, actor owns
        the gig, gig is open). The store's ``commit_hire`` re-checks the open
        status atomically, so of two concurrent hires on one gig exactly one
        wins and the other raises ``ConflictError``.
        """
        bid = self.store.get_bid(bid_id)
        if bid is None:
            raise NotFoundError("Bid not found")
        gig = self.store.get_gig(bid.gig_id)
        if gig is None:
            raise NotFoundError("Gig not found")
        if gig.owner_id != actor.id:
            raise ForbiddenError("Only the gig owner can hire")
        if not gig.is_open:
            raise ConflictError("This gig has already been assigned")

        record, error = self.store.commit_hire(gig.id, bid.id)
        if error == NOT_FOUND:
            # Same order as the preconditions: bid first, then its gig
            if self.store.get_bid(bid.id) is None:
                raise NotFoundError("Bid not found")
            raise NotFoundError("Gig not found")
        if error == CONFLICT:
            raise ConflictError("This gig has already been assigned")

        owner = self.store.get_account(gig.owner_id)
        result = HireResult(
            bid=record.bid,
            gig=record.gig,
            freelancer=record.freelancer,
            owner=owner,
            rejected_bid_ids=record.rejected_bid_ids,
        )
        logger.info(
            f"Bid hired | bid={bid.id} | gig={gig.id} | freelancer={bid.freelancer_id} | "
            f"rejected={len(record.rejected_bid_ids)}"
        )

        await self._notify(
            bid.freelancer_id,
            EVENT_HIRED,
            {
                "message": f'You have been hired for "{record.gig.title}"!',
                "gig_id": record.gig.id,
                "gig_title": record.gig.title,
                "timestamp": utc_now().isoformat(),
            },
        )
        return result
