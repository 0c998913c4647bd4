"""
In-memory entity store for testing and local development.

All state sits behind one re-entrant lock. Every read returns a copy, so the
only way to change a record is through a store method, and a reader holding
the lock never sees half of a multi-record update.
"""

import copy
import logging
import threading
from typing import List, Optional

from ..models import (
    Account,
    Bid,
    BidStatus,
    Conversation,
    Gig,
    GigStatus,
    Message,
    utc_now,
)
from .base import CONFLICT, NOT_FOUND, DuplicateRecordError, GigFilters, HireRecord

logger = logging.getLogger(__name__)


def _copy(record):
    return copy.deepcopy(record) if record is not None else None


class InMemoryEntityStore:
    """Process-local ``EntityStore`` implementation."""

    def __init__(self):
        """Initialize empty storage."""
        self._lock = threading.RLock()
        self._accounts: dict[str, Account] = {}
        self._account_emails: dict[str, str] = {}  # email -> account id
        self._gigs: dict[str, Gig] = {}
        self._bids: dict[str, Bid] = {}
        self._bid_pairs: dict[tuple[str, str], str] = {}  # (gig, freelancer) -> bid id
        self._conversations: dict[str, Conversation] = {}
        self._conversation_keys: dict[tuple[str, str, str], str] = {}
        self._messages: dict[str, Message] = {}
        self._conversation_messages: dict[str, list[str]] = {}

    # === Accounts ===

    def create_account(self, account: Account) -> Account:
        """Insert an account, enforcing unique email."""
        with self._lock:
            if account.email in self._account_emails:
                raise DuplicateRecordError(f"Email already registered: {account.email}")
            stored = _copy(account)
            now = utc_now()
            stored.created_at = stored.created_at or now
            stored.updated_at = stored.updated_at or now
            self._accounts[stored.id] = stored
            self._account_emails[stored.email] = stored.id
            return _copy(stored)

    def get_account(self, account_id: str) -> Optional[Account]:
        with self._lock:
            return _copy(self._accounts.get(account_id))

    def get_account_by_email(self, email: str) -> Optional[Account]:
        with self._lock:
            account_id = self._account_emails.get((email or "").strip().lower())
            return _copy(self._accounts.get(account_id)) if account_id else None

    def get_accounts(self, account_ids: List[str]) -> dict[str, Account]:
        with self._lock:
            return {
                account_id: _copy(self._accounts[account_id])
                for account_id in set(account_ids)
                if account_id in self._accounts
            }

    # === Gigs ===

    def save_gig(self, gig: Gig) -> Gig:
        with self._lock:
            stored = _copy(gig)
            now = utc_now()
            stored.created_at = stored.created_at or now
            stored.updated_at = stored.updated_at or now
            self._gigs[stored.id] = stored
            return _copy(stored)

    def get_gig(self, gig_id: str) -> Optional[Gig]:
        with self._lock:
            return _copy(self._gigs.get(gig_id))

    def get_gigs(self, gig_ids: List[str]) -> dict[str, Gig]:
        with self._lock:
            return {gig_id: _copy(self._gigs[gig_id]) for gig_id in set(gig_ids) if gig_id in self._gigs}

    def list_gigs(self, filters: GigFilters) -> List[Gig]:
        with self._lock:
            gigs = [_copy(g) for g in self._gigs.values()]

        if filters.status is not None:
            gigs = [g for g in gigs if g.status == filters.status]
        if filters.owner_id is not None:
            gigs = [g for g in gigs if g.owner_id == filters.owner_id]
        if filters.category:
            gigs = [g for g in gigs if g.category.lower() == filters.category.lower()]
        if filters.search:
            needle = filters.search.lower()
            gigs = [g for g in gigs if needle in g.title.lower() or needle in g.description.lower()]
        if filters.min_budget is not None:
            gigs = [g for g in gigs if g.budget >= filters.min_budget]
        if filters.max_budget is not None:
            gigs = [g for g in gigs if g.budget <= filters.max_budget]

        if filters.sort == "budget_asc":
            gigs.sort(key=lambda g: g.budget)
        elif filters.sort == "budget_desc":
            gigs.sort(key=lambda g: g.budget, reverse=True)
        elif filters.sort == "oldest":
            gigs.sort(key=lambda g: g.created_at)
        else:
            # Later inserts first on equal timestamps
            gigs.reverse()
            gigs.sort(key=lambda g: g.created_at, reverse=True)

        return gigs[filters.offset : filters.offset + filters.limit]

    def delete_open_gig(self, gig_id: str) -> tuple[Optional[Gig], Optional[str]]:
        with self._lock:
            gig = self._gigs.get(gig_id)
            if gig is None:
                return None, NOT_FOUND
            if not gig.is_open:
                return None, CONFLICT
            del self._gigs[gig_id]
            for bid_id in [b.id for b in self._bids.values() if b.gig_id == gig_id]:
                bid = self._bids.pop(bid_id)
                self._bid_pairs.pop((bid.gig_id, bid.freelancer_id), None)
            return gig, None

    # === Bids ===

    def insert_bid(self, bid: Bid) -> tuple[Optional[Bid], Optional[str]]:
        """Insert a bid on an open gig, enforcing one bid per gig + freelancer."""
        with self._lock:
            gig = self._gigs.get(bid.gig_id)
            if gig is None:
                return None, NOT_FOUND
            if not gig.is_open:
                return None, CONFLICT
            pair = (bid.gig_id, bid.freelancer_id)
            if pair in self._bid_pairs:
                raise DuplicateRecordError(
                    f"Freelancer {bid.freelancer_id} already bid on gig {bid.gig_id}"
                )
            stored = _copy(bid)
            now = utc_now()
            stored.created_at = stored.created_at or now
            stored.updated_at = stored.updated_at or now
            self._bids[stored.id] = stored
            self._bid_pairs[pair] = stored.id
            return _copy(stored), None

    def get_bid(self, bid_id: str) -> Optional[Bid]:
        with self._lock:
            return _copy(self._bids.get(bid_id))

    def list_bids(
        self,
        gig_id: Optional[str] = None,
        freelancer_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Bid]:
        with self._lock:
            bids = [_copy(b) for b in self._bids.values()]

        if gig_id is not None:
            bids = [b for b in bids if b.gig_id == gig_id]
        if freelancer_id is not None:
            bids = [b for b in bids if b.freelancer_id == freelancer_id]
        if status is not None:
            bids = [b for b in bids if b.status == status]

        bids.reverse()
        bids.sort(key=lambda b: b.created_at, reverse=True)
        return bids

    # === Hire ===

    def commit_hire(self, gig_id: str, bid_id: str) -> tuple[Optional[HireRecord], Optional[str]]:
        """Apply the hire under the store lock.

        The status check and every write happen inside one critical section,
        so the first caller flips the gig to assigned and any later caller
        sees ``conflict``.
        """
        with self._lock:
            gig = self._gigs.get(gig_id)
            bid = self._bids.get(bid_id)
            if gig is None or bid is None or bid.gig_id != gig_id:
                return None, NOT_FOUND
            if not gig.is_open:
                logger.warning(
                    f"Hire conflict on gig {gig_id}: expected status 'open', found '{gig.status}'"
                )
                return None, CONFLICT

            now = utc_now()
            gig.status = GigStatus.ASSIGNED.value
            gig.hired_freelancer_id = bid.freelancer_id
            gig.updated_at = now

            bid.status = BidStatus.HIRED.value
            bid.updated_at = now

            rejected = []
            for other in self._bids.values():
                if (
                    other.gig_id == gig_id
                    and other.id != bid_id
                    and other.status == BidStatus.PENDING.value
                ):
                    other.status = BidStatus.REJECTED.value
                    other.updated_at = now
                    rejected.append(other.id)

            freelancer = self._accounts.get(bid.freelancer_id)
            if freelancer is not None:
                freelancer.completed_gigs += 1
                freelancer.updated_at = now

            return (
                HireRecord(
                    gig=_copy(gig),
                    bid=_copy(bid),
                    freelancer=_copy(freelancer),
                    rejected_bid_ids=rejected,
                ),
                None,
            )

    # === Conversations ===

    def find_or_create_conversation(self, conversation: Conversation) -> tuple[Conversation, bool]:
        with self._lock:
            existing_id = self._conversation_keys.get(conversation.key)
            if existing_id is not None:
                return _copy(self._conversations[existing_id]), False
            stored = _copy(conversation)
            now = utc_now()
            stored.created_at = stored.created_at or now
            stored.last_activity_at = stored.last_activity_at or now
            self._conversations[stored.id] = stored
            self._conversation_keys[stored.key] = stored.id
            self._conversation_messages[stored.id] = []
            return _copy(stored), True

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        with self._lock:
            return _copy(self._conversations.get(conversation_id))

    def list_conversations(self, account_id: str) -> List[Conversation]:
        with self._lock:
            conversations = [
                _copy(c) for c in self._conversations.values() if c.has_participant(account_id)
            ]
        conversations.reverse()
        conversations.sort(key=lambda c: c.last_activity_at, reverse=True)
        return conversations

    # === Messages ===

    def append_message(self, message: Message) -> Message:
        with self._lock:
            stored = _copy(message)
            stored.created_at = stored.created_at or utc_now()
            self._messages[stored.id] = stored
            self._conversation_messages.setdefault(stored.conversation_id, []).append(stored.id)

            conversation = self._conversations.get(stored.conversation_id)
            if conversation is not None and (
                conversation.last_activity_at is None
                or stored.created_at >= conversation.last_activity_at
            ):
                conversation.last_message_id = stored.id
                conversation.last_activity_at = stored.created_at
            return _copy(stored)

    def get_message(self, message_id: str) -> Optional[Message]:
        with self._lock:
            return _copy(self._messages.get(message_id))

    def list_messages(self, conversation_id: str) -> List[Message]:
        with self._lock:
            messages = [
                _copy(self._messages[message_id])
                for message_id in self._conversation_messages.get(conversation_id, [])
            ]
        messages.sort(key=lambda m: m.created_at)
        return messages

    def mark_messages_read(self, conversation_id: str, reader_id: str) -> int:
        with self._lock:
            changed = 0
            for message_id in self._conversation_messages.get(conversation_id, []):
                message = self._messages[message_id]
                if message.sender_id != reader_id and not message.read:
                    message.read = True
                    changed += 1
            return changed

    def count_unread(self, account_id: str) -> int:
        with self._lock:
            total = 0
            for conversation in self._conversations.values():
                if not conversation.has_participant(account_id):
                    continue
                for message_id in self._conversation_messages.get(conversation.id, []):
                    message = self._messages[message_id]
                    if message.sender_id != account_id and not message.read:
                        total += 1
            return total
