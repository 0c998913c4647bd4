"""
Entity store contract.

The services only talk to persistence through ``EntityStore``. Implementations
must provide the atomic primitives the invariants depend on:

- ``create_account`` / ``insert_bid`` reject duplicates of their unique keys
  (email; gig + freelancer) with ``DuplicateRecordError`` instead of writing a
  second record.
- ``insert_bid`` re-checks that the gig is open in the same unit as the
  insert, so it serializes against ``commit_hire`` and ``delete_open_gig``.
- ``commit_hire`` applies the whole hire (gig assigned, bid hired, competing
  bids rejected, freelancer counter bumped) as one unit, with the
  ``open -> assigned`` conditional update as the serialization point.
- ``find_or_create_conversation`` never creates two conversations for the
  same participant pair and gig.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from ..errors import ConflictError
from ..models import Account, Bid, Conversation, Gig, Message

GIG_SORTS = ("newest", "oldest", "budget_asc", "budget_desc")

# Error codes returned by the conditional operations
NOT_FOUND = "not_found"
CONFLICT = "conflict"


class DuplicateRecordError(ConflictError):
    """A unique key (email, gig + freelancer bid pair) already exists."""


@dataclass
class GigFilters:
    """Filters for listing gigs. Search is a plain substring match, no ranking."""

    status: Optional[str] = None
    owner_id: Optional[str] = None
    category: Optional[str] = None
    search: Optional[str] = None
    min_budget: Optional[float] = None
    max_budget: Optional[float] = None
    sort: str = "newest"
    limit: int = 20
    offset: int = 0

    def __post_init__(self):
        if self.sort not in GIG_SORTS:
            raise ValueError(f"Invalid sort: {self.sort!r} (expected one of {list(GIG_SORTS)})")


@dataclass
class HireRecord:
    """Everything ``commit_hire`` changed, as stored after the commit."""

    gig: Gig
    bid: Bid
    freelancer: Optional[Account]
    rejected_bid_ids: List[str] = field(default_factory=list)


class EntityStore(Protocol):
    """Protocol for GigFlow persistence backends."""

    # Accounts
    def create_account(self, account: Account) -> Account:
        """Insert an account. Raises DuplicateRecordError if the email is taken."""
        ...

    def get_account(self, account_id: str) -> Optional[Account]:
        """Get an account by ID."""
        ...

    def get_account_by_email(self, email: str) -> Optional[Account]:
        """Get an account by (case-insensitive) email."""
        ...

    def get_accounts(self, account_ids: List[str]) -> dict[str, Account]:
        """Bulk lookup used to resolve display fields. Missing ids are omitted."""
        ...

    # Gigs
    def save_gig(self, gig: Gig) -> Gig:
        """Insert a new gig."""
        ...

    def get_gig(self, gig_id: str) -> Optional[Gig]:
        """Get a gig by ID."""
        ...

    def get_gigs(self, gig_ids: List[str]) -> dict[str, Gig]:
        """Bulk lookup of gigs. Missing ids are omitted."""
        ...

    def list_gigs(self, filters: GigFilters) -> List[Gig]:
        """List gigs matching ``filters``."""
        ...

    def delete_open_gig(self, gig_id: str) -> tuple[Optional[Gig], Optional[str]]:
        """Delete a gig and its bids, only while it is still open.

        Returns (deleted_gig, None), or (None, "not_found" | "conflict").
        """
        ...

    # Bids
    def insert_bid(self, bid: Bid) -> tuple[Optional[Bid], Optional[str]]:
        """Insert a bid, only while its gig is still open.

        Returns (bid, None), or (None, "not_found" | "conflict") when the gig
        is gone or no longer open. The gig check and the insert are one unit,
        so a bid can never land on a gig a concurrent hire just assigned.
        Raises DuplicateRecordError for a repeated gig + freelancer pair.
        """
        ...

    def get_bid(self, bid_id: str) -> Optional[Bid]:
        """Get a bid by ID."""
        ...

    def list_bids(
        self,
        gig_id: Optional[str] = None,
        freelancer_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Bid]:
        """List bids, newest first."""
        ...

    # Hire
    def commit_hire(self, gig_id: str, bid_id: str) -> tuple[Optional[HireRecord], Optional[str]]:
        """Atomically hire ``bid_id`` on ``gig_id``.

        Returns (record, None) on success, (None, "not_found") if the gig or
        bid vanished, and (None, "conflict") if the gig is no longer open.
        """
        ...

    # Conversations
    def find_or_create_conversation(self, conversation: Conversation) -> tuple[Conversation, bool]:
        """Return the stored conversation for ``conversation.key``, inserting it if absent.

        The boolean is True when this call created the record.
        """
        ...

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """Get a conversation by ID."""
        ...

    def list_conversations(self, account_id: str) -> List[Conversation]:
        """Conversations the account takes part in, most recent activity first."""
        ...

    # Messages
    def append_message(self, message: Message) -> Message:
        """Insert a message and move the conversation's last-message pointer to it."""
        ...

    def get_message(self, message_id: str) -> Optional[Message]:
        """Get a message by ID."""
        ...

    def list_messages(self, conversation_id: str) -> List[Message]:
        """All messages in a conversation, oldest first."""
        ...

    def mark_messages_read(self, conversation_id: str, reader_id: str) -> int:
        """Mark unread messages not sent by ``reader_id`` as read. Returns the count changed."""
        ...

    def count_unread(self, account_id: str) -> int:
        """Unread incoming messages across all of the account's conversations."""
        ...
