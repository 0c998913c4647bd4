"""Database utilities for Supabase integration."""

from typing import Any, List, Optional

from gigflow.errors import UpstreamError
from gigflow.models import Account, Bid, Conversation, Gig, Message
from gigflow.storage import CONFLICT, NOT_FOUND, DuplicateRecordError, GigFilters, HireRecord
from supabase import Client, create_client

from .config import Settings, get_settings
from .logging_config import get_logger

logger = get_logger("gigflow.api.database")

_supabase_client: Client | None = None


def get_supabase_client(settings: Settings | None = None) -> Client:
    """Get cached Supabase client."""
    global _supabase_client
    if _supabase_client is None:
        if settings is None:
            settings = get_settings()
        if not settings.supabase_url:
            raise ValueError("SUPABASE_URL must be set when STORE_BACKEND=supabase")
        # Prefer new secret key, fall back to legacy service_role_key
        api_key = settings.supabase_secret_key or settings.supabase_service_role_key
        if not api_key:
            raise ValueError("Either SUPABASE_SECRET_KEY or SUPABASE_SERVICE_ROLE_KEY must be set")
        _supabase_client = create_client(settings.supabase_url, api_key)
    return _supabase_client


# =============================================================================
# Table Names
# =============================================================================

ACCOUNTS_TABLE = "accounts"
GIGS_TABLE = "gigs"
BIDS_TABLE = "bids"
CONVERSATIONS_TABLE = "conversations"
MESSAGES_TABLE = "messages"

HIRE_BID_FUNCTION = "hire_bid"
PLACE_BID_FUNCTION = "place_bid"
POST_MESSAGE_FUNCTION = "post_message"

_SORT_COLUMNS = {
    "newest": ("created_at", True),
    "oldest": ("created_at", False),
    "budget_asc": ("budget", False),
    "budget_desc": ("budget", True),
}

# Characters with meaning inside a PostgREST or=(...) filter
_FILTER_SPECIAL = str.maketrans("", "", ',()"\\')


def _is_unique_violation(error: Exception) -> bool:
    text = str(error).lower()
    return "23505" in text or "duplicate" in text or "unique" in text


def _is_malformed_id(error: Exception) -> bool:
    # 22P02: a client-supplied id that is not a uuid
    text = str(error).lower()
    return "22p02" in text or "invalid input syntax for type uuid" in text


def _row(record_dict: dict[str, Any]) -> dict[str, Any]:
    """Drop unset timestamps so the column defaults apply."""
    return {
        key: value
        for key, value in record_dict.items()
        if not (value is None and key in ("created_at", "updated_at", "last_activity_at"))
    }


def _rpc_payload(result) -> Optional[dict]:
    """The jsonb object an RPC returned, or None (no result or malformed id)."""
    if result is None:
        return None
    payload = result.data
    if isinstance(payload, list):
        payload = payload[0] if payload else None
    return payload or None


# =============================================================================
# Entity Store
# =============================================================================


class SupabaseEntityStore:
    """``EntityStore`` backed by the Supabase Postgres tables in
    ``supabase/migrations/001_initial_schema.sql``.

    The atomic primitives lean on the database: unique indexes reject a
    second account per email and a second bid per (gig, freelancer), the
    conversation key index makes find-or-create an upsert. The hire, the bid
    insert and the message append each run inside one plpgsql function
    (``hire_bid``, ``place_bid``, ``post_message``) as a single transaction.
    """

    def __init__(self, db: Client):
        self.db = db

    def _execute(self, query, action: str, lookup: bool = False):
        """Run ``query``. With ``lookup``, a malformed id means no row and returns None."""
        try:
            return query.execute()
        except Exception as e:
            if _is_unique_violation(e):
                raise DuplicateRecordError(f"Duplicate record on {action}")
            if lookup and _is_malformed_id(e):
                logger.debug(f"Supabase {action}: malformed id, treating as missing")
                return None
            logger.error(f"Supabase {action} failed: {type(e).__name__}: {e}")
            raise UpstreamError("Database is unavailable, try again later") from e

    def _first(self, table: str, column: str, value: Any) -> Optional[dict]:
        result = self._execute(
            self.db.table(table).select("*").eq(column, value).limit(1),
            f"select {table}",
            lookup=True,
        )
        return result.data[0] if result is not None and result.data else None

    # === Accounts ===

    def create_account(self, account: Account) -> Account:
        result = self._execute(
            self.db.table(ACCOUNTS_TABLE).insert(_row(account.to_dict(include_private=True))),
            "insert account",
        )
        return Account.from_dict(result.data[0])

    def get_account(self, account_id: str) -> Optional[Account]:
        row = self._first(ACCOUNTS_TABLE, "id", account_id)
        return Account.from_dict(row) if row else None

    def get_account_by_email(self, email: str) -> Optional[Account]:
        row = self._first(ACCOUNTS_TABLE, "email", (email or "").strip().lower())
        return Account.from_dict(row) if row else None

    def get_accounts(self, account_ids: List[str]) -> dict[str, Account]:
        ids = sorted(set(account_ids))
        if not ids:
            return {}
        result = self._execute(
            self.db.table(ACCOUNTS_TABLE).select("*").in_("id", ids), "select accounts"
        )
        return {str(row["id"]): Account.from_dict(row) for row in result.data or []}

    # === Gigs ===

    def save_gig(self, gig: Gig) -> Gig:
        result = self._execute(self.db.table(GIGS_TABLE).insert(_row(gig.to_dict())), "insert gig")
        return Gig.from_dict(result.data[0])

    def get_gig(self, gig_id: str) -> Optional[Gig]:
        row = self._first(GIGS_TABLE, "id", gig_id)
        return Gig.from_dict(row) if row else None

    def get_gigs(self, gig_ids: List[str]) -> dict[str, Gig]:
        ids = sorted(set(gig_ids))
        if not ids:
            return {}
        result = self._execute(self.db.table(GIGS_TABLE).select("*").in_("id", ids), "select gigs")
        return {str(row["id"]): Gig.from_dict(row) for row in result.data or []}

    def list_gigs(self, filters: GigFilters) -> List[Gig]:
        query = self.db.table(GIGS_TABLE).select("*")
        if filters.status is not None:
            query = query.eq("status", filters.status)
        if filters.owner_id is not None:
            query = query.eq("owner_id", filters.owner_id)
        if filters.category:
            query = query.ilike("category", filters.category)
        if filters.search:
            term = filters.search.translate(_FILTER_SPECIAL).strip()
            if term:
                query = query.or_(f"title.ilike.*{term}*,description.ilike.*{term}*")
        if filters.min_budget is not None:
            query = query.gte("budget", filters.min_budget)
        if filters.max_budget is not None:
            query = query.lte("budget", filters.max_budget)

        column, desc = _SORT_COLUMNS[filters.sort]
        query = query.order(column, desc=desc).range(
            filters.offset, filters.offset + filters.limit - 1
        )
        result = self._execute(query, "list gigs")
        return [Gig.from_dict(row) for row in result.data or []]

    def delete_open_gig(self, gig_id: str) -> tuple[Optional[Gig], Optional[str]]:
        # Bids go with the gig through ON DELETE CASCADE
        result = self._execute(
            self.db.table(GIGS_TABLE).delete().eq("id", gig_id).eq("status", "open"),
            "delete gig",
        )
        if result.data:
            return Gig.from_dict(result.data[0]), None
        if self.get_gig(gig_id) is None:
            return None, NOT_FOUND
        logger.warning(f"Delete conflict on gig {gig_id}: no longer open")
        return None, CONFLICT

    # === Bids ===

    def insert_bid(self, bid: Bid) -> tuple[Optional[Bid], Optional[str]]:
        """Run the ``place_bid`` function: the gig row is share-locked and must be open."""
        result = self._execute(
            self.db.rpc(
                PLACE_BID_FUNCTION,
                {
                    "p_id": bid.id,
                    "p_gig_id": bid.gig_id,
                    "p_freelancer_id": bid.freelancer_id,
                    "p_proposal": bid.proposal,
                    "p_price": bid.price,
                    "p_delivery_days": bid.delivery_days,
                },
            ),
            "place_bid",
            lookup=True,
        )
        payload = _rpc_payload(result)
        if not payload or payload.get("error") == NOT_FOUND:
            return None, NOT_FOUND
        if payload.get("error") == CONFLICT:
            logger.info(f"Bid refused on gig {bid.gig_id}: gig is no longer open")
            return None, CONFLICT
        return Bid.from_dict(payload["bid"]), None

    def get_bid(self, bid_id: str) -> Optional[Bid]:
        row = self._first(BIDS_TABLE, "id", bid_id)
        return Bid.from_dict(row) if row else None

    def list_bids(
        self,
        gig_id: Optional[str] = None,
        freelancer_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Bid]:
        query = self.db.table(BIDS_TABLE).select("*")
        if gig_id is not None:
            query = query.eq("gig_id", gig_id)
        if freelancer_id is not None:
            query = query.eq("freelancer_id", freelancer_id)
        if status is not None:
            query = query.eq("status", status)
        result = self._execute(query.order("created_at", desc=True), "list bids")
        return [Bid.from_dict(row) for row in result.data or []]

    # === Hire ===

    def commit_hire(self, gig_id: str, bid_id: str) -> tuple[Optional[HireRecord], Optional[str]]:
        """Run the ``hire_bid`` function: one transaction, ``open`` checked in its UPDATE."""
        result = self._execute(
            self.db.rpc(HIRE_BID_FUNCTION, {"p_gig_id": gig_id, "p_bid_id": bid_id}),
            "hire_bid",
            lookup=True,
        )
        payload = _rpc_payload(result)
        if not payload:
            return None, NOT_FOUND

        error = payload.get("error")
        if error == CONFLICT:
            logger.warning(f"Hire conflict on gig {gig_id}: gig is no longer open")
            return None, CONFLICT
        if error:
            return None, NOT_FOUND

        freelancer = payload.get("freelancer")
        return (
            HireRecord(
                gig=Gig.from_dict(payload["gig"]),
                bid=Bid.from_dict(payload["bid"]),
                freelancer=Account.from_dict(freelancer) if freelancer else None,
                rejected_bid_ids=[str(i) for i in payload.get("rejected_bid_ids") or []],
            ),
            None,
        )

    # === Conversations ===

    @staticmethod
    def _conversation_row(conversation: Conversation) -> dict[str, Any]:
        low, high, gig_key = conversation.key
        row = {
            "id": conversation.id,
            "participant_a": low,
            "participant_b": high,
            "gig_id": conversation.gig_id,
            "gig_key": gig_key,
            "last_message_id": conversation.last_message_id,
        }
        if conversation.last_activity_at:
            row["last_activity_at"] = conversation.last_activity_at.isoformat()
        return row

    def find_or_create_conversation(self, conversation: Conversation) -> tuple[Conversation, bool]:
        low, high, gig_key = conversation.key
        self._execute(
            self.db.table(CONVERSATIONS_TABLE).upsert(
                self._conversation_row(conversation),
                on_conflict="participant_a,participant_b,gig_key",
                ignore_duplicates=True,
            ),
            "upsert conversation",
        )
        # Re-select: on a duplicate the upsert returns nothing
        result = self._execute(
            self.db.table(CONVERSATIONS_TABLE)
            .select("*")
            .eq("participant_a", low)
            .eq("participant_b", high)
            .eq("gig_key", gig_key)
            .limit(1),
            "select conversation",
        )
        if not result.data:
            raise UpstreamError("Conversation could not be stored")
        stored = Conversation.from_dict(result.data[0])
        return stored, stored.id == conversation.id

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        row = self._first(CONVERSATIONS_TABLE, "id", conversation_id)
        return Conversation.from_dict(row) if row else None

    def list_conversations(self, account_id: str) -> List[Conversation]:
        result = self._execute(
            self.db.table(CONVERSATIONS_TABLE)
            .select("*")
            .or_(f"participant_a.eq.{account_id},participant_b.eq.{account_id}")
            .order("last_activity_at", desc=True),
            "list conversations",
        )
        return [Conversation.from_dict(row) for row in result.data or []]

    # === Messages ===

    def append_message(self, message: Message) -> Message:
        """Run the ``post_message`` function: insert and pointer move commit together."""
        result = self._execute(
            self.db.rpc(
                POST_MESSAGE_FUNCTION,
                {
                    "p_id": message.id,
                    "p_conversation_id": message.conversation_id,
                    "p_sender_id": message.sender_id,
                    "p_content": message.content,
                    "p_created_at": message.created_at.isoformat() if message.created_at else None,
                },
            ),
            "post_message",
        )
        payload = _rpc_payload(result)
        if not payload:
            raise UpstreamError("Message could not be stored")
        return Message.from_dict(payload)

    def get_message(self, message_id: str) -> Optional[Message]:
        row = self._first(MESSAGES_TABLE, "id", message_id)
        return Message.from_dict(row) if row else None

    def list_messages(self, conversation_id: str) -> List[Message]:
        result = self._execute(
            self.db.table(MESSAGES_TABLE)
            .select("*")
            .eq("conversation_id", conversation_id)
            .order("created_at"),
            "list messages",
        )
        return [Message.from_dict(row) for row in result.data or []]

    def mark_messages_read(self, conversation_id: str, reader_id: str) -> int:
        result = self._execute(
            self.db.table(MESSAGES_TABLE)
            .update({"read": True})
            .eq("conversation_id", conversation_id)
            .neq("sender_id", reader_id)
            .eq("read", False),
            "mark messages read",
        )
        return len(result.data or [])

    def count_unread(self, account_id: str) -> int:
        conversations = self.list_conversations(account_id)
        if not conversations:
            return 0
        result = self._execute(
            self.db.table(MESSAGES_TABLE)
            .select("id", count="exact")
            .in_("conversation_id", [c.id for c in conversations])
            .neq("sender_id", account_id)
            .eq("read", False),
            "count unread",
        )
        return result.count or 0
