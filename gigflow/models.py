"""
Entity models for GigFlow.

Every record the store persists is a dataclass defined here. Models validate
their own invariants on construction and raise ``ValueError``; services check
user input first so callers get field-level errors, and these checks are the
last line that keeps a malformed record out of the store.

Foreign references are stored as ids only. Display fields (names, titles)
are resolved at read time, never copied into a record.
"""

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

# === Field limits ===

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
BIO_MAX_LENGTH = 500
PASSWORD_MIN_LENGTH = 6
TITLE_MIN_LENGTH = 5
TITLE_MAX_LENGTH = 100
DESCRIPTION_MIN_LENGTH = 20
DESCRIPTION_MAX_LENGTH = 2000
PROPOSAL_MIN_LENGTH = 10
PROPOSAL_MAX_LENGTH = 1000
MESSAGE_MAX_LENGTH = 5000
MIN_BUDGET = 1
MIN_PRICE = 1
MIN_DELIVERY_DAYS = 1
MAX_RATING = 5.0
DEFAULT_CATEGORY = "General"

EMAIL_PATTERN = re.compile(r"^[\w.+-]+@[\w-]+(\.[\w-]+)*\.\w{2,}$")


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate an opaque record id."""
    return str(uuid.uuid4())


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (or pass a datetime through)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _enum_value(value: Any, enum_cls: type[Enum]) -> str:
    """Normalize an enum member or raw string to its string value."""
    if isinstance(value, enum_cls):
        return value.value
    valid = {member.value for member in enum_cls}
    if value not in valid:
        raise ValueError(f"Invalid status: {value!r} (expected one of {sorted(valid)})")
    return value


# === Enums ===


class AccountRole(str, Enum):
    """What an account is allowed to do on the marketplace."""

    FREELANCER = "freelancer"
    CLIENT = "client"
    BOTH = "both"


class GigStatus(str, Enum):
    """Gig lifecycle. One way: open -> assigned."""

    OPEN = "open"
    ASSIGNED = "assigned"


class BidStatus(str, Enum):
    """Bid lifecycle. Hired and rejected are terminal."""

    PENDING = "pending"
    HIRED = "hired"
    REJECTED = "rejected"


TERMINAL_BID_STATUSES = frozenset({BidStatus.HIRED.value, BidStatus.REJECTED.value})


# === Accounts ===


@dataclass
class Account:
    """A marketplace participant. Can post gigs, bid on them, or both."""

    id: str
    name: str
    email: str
    password_hash: str = ""
    role: str = AccountRole.BOTH.value
    bio: str = ""
    skills: list[str] = field(default_factory=list)
    rating: float = 0.0
    completed_gigs: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.role, AccountRole):
            self.role = self.role.value
        if self.role not in {r.value for r in AccountRole}:
            raise ValueError(f"Invalid role: {self.role!r}")
        self.name = (self.name or "").strip()
        if not NAME_MIN_LENGTH <= len(self.name) <= NAME_MAX_LENGTH:
            raise ValueError(f"Name must be {NAME_MIN_LENGTH}-{NAME_MAX_LENGTH} characters")
        self.email = (self.email or "").strip().lower()
        if not EMAIL_PATTERN.match(self.email):
            raise ValueError(f"Invalid email address: {self.email!r}")
        if len(self.bio) > BIO_MAX_LENGTH:
            raise ValueError(f"Bio cannot exceed {BIO_MAX_LENGTH} characters")
        if not 0 <= self.rating <= MAX_RATING:
            raise ValueError(f"Rating must be between 0 and {MAX_RATING:g}")
        if self.completed_gigs < 0:
            raise ValueError("completed_gigs cannot be negative")

    @property
    def can_bid(self) -> bool:
        return self.role != AccountRole.CLIENT.value

    @property
    def can_post(self) -> bool:
        return self.role != AccountRole.FREELANCER.value

    def summary(self) -> dict[str, Any]:
        """Public display fields used when another record references this account."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "rating": self.rating,
            "completed_gigs": self.completed_gigs,
        }

    def to_dict(self, include_private: bool = False) -> dict[str, Any]:
        """Serialize. The password hash is only included for persistence."""
        data = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "bio": self.bio,
            "skills": list(self.skills),
            "rating": self.rating,
            "completed_gigs": self.completed_gigs,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_private:
            data["password_hash"] = self.password_hash
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Account":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            email=data["email"],
            password_hash=data.get("password_hash") or "",
            role=data.get("role") or AccountRole.BOTH.value,
            bio=data.get("bio") or "",
            skills=list(data.get("skills") or []),
            rating=float(data.get("rating") or 0.0),
            completed_gigs=int(data.get("completed_gigs") or 0),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )


# === Gigs ===


@dataclass
class Gig:
    """A posted job with a fixed budget, owned by one account."""

    id: str
    owner_id: str
    title: str
    description: str
    budget: float
    category: str = DEFAULT_CATEGORY
    deadline: Optional[datetime] = None
    status: str = GigStatus.OPEN.value
    hired_freelancer_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = _enum_value(self.status, GigStatus)
        if len(self.title) > TITLE_MAX_LENGTH:
            raise ValueError(f"Title too long (max {TITLE_MAX_LENGTH} characters)")
        if len(self.description) > DESCRIPTION_MAX_LENGTH:
            raise ValueError(f"Description too long (max {DESCRIPTION_MAX_LENGTH} characters)")
        if self.budget <= 0:
            raise ValueError("Budget must be positive")
        assigned = self.status == GigStatus.ASSIGNED.value
        if assigned != (self.hired_freelancer_id is not None):
            raise ValueError("hired_freelancer_id must be set if and only if the gig is assigned")

    @property
    def is_open(self) -> bool:
        return self.status == GigStatus.OPEN.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "description": self.description,
            "budget": self.budget,
            "category": self.category,
            "deadline": _iso(self.deadline),
            "status": self.status,
            "hired_freelancer_id": self.hired_freelancer_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Gig":
        return cls(
            id=str(data["id"]),
            owner_id=str(data["owner_id"]),
            title=data["title"],
            description=data["description"],
            budget=float(data["budget"]),
            category=data.get("category") or DEFAULT_CATEGORY,
            deadline=parse_datetime(data.get("deadline")),
            status=data.get("status") or GigStatus.OPEN.value,
            hired_freelancer_id=data.get("hired_freelancer_id"),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )


# === Bids ===


@dataclass
class Bid:
    """A freelancer's proposal against a gig."""

    id: str
    gig_id: str
    freelancer_id: str
    proposal: str
    price: float
    delivery_days: int
    status: str = BidStatus.PENDING.value
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = _enum_value(self.status, BidStatus)
        if len(self.proposal) > PROPOSAL_MAX_LENGTH:
            raise ValueError(f"Proposal too long (max {PROPOSAL_MAX_LENGTH} characters)")
        if self.price <= 0:
            raise ValueError("Price must be positive")
        if self.delivery_days <= 0:
            raise ValueError("Delivery time must be positive")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_BID_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "gig_id": self.gig_id,
            "freelancer_id": self.freelancer_id,
            "proposal": self.proposal,
            "price": self.price,
            "delivery_days": self.delivery_days,
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Bid":
        return cls(
            id=str(data["id"]),
            gig_id=str(data["gig_id"]),
            freelancer_id=str(data["freelancer_id"]),
            proposal=data["proposal"],
            price=float(data["price"]),
            delivery_days=int(data["delivery_days"]),
            status=data.get("status") or BidStatus.PENDING.value,
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
        )


# === Conversations ===


def conversation_key(first: str, second: str, gig_id: Optional[str] = None) -> tuple[str, str, str]:
    """Identity of a conversation: unordered participant pair plus gig ('' for none)."""
    low, high = sorted((first, second))
    return low, high, gig_id or ""


@dataclass
class Conversation:
    """A durable two-party channel, optionally scoped to one gig."""

    id: str
    participants: list[str]
    gig_id: Optional[str] = None
    last_message_id: Optional[str] = None
    last_activity_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        self.participants = list(self.participants)
        if len(self.participants) != 2:
            raise ValueError("A conversation has exactly two participants")
        if self.participants[0] == self.participants[1]:
            raise ValueError("Conversation participants must be distinct")

    @property
    def key(self) -> tuple[str, str, str]:
        return conversation_key(self.participants[0], self.participants[1], self.gig_id)

    def has_participant(self, account_id: str) -> bool:
        return account_id in self.participants

    def other_participant(self, account_id: str) -> str:
        """The participant that is not ``account_id``."""
        if account_id not in self.participants:
            raise ValueError(f"{account_id} is not a participant")
        return self.participants[1] if self.participants[0] == account_id else self.participants[0]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "participants": list(self.participants),
            "gig_id": self.gig_id,
            "last_message_id": self.last_message_id,
            "last_activity_at": _iso(self.last_activity_at),
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Conversation":
        participants = data.get("participants") or [data["participant_a"], data["participant_b"]]
        return cls(
            id=str(data["id"]),
            participants=[str(p) for p in participants],
            gig_id=data.get("gig_id") or None,
            last_message_id=data.get("last_message_id"),
            last_activity_at=parse_datetime(data.get("last_activity_at")),
            created_at=parse_datetime(data.get("created_at")),
        )


# === Messages ===


@dataclass
class Message:
    """One message in a conversation. Only ``read`` ever changes."""

    id: str
    conversation_id: str
    sender_id: str
    content: str
    read: bool = False
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.content or not self.content.strip():
            raise ValueError("Message content cannot be empty")
        if len(self.content) > MESSAGE_MAX_LENGTH:
            raise ValueError(f"Message too long (max {MESSAGE_MAX_LENGTH} characters)")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "sender_id": self.sender_id,
            "content": self.content,
            "read": self.read,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        return cls(
            id=str(data["id"]),
            conversation_id=str(data["conversation_id"]),
            sender_id=str(data["sender_id"]),
            content=data["content"],
            read=bool(data.get("read", False)),
            created_at=parse_datetime(data.get("created_at")),
        )
