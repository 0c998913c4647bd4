"""Pydantic models for API requests.

Field rules (lengths, minimums, required fields) live in the core services so
the API and the library report the same field-level errors. These models
only fix the JSON shape and types.
"""

from datetime import datetime

from pydantic import BaseModel, Field

# =============================================================================
# Auth Models
# =============================================================================


class RegisterRequest(BaseModel):
    """Request to create an account."""
    name: str | None = None
    email: str | None = None
    password: str | None = None
    role: str | None = None  # freelancer, client or both (default)
    bio: str | None = None
    skills: list[str] = Field(default_factory=list)


class LoginRequest(BaseModel):
    """Email + password login."""
    email: str | None = None
    password: str | None = None


# =============================================================================
# Marketplace Models
# =============================================================================


class GigCreate(BaseModel):
    """Request to post a gig."""
    title: str | None = None
    description: str | None = None
    budget: float | None = None
    category: str | None = None
    deadline: datetime | None = None


class BidCreate(BaseModel):
    """Request to bid on a gig."""
    gig_id: str | None = None
    proposal: str | None = None
    price: float | None = None
    delivery_days: int | None = None


# =============================================================================
# Messaging Models
# =============================================================================


class ConversationCreate(BaseModel):
    """Open (or find) the conversation with another account."""
    recipient_id: str | None = None
    gig_id: str | None = None


class MessageCreate(BaseModel):
    """Send a message into a conversation."""
    conversation_id: str | None = None
    content: str | None = None
