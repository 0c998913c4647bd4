"""Messaging routes: conversations, messages and unread counts."""

from fastapi import APIRouter, Request, status

from gigflow.errors import require

from ..auth import CurrentAccount
from ..dependencies import Messaging
from ..logging_config import get_logger
from ..models import ConversationCreate, MessageCreate
from ..rate_limit import READ_LIMIT, WRITE_LIMIT, limiter

logger = get_logger("gigflow.api.messages")
router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("/conversations")
@limiter.limit(WRITE_LIMIT)
async def start_conversation(
    request: Request,
    body: ConversationCreate,
    account: CurrentAccount,
    messaging: Messaging,
):
    """Find or create the conversation with another account, optionally about a gig."""
    conversation = messaging.start_conversation(account, body.recipient_id, body.gig_id)
    return {"success": True, "data": conversation}


@router.get("/conversations")
@limiter.limit(READ_LIMIT)
async def list_conversations(request: Request, account: CurrentAccount, messaging: Messaging):
    """The account's conversations, most recently active first."""
    conversations = messaging.list_conversations(account.id)
    return {"success": True, "count": len(conversations), "data": conversations}


@router.get("/unread")
@limiter.limit(READ_LIMIT)
async def unread_count(request: Request, account: CurrentAccount, messaging: Messaging):
    """Number of unread incoming messages across all conversations."""
    return {"success": True, "data": {"count": messaging.unread_count(account.id)}}


@router.get("/{conversation_id}")
@limiter.limit(READ_LIMIT)
async def fetch_messages(
    request: Request,
    conversation_id: str,
    account: CurrentAccount,
    messaging: Messaging,
):
    """All messages in the conversation, oldest first. Marks incoming ones read."""
    messages = messaging.fetch_messages(conversation_id, account)
    return {"success": True, "count": len(messages), "data": [m.to_dict() for m in messages]}


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
async def send_message(
    request: Request,
    body: MessageCreate,
    account: CurrentAccount,
    messaging: Messaging,
):
    """Send a message; the other participant gets it in real time if online."""
    require("conversation_id", body.conversation_id)
    message = await messaging.send_message(body.conversation_id, account, body.content)
    return {"success": True, "data": message.to_dict()}
