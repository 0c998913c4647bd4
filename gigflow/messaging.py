"""
Conversations and messages between two accounts.

A conversation is identified by its unordered participant pair plus an
optional gig, and is found-or-created atomically by the store. Anyone who is
not a participant gets ``NotFoundError`` rather than ``ForbiddenError`` so the
existence of other people's conversations is not revealed.
"""

import logging
from typing import Any, List, Optional

from .config import GigFlowConfig
from .errors import NotFoundError, ValidationError, check_length, require
from .models import MESSAGE_MAX_LENGTH, Account, Conversation, Message, new_id
from .realtime import EVENT_NEW_MESSAGE, NotificationBus
from .storage.base import EntityStore

logger = logging.getLogger(__name__)


class MessagingService:
    """Find-or-create conversations, send messages, track read state."""

    def __init__(
        self,
        store: EntityStore,
        bus: Optional[NotificationBus] = None,
        config: Optional[GigFlowConfig] = None,
    ):
        self.store = store
        self.bus = bus
        self.config = config or GigFlowConfig()

    def _get_for_participant(self, conversation_id: str, account_id: str) -> Conversation:
        conversation = self.store.get_conversation(conversation_id)
        if conversation is None or not conversation.has_participant(account_id):
            raise NotFoundError("Conversation not found")
        return conversation

    def _conversation_views(self, conversations: List[Conversation]) -> List[dict[str, Any]]:
        account_ids = [p for c in conversations for p in c.participants]
        accounts = self.store.get_accounts(account_ids) if account_ids else {}
        gig_ids = [c.gig_id for c in conversations if c.gig_id]
        gigs = self.store.get_gigs(gig_ids) if gig_ids else {}

        views = []
        for conversation in conversations:
            view = conversation.to_dict()
            view["participants"] = [
                accounts[p].summary() if p in accounts else {"id": p}
                for p in conversation.participants
            ]
            gig = gigs.get(conversation.gig_id) if conversation.gig_id else None
            view["gig"] = {"id": gig.id, "title": gig.title} if gig else None
            last = self.store.get_message(conversation.last_message_id) if conversation.last_message_id else None
            view["last_message"] = last.to_dict() if last else None
            views.append(view)
        return views

    # === Conversations ===

    def start_conversation(
        self, initiator: Account, recipient_id: Optional[str], gig_id: Optional[str] = None
    ) -> dict[str, Any]:
        """Return the conversation between ``initiator`` and ``recipient_id`` (for ``gig_id``), creating it if needed."""
        require("recipient_id", recipient_id)
        if recipient_id == initiator.id:
            raise ValidationError("You cannot start a conversation with yourself", field="recipient_id")
        if self.store.get_account(recipient_id) is None:
            raise NotFoundError("Recipient not found")
        if gig_id and self.store.get_gig(gig_id) is None:
            raise NotFoundError("Gig not found")

        conversation, created = self.store.find_or_create_conversation(
            Conversation(id=new_id(), participants=[initiator.id, recipient_id], gig_id=gig_id or None)
        )
        if created:
            logger.info(
                f"Conversation created | id={conversation.id} | "
                f"participants={initiator.id},{recipient_id} | gig={gig_id}"
            )
        return self._conversation_views([conversation])[0]

    def list_conversations(self, account_id: str) -> List[dict[str, Any]]:
        """The account's conversations, most recent activity first."""
        return self._conversation_views(self.store.list_conversations(account_id))

    # === Messages ===

    async def send_message(self, conversation_id: str, sender: Account, content: Optional[str]) -> Message:
        """Append a message and push it to the other participant."""
        conversation = self._get_for_participant(conversation_id, sender.id)
        content = check_length("content", content, 1, MESSAGE_MAX_LENGTH)

        message = self.store.append_message(
            Message(
                id=new_id(),
                conversation_id=conversation.id,
                sender_id=sender.id,
                content=content,
            )
        )
        recipient_id = conversation.other_participant(sender.id)
        logger.info(
            f"Message sent | id={message.id} | conversation={conversation.id} | "
            f"sender={sender.id} | recipient={recipient_id}"
        )

        if self.bus is not None:
            # Name is looked up now, not stored on the message
            current = self.store.get_account(sender.id)
            payload = message.to_dict()
            payload["sender_name"] = current.name if current else sender.name
            try:
                await self.bus.notify(recipient_id, EVENT_NEW_MESSAGE, payload)
            except Exception as e:
                logger.warning(
                    f"Notification failed | account={recipient_id} | event={EVENT_NEW_MESSAGE} | error={e}"
                )
        return message

    def fetch_messages(self, conversation_id: str, requester: Account) -> List[Message]:
        """All messages oldest first, after marking the requester's incoming ones read.

        Marking happens before the read, so the returned flags already show
        the post-fetch state, and fetching again changes nothing.
        """
        conversation = self._get_for_participant(conversation_id, requester.id)
        marked = self.store.mark_messages_read(conversation.id, requester.id)
        if marked:
            logger.debug(f"Messages marked read | conversation={conversation.id} | reader={requester.id} | count={marked}")
        return self.store.list_messages(conversation.id)

    def unread_count(self, account_id: str) -> int:
        return self.store.count_unread(account_id)
