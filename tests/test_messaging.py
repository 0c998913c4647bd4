"""Tests for MessagingService."""

import threading

import pytest

from gigflow.errors import MissingFieldError, NotFoundError, OutOfRangeError, ValidationError


@pytest.fixture
def alice(make_account):
    return make_account("Alice Adams")


@pytest.fixture
def bob(make_account):
    return make_account("Bob Brown")


class TestStartConversation:
    """Tests for conversation find-or-create."""

    def test_same_pair_same_conversation(self, messaging, alice, bob):
        """Test starting from either side returns the same conversation."""
        first = messaging.start_conversation(alice, bob.id)
        second = messaging.start_conversation(bob, alice.id)
        assert first["id"] == second["id"]
        assert {p["name"] for p in first["participants"]} == {"Alice Adams", "Bob Brown"}
        assert first["gig"] is None
        assert first["last_message"] is None

    def test_gig_scoped_conversation_is_separate(self, messaging, alice, bob, open_gig):
        plain = messaging.start_conversation(alice, bob.id)
        scoped = messaging.start_conversation(alice, bob.id, gig_id=open_gig.id)
        assert scoped["id"] != plain["id"]
        assert scoped["gig"] == {"id": open_gig.id, "title": open_gig.title}

    def test_concurrent_starts_create_one(self, messaging, store, alice, bob):
        """Test racing starts with the same key never duplicate the conversation."""
        ids = []
        barrier = threading.Barrier(6)

        def worker(initiator, recipient):
            barrier.wait()
            ids.append(messaging.start_conversation(initiator, recipient.id)["id"])

        pairs = [(alice, bob), (bob, alice)] * 3
        threads = [threading.Thread(target=worker, args=pair) for pair in pairs]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(ids)) == 1
        assert len(store.list_conversations(alice.id)) == 1

    def test_validation(self, messaging, alice):
        with pytest.raises(MissingFieldError):
            messaging.start_conversation(alice, None)
        with pytest.raises(ValidationError, match="yourself"):
            messaging.start_conversation(alice, alice.id)
        with pytest.raises(NotFoundError, match="Recipient"):
            messaging.start_conversation(alice, "missing")

    def test_unknown_gig(self, messaging, alice, bob):
        with pytest.raises(NotFoundError, match="Gig"):
            messaging.start_conversation(alice, bob.id, gig_id="missing")


class TestSendMessage:
    """Tests for sending messages."""

    @pytest.mark.asyncio
    async def test_send_pushes_to_other_participant(self, messaging, alice, bob, connect):
        alice_socket = connect(alice.id)
        bob_socket = connect(bob.id)
        conversation = messaging.start_conversation(alice, bob.id)

        message = await messaging.send_message(conversation["id"], alice, "  Hi Bob!  ")

        assert message.content == "Hi Bob!"
        assert message.read is False
        assert alice_socket.events("new_message") == []
        [event] = bob_socket.events("new_message")
        assert event["data"]["id"] == message.id
        assert event["data"]["sender_name"] == "Alice Adams"

    @pytest.mark.asyncio
    async def test_every_device_receives_message(self, messaging, alice, bob, connect):
        """Test a recipient with two live connections gets the event on both."""
        phone = connect(bob.id)
        laptop = connect(bob.id)
        conversation = messaging.start_conversation(alice, bob.id)
        await messaging.send_message(conversation["id"], alice, "ping")
        assert len(phone.events("new_message")) == 1
        assert len(laptop.events("new_message")) == 1

    @pytest.mark.asyncio
    async def test_updates_last_message(self, messaging, alice, bob):
        conversation = messaging.start_conversation(alice, bob.id)
        await messaging.send_message(conversation["id"], alice, "first")
        second = await messaging.send_message(conversation["id"], bob, "second")
        [listed] = messaging.list_conversations(alice.id)
        assert listed["last_message"]["id"] == second.id

    @pytest.mark.asyncio
    async def test_non_participant_gets_not_found(self, messaging, alice, bob, make_account):
        conversation = messaging.start_conversation(alice, bob.id)
        eve = make_account("Eve Eavesdrop")
        with pytest.raises(NotFoundError):
            await messaging.send_message(conversation["id"], eve, "let me in")
        with pytest.raises(NotFoundError):
            messaging.fetch_messages(conversation["id"], eve)

    @pytest.mark.asyncio
    async def test_content_rules(self, messaging, alice, bob):
        conversation = messaging.start_conversation(alice, bob.id)
        with pytest.raises(MissingFieldError):
            await messaging.send_message(conversation["id"], alice, "   ")
        with pytest.raises(OutOfRangeError):
            await messaging.send_message(conversation["id"], alice, "x" * 5001)

    @pytest.mark.asyncio
    async def test_offline_recipient_still_stores(self, messaging, store, alice, bob):
        conversation = messaging.start_conversation(alice, bob.id)
        await messaging.send_message(conversation["id"], alice, "are you there?")
        assert len(store.list_messages(conversation["id"])) == 1


class TestFetchMessages:
    """Tests for read tracking."""

    @pytest.mark.asyncio
    async def test_read_flags(self, messaging, alice, bob):
        """Test A sends two, B replies once; B's fetch marks only A's two as read."""
        conversation = messaging.start_conversation(alice, bob.id)
        await messaging.send_message(conversation["id"], alice, "one")
        await messaging.send_message(conversation["id"], alice, "two")
        await messaging.send_message(conversation["id"], bob, "three")
        assert messaging.unread_count(bob.id) == 2
        assert messaging.unread_count(alice.id) == 1

        fetched = messaging.fetch_messages(conversation["id"], bob)

        assert [m.content for m in fetched] == ["one", "two", "three"]
        assert [m.read for m in fetched] == [True, True, False]
        assert messaging.unread_count(bob.id) == 0
        assert messaging.unread_count(alice.id) == 1

    @pytest.mark.asyncio
    async def test_fetch_is_idempotent(self, messaging, alice, bob):
        conversation = messaging.start_conversation(alice, bob.id)
        await messaging.send_message(conversation["id"], alice, "hello")
        first = messaging.fetch_messages(conversation["id"], bob)
        second = messaging.fetch_messages(conversation["id"], bob)
        assert [m.to_dict() for m in first] == [m.to_dict() for m in second]

    def test_empty_conversation(self, messaging, alice, bob):
        conversation = messaging.start_conversation(alice, bob.id)
        assert messaging.fetch_messages(conversation["id"], alice) == []
        assert messaging.unread_count(alice.id) == 0
