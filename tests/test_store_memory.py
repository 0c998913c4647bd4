"""Tests for InMemoryEntityStore."""

import threading
from datetime import timedelta

import pytest

from gigflow.models import Account, Bid, Conversation, Gig, Message, new_id, utc_now
from gigflow.storage import CONFLICT, NOT_FOUND, DuplicateRecordError, GigFilters, InMemoryEntityStore


def _gig(owner_id, title="Write a blog post", budget=100, **kwargs):
    return Gig(
        id=new_id(),
        owner_id=owner_id,
        title=title,
        description="Long-form article about sourdough baking at home.",
        budget=budget,
        **kwargs,
    )


def _bid(gig_id, freelancer_id, price=50):
    return Bid(
        id=new_id(),
        gig_id=gig_id,
        freelancer_id=freelancer_id,
        proposal="I have written many baking articles.",
        price=price,
        delivery_days=5,
    )


def _insert(store, gig_id, freelancer_id, price=50):
    bid, error = store.insert_bid(_bid(gig_id, freelancer_id, price))
    assert error is None
    return bid


class TestAccounts:
    """Tests for account storage."""

    def test_duplicate_email_rejected(self, store):
        """Test a second account with the same email is rejected."""
        store.create_account(Account(id="a1", name="Ada", email="ada@example.com"))
        with pytest.raises(DuplicateRecordError):
            store.create_account(Account(id="a2", name="Ada Two", email="ADA@example.com"))

    def test_lookup_by_email_is_case_insensitive(self, store):
        store.create_account(Account(id="a1", name="Ada", email="ada@example.com"))
        assert store.get_account_by_email(" Ada@Example.com ").id == "a1"
        assert store.get_account_by_email("nobody@example.com") is None

    def test_reads_return_copies(self, store):
        """Test mutating a returned record does not change the store."""
        store.create_account(Account(id="a1", name="Ada", email="ada@example.com"))
        account = store.get_account("a1")
        account.completed_gigs = 99
        assert store.get_account("a1").completed_gigs == 0

    def test_get_accounts_skips_missing(self, store):
        store.create_account(Account(id="a1", name="Ada", email="ada@example.com"))
        assert list(store.get_accounts(["a1", "missing"])) == ["a1"]


class TestGigListing:
    """Tests for list_gigs filters and sorting."""

    @pytest.fixture
    def gigs(self, store):
        now = utc_now()
        cheap = store.save_gig(_gig("o1", title="Cheap logo work", budget=20, category="Design", created_at=now - timedelta(hours=2)))
        mid = store.save_gig(_gig("o1", title="Python scraper", budget=200, category="Code", created_at=now - timedelta(hours=1)))
        pricey = store.save_gig(_gig("o2", title="Mobile app build", budget=2000, category="Code", created_at=now))
        return cheap, mid, pricey

    def test_newest_first_by_default(self, store, gigs):
        cheap, mid, pricey = gigs
        assert [g.id for g in store.list_gigs(GigFilters())] == [pricey.id, mid.id, cheap.id]

    def test_budget_sorts(self, store, gigs):
        cheap, mid, pricey = gigs
        assert [g.id for g in store.list_gigs(GigFilters(sort="budget_asc"))] == [cheap.id, mid.id, pricey.id]
        assert [g.id for g in store.list_gigs(GigFilters(sort="budget_desc"))] == [pricey.id, mid.id, cheap.id]

    def test_search_is_case_insensitive_substring(self, store, gigs):
        _, mid, _ = gigs
        assert [g.id for g in store.list_gigs(GigFilters(search="PYTHON"))] == [mid.id]

    def test_category_and_budget_filters(self, store, gigs):
        _, mid, _ = gigs
        filters = GigFilters(category="code", max_budget=500)
        assert [g.id for g in store.list_gigs(filters)] == [mid.id]

    def test_owner_filter_and_paging(self, store, gigs):
        cheap, mid, _ = gigs
        assert [g.id for g in store.list_gigs(GigFilters(owner_id="o1", limit=1, offset=1))] == [cheap.id]

    def test_invalid_sort_rejected(self):
        with pytest.raises(ValueError, match="sort"):
            GigFilters(sort="random")


class TestBids:
    """Tests for bid storage."""

    def test_duplicate_pair_rejected(self, store):
        """Test the same freelancer cannot bid twice on one gig."""
        gig = store.save_gig(_gig("o1"))
        _insert(store, gig.id, "f1")
        with pytest.raises(DuplicateRecordError):
            _insert(store, gig.id, "f1")

    def test_insert_requires_open_gig(self, store):
        """Test a bid on an assigned or deleted gig is refused and not stored."""
        gig = store.save_gig(_gig("o1"))
        hired = _insert(store, gig.id, "f1")
        store.commit_hire(gig.id, hired.id)

        assert store.insert_bid(_bid(gig.id, "f2")) == (None, CONFLICT)
        assert store.insert_bid(_bid("missing", "f2")) == (None, NOT_FOUND)
        assert [b.freelancer_id for b in store.list_bids(gig_id=gig.id)] == ["f1"]

    def test_concurrent_bids_and_hire(self, store):
        """Test bids racing a hire are either rejected by it or refused, never left pending."""
        gig = store.save_gig(_gig("o1"))
        target = _insert(store, gig.id, "f0")
        outcomes = []
        barrier = threading.Barrier(9)

        def bidder(i):
            barrier.wait()
            outcomes.append(store.insert_bid(_bid(gig.id, f"f{i}"))[1])

        def hirer():
            barrier.wait()
            store.commit_hire(gig.id, target.id)

        threads = [threading.Thread(target=bidder, args=(i,)) for i in range(1, 9)]
        threads.append(threading.Thread(target=hirer))
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        stored = store.list_bids(gig_id=gig.id)
        assert all(error in (None, CONFLICT) for error in outcomes)
        assert len(stored) == 1 + outcomes.count(None)
        assert "pending" not in [b.status for b in stored]

    def test_concurrent_duplicate_inserts(self, store):
        """Test racing inserts of the same pair store exactly one bid."""
        gig = store.save_gig(_gig("o1"))
        outcomes = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            try:
                _insert(store, gig.id, "f1")
                outcomes.append("ok")
            except DuplicateRecordError:
                outcomes.append("dup")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert len(store.list_bids(gig_id=gig.id)) == 1


class TestCommitHire:
    """Tests for the atomic hire primitive."""

    def test_hire_updates_everything(self, store):
        store.create_account(Account(id="f1", name="Fay", email="fay@example.com"))
        gig = store.save_gig(_gig("o1"))
        target = _insert(store, gig.id, "f1")
        other = _insert(store, gig.id, "f2")

        record, error = store.commit_hire(gig.id, target.id)

        assert error is None
        assert record.gig.status == "assigned"
        assert record.gig.hired_freelancer_id == "f1"
        assert record.bid.status == "hired"
        assert record.rejected_bid_ids == [other.id]
        assert record.freelancer.completed_gigs == 1
        assert store.get_bid(other.id).status == "rejected"

    def test_second_hire_conflicts(self, store):
        gig = store.save_gig(_gig("o1"))
        first = _insert(store, gig.id, "f1")
        second = _insert(store, gig.id, "f2")
        store.commit_hire(gig.id, first.id)

        record, error = store.commit_hire(gig.id, second.id)
        assert record is None
        assert error == CONFLICT

    def test_missing_records(self, store):
        gig = store.save_gig(_gig("o1"))
        bid = _insert(store, gig.id, "f1")
        assert store.commit_hire("nope", bid.id) == (None, NOT_FOUND)
        assert store.commit_hire(gig.id, "nope") == (None, NOT_FOUND)

    def test_bid_from_another_gig_not_found(self, store):
        gig = store.save_gig(_gig("o1"))
        elsewhere = store.save_gig(_gig("o1"))
        bid = _insert(store, elsewhere.id, "f1")
        assert store.commit_hire(gig.id, bid.id) == (None, NOT_FOUND)

    def test_concurrent_hires_one_winner(self, store):
        """Test racing hires of different bids on one gig: exactly one succeeds."""
        gig = store.save_gig(_gig("o1"))
        bids = [_insert(store, gig.id, f"f{i}") for i in range(6)]
        results = []
        barrier = threading.Barrier(len(bids))

        def worker(bid_id):
            barrier.wait()
            results.append((bid_id, store.commit_hire(gig.id, bid_id)))

        threads = [threading.Thread(target=worker, args=(b.id,)) for b in bids]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winners = [bid_id for bid_id, (record, error) in results if error is None]
        assert len(winners) == 1
        assert sorted(error for _, (_, error) in results if error) == [CONFLICT] * 5

        stored = store.list_bids(gig_id=gig.id)
        assert [b.id for b in stored if b.status == "hired"] == winners
        assert all(b.status == "rejected" for b in stored if b.id != winners[0])
        assert store.get_gig(gig.id).hired_freelancer_id == store.get_bid(winners[0]).freelancer_id


class TestDeleteOpenGig:
    """Tests for the conditional gig delete."""

    def test_deletes_gig_and_bids(self, store):
        gig = store.save_gig(_gig("o1"))
        bid = _insert(store, gig.id, "f1")
        deleted, error = store.delete_open_gig(gig.id)
        assert error is None and deleted.id == gig.id
        assert store.get_gig(gig.id) is None
        assert store.get_bid(bid.id) is None

    def test_assigned_gig_not_deleted(self, store):
        gig = store.save_gig(_gig("o1"))
        bid = _insert(store, gig.id, "f1")
        store.commit_hire(gig.id, bid.id)
        assert store.delete_open_gig(gig.id) == (None, CONFLICT)
        assert store.delete_open_gig("missing") == (None, NOT_FOUND)


class TestConversations:
    """Tests for conversation and message storage."""

    def test_find_or_create_reuses_key(self, store):
        first, created = store.find_or_create_conversation(Conversation(id="c1", participants=["a", "b"]))
        again, created_again = store.find_or_create_conversation(Conversation(id="c2", participants=["b", "a"]))
        assert created and not created_again
        assert again.id == first.id == "c1"

    def test_gig_scopes_conversations(self, store):
        plain, _ = store.find_or_create_conversation(Conversation(id="c1", participants=["a", "b"]))
        scoped, created = store.find_or_create_conversation(Conversation(id="c2", participants=["a", "b"], gig_id="g1"))
        assert created and scoped.id != plain.id

    def test_concurrent_find_or_create(self, store):
        """Test racing creators of one key all get the same conversation."""
        ids = []
        barrier = threading.Barrier(8)

        def worker(i):
            barrier.wait()
            conversation, _ = store.find_or_create_conversation(
                Conversation(id=f"c{i}", participants=["a", "b"] if i % 2 else ["b", "a"], gig_id="g1")
            )
            ids.append(conversation.id)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(ids)) == 1
        assert len(store.list_conversations("a")) == 1

    def test_append_moves_pointer_forward_only(self, store):
        store.find_or_create_conversation(Conversation(id="c1", participants=["a", "b"]))
        now = utc_now()
        newer = store.append_message(Message(id="m2", conversation_id="c1", sender_id="a", content="later", created_at=now))
        store.append_message(
            Message(id="m1", conversation_id="c1", sender_id="b", content="earlier", created_at=now - timedelta(seconds=5))
        )
        conversation = store.get_conversation("c1")
        assert conversation.last_message_id == newer.id
        assert [m.id for m in store.list_messages("c1")] == ["m1", "m2"]

    def test_mark_read_and_count_unread(self, store):
        store.find_or_create_conversation(Conversation(id="c1", participants=["a", "b"]))
        store.append_message(Message(id="m1", conversation_id="c1", sender_id="a", content="hi"))
        store.append_message(Message(id="m2", conversation_id="c1", sender_id="a", content="there"))
        store.append_message(Message(id="m3", conversation_id="c1", sender_id="b", content="hey"))

        assert store.count_unread("b") == 2
        assert store.count_unread("a") == 1
        assert store.mark_messages_read("c1", "b") == 2
        assert store.mark_messages_read("c1", "b") == 0
        assert store.count_unread("b") == 0
        assert store.get_message("m3").read is False

    def test_list_conversations_by_activity(self, store):
        store.find_or_create_conversation(Conversation(id="c1", participants=["a", "b"]))
        store.find_or_create_conversation(Conversation(id="c2", participants=["a", "c"]))
        store.append_message(Message(id="m1", conversation_id="c1", sender_id="b", content="bump"))
        assert [c.id for c in store.list_conversations("a")] == ["c1", "c2"]
        assert [c.id for c in store.list_conversations("c")] == ["c2"]
