"""Unit tests for the in-memory account store."""

import threading
from datetime import datetime, timezone

import pytest

from shop_billing.exceptions import AccountNotFound, ConcurrentModification
from shop_billing.models import SubscriptionSnapshot, SubscriptionStatus
from shop_billing.repositories.account_store import InMemoryAccountStore


@pytest.fixture
def store():
    """Create a fresh account store for each test."""
    store = InMemoryAccountStore()
    yield store
    store.clear()


def _active(subscription_id: str) -> SubscriptionSnapshot:
    return SubscriptionSnapshot(
        status=SubscriptionStatus.ACTIVE,
        start_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
        end_date=datetime(2025, 2, 1, tzinfo=timezone.utc),
        external_subscription_id=subscription_id,
    )


class TestCreateAndGet:
    """Test account creation and reads."""

    def test_create_defaults_to_inactive(self, store):
        created = store.create("shop-1")
        assert created.snapshot.status == SubscriptionStatus.INACTIVE
        assert created.version == 1

    def test_get_returns_snapshot_and_version(self, store):
        store.create("shop-1", _active("sub_1"))
        current = store.get("shop-1")
        assert current.snapshot.external_subscription_id == "sub_1"
        assert current.version == 1

    def test_create_duplicate_raises(self, store):
        store.create("shop-1")
        with pytest.raises(ValueError, match="already exists"):
            store.create("shop-1")

    def test_get_missing_raises(self, store):
        with pytest.raises(AccountNotFound):
            store.get("missing")

    def test_find_and_exists(self, store):
        store.create("shop-1")
        assert store.find("missing") is None
        assert store.exists("shop-1") is True
        assert "shop-1" in store
        assert len(store) == 1

    def test_stored_document_uses_document_keys(self, store):
        store.create("shop-1", _active("sub_1"))
        document = store.document("shop-1")
        assert document["subscriptionStatus"] == "active"
        assert document["razorpay_subscription_id"] == "sub_1"

    def test_reads_are_independent_copies(self, store):
        store.create("shop-1")
        first = store.get("shop-1").snapshot
        first.plan_name = "Changed locally"
        assert store.get("shop-1").snapshot.plan_name is None


class TestCompareAndSet:
    """Test conditional writes."""

    def test_write_with_current_version(self, store):
        version = store.create("shop-1").version
        written = store.compare_and_set("shop-1", version, _active("sub_1"))
        assert written.version == version + 1
        assert store.get("shop-1").snapshot.status == SubscriptionStatus.ACTIVE

    def test_write_with_stale_version_raises(self, store):
        version = store.create("shop-1").version
        store.compare_and_set("shop-1", version, _active("sub_1"))

        with pytest.raises(ConcurrentModification):
            store.compare_and_set("shop-1", version, _active("sub_2"))

        assert store.get("shop-1").snapshot.external_subscription_id == "sub_1"

    def test_write_missing_account_raises(self, store):
        with pytest.raises(AccountNotFound):
            store.compare_and_set("missing", 1, _active("sub_1"))

    def test_only_one_of_racing_writers_wins(self, store):
        version = store.create("shop-1").version
        results = []
        barrier = threading.Barrier(8)

        def writer(index: int) -> None:
            barrier.wait()
            try:
                store.compare_and_set("shop-1", version, _active(f"sub_{index}"))
                results.append("ok")
            except ConcurrentModification:
                results.append("conflict")

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count("ok") == 1
        assert results.count("conflict") == 7
        assert store.get("shop-1").version == version + 1


class TestQueries:
    """Test lookups used by webhooks and the approvals screen."""

    def test_find_by_subscription_id_exact_match(self, store):
        store.create("shop-1", _active("sub_1"))
        store.create("shop-2", _active("sub_10"))
        assert store.find_by_subscription_id("sub_1") == ["shop-1"]
        assert store.find_by_subscription_id("sub_") == []

    def test_find_by_subscription_id_reports_duplicates(self, store):
        store.create("shop-1", _active("sub_1"))
        store.create("shop-2", _active("sub_1"))
        assert sorted(store.find_by_subscription_id("sub_1")) == ["shop-1", "shop-2"]

    def test_find_by_status(self, store):
        store.create("shop-1", _active("sub_1"))
        store.create("shop-2")
        store.create(
            "shop-3", SubscriptionSnapshot(status=SubscriptionStatus.PENDING_VERIFICATION)
        )
        pending = store.find_by_status(SubscriptionStatus.PENDING_VERIFICATION)
        assert [account_id for account_id, _ in pending] == ["shop-3"]
