"""Account store - versioned storage for account subscription snapshots.

Every read returns the snapshot together with an opaque version. Writes are
conditional: ``compare_and_set`` only succeeds while the stored version still
equals the version that was read, which is what keeps two concurrent
activations for the same account from both extending the same term.
"""

import copy
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from shop_billing.exceptions import AccountNotFound, ConcurrentModification
from shop_billing.models.account import SubscriptionSnapshot, SubscriptionStatus


class VersionedSnapshot(NamedTuple):
    """Snapshot as read from the store, with the version to condition writes on."""

    snapshot: SubscriptionSnapshot
    version: Any


class AccountStore(ABC):
    """Storage contract for account subscription snapshots."""

    @abstractmethod
    def create(self, account_id: str, snapshot: Optional[SubscriptionSnapshot] = None) -> VersionedSnapshot:
        """Create an account document (snapshot defaults to inactive).

        Raises:
            ValueError: If the account already exists
        """

    @abstractmethod
    def get(self, account_id: str) -> VersionedSnapshot:
        """Read an account snapshot.

        Raises:
            AccountNotFound: If the account does not exist
        """

    @abstractmethod
    def compare_and_set(
        self, account_id: str, expected_version: Any, snapshot: SubscriptionSnapshot
    ) -> VersionedSnapshot:
        """Write the snapshot only if the stored version equals ``expected_version``.

        Raises:
            AccountNotFound: If the account does not exist
            ConcurrentModification: If the document changed since it was read
        """

    @abstractmethod
    def find_by_subscription_id(self, subscription_id: str) -> List[str]:
        """Return ids of accounts linked to a gateway subscription id (exact match)."""

    @abstractmethod
    def find_by_status(self, status: SubscriptionStatus) -> List[Tuple[str, SubscriptionSnapshot]]:
        """Return (account_id, snapshot) pairs with the given stored status."""

    def find(self, account_id: str) -> Optional[SubscriptionSnapshot]:
        """Find an account snapshot (returns None if not found)."""
        try:
            return self.get(account_id).snapshot
        except AccountNotFound:
            return None

    def exists(self, account_id: str) -> bool:
        """Check if an account exists."""
        return self.find(account_id) is not None


class InMemoryAccountStore(AccountStore):
    """In-memory account store.

    Thread-safe; each document carries an integer version bumped on every write.
    Used for local development and tests.
    """

    def __init__(self):
        """Initialize account store with empty storage."""
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._versions: Dict[str, int] = {}
        self._lock = threading.RLock()

    def create(self, account_id: str, snapshot: Optional[SubscriptionSnapshot] = None) -> VersionedSnapshot:
        with self._lock:
            if account_id in self._documents:
                raise ValueError(f"Account '{account_id}' already exists")
            snapshot = snapshot or SubscriptionSnapshot()
            self._documents[account_id] = snapshot.to_document()
            self._versions[account_id] = 1
            return VersionedSnapshot(self._load(account_id), 1)

    def _load(self, account_id: str) -> SubscriptionSnapshot:
        # Documents are stored serialized so callers never share mutable state
        return SubscriptionSnapshot.from_document(copy.deepcopy(self._documents[account_id]))

    def get(self, account_id: str) -> VersionedSnapshot:
        with self._lock:
            if account_id not in self._documents:
                raise AccountNotFound(f"Account not found: {account_id}")
            return VersionedSnapshot(self._load(account_id), self._versions[account_id])

    def compare_and_set(
        self, account_id: str, expected_version: Any, snapshot: SubscriptionSnapshot
    ) -> VersionedSnapshot:
        with self._lock:
            if account_id not in self._documents:
                raise AccountNotFound(f"Account not found: {account_id}")
            current_version = self._versions[account_id]
            if current_version != expected_version:
                raise ConcurrentModification(
                    f"Account '{account_id}' changed (version {current_version}, "
                    f"expected {expected_version})"
                )
            self._documents[account_id] = snapshot.to_document()
            self._versions[account_id] = current_version + 1
            return VersionedSnapshot(self._load(account_id), current_version + 1)

    def find_by_subscription_id(self, subscription_id: str) -> List[str]:
        with self._lock:
            return [
                account_id
                for account_id, document in self._documents.items()
                if document.get("razorpay_subscription_id") == subscription_id
            ]

    def find_by_status(self, status: SubscriptionStatus) -> List[Tuple[str, SubscriptionSnapshot]]:
        with self._lock:
            return [
                (account_id, self._load(account_id))
                for account_id, document in self._documents.items()
                if document.get("subscriptionStatus") == status.value
            ]

    def document(self, account_id: str) -> Dict[str, Any]:
        """Raw stored document, for inspection."""
        with self._lock:
            return copy.deepcopy(self._documents[account_id])

    def count(self) -> int:
        """Get total number of accounts."""
        with self._lock:
            return len(self._documents)

    def clear(self) -> None:
        """Remove all accounts."""
        with self._lock:
            self._documents.clear()
            self._versions.clear()

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, account_id: str) -> bool:
        return self.exists(account_id)

    def __repr__(self) -> str:
        return f"InMemoryAccountStore(accounts={self.count()})"
