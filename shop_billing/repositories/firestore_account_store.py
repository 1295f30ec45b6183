"""Firestore-backed account store.

Account documents live in the ``users`` collection (configurable) keyed by
account id. The document ``update_time`` is the version: conditional writes
use a ``last_update_time`` precondition, which Firestore enforces atomically.
"""

import json
from typing import Any, List, Optional, Tuple

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core.exceptions import AlreadyExists, FailedPrecondition, NotFound
from google.cloud.firestore_v1.base_query import FieldFilter

from shop_billing.config import ConfigurationError
from shop_billing.exceptions import AccountNotFound, ConcurrentModification
from shop_billing.logging_config import get_logger
from shop_billing.models.account import SubscriptionSnapshot, SubscriptionStatus
from shop_billing.repositories.account_store import AccountStore, VersionedSnapshot

logger = get_logger(__name__)

SUBSCRIPTION_ID_FIELD = "razorpay_subscription_id"
STATUS_FIELD = "subscriptionStatus"


def create_firestore_client(service_account_json: Optional[str] = None) -> Any:
    """Initialize the Firebase app (once) and return a Firestore client.

    Args:
        service_account_json: Service account key as a JSON string. When absent,
            application default credentials are used.

    Raises:
        ConfigurationError: If the service account JSON cannot be parsed
    """
    try:
        firebase_admin.get_app()
    except ValueError:
        if service_account_json:
            try:
                cred = credentials.Certificate(json.loads(service_account_json))
            except ValueError as e:
                raise ConfigurationError(f"Invalid FIREBASE_SERVICE_ACCOUNT_KEY: {e}")
            firebase_admin.initialize_app(cred)
        else:
            firebase_admin.initialize_app()
        logger.info("firebase_app_initialized", explicit_credentials=bool(service_account_json))
    return firestore.client()


class FirestoreAccountStore(AccountStore):
    """Account store backed by a Firestore collection."""

    def __init__(self, client: Any, collection: str = "users"):
        """Initialize store.

        Args:
            client: Firestore client
            collection: Collection holding account documents
        """
        self._client = client
        self._collection = client.collection(collection)

    def create(self, account_id: str, snapshot: Optional[SubscriptionSnapshot] = None) -> VersionedSnapshot:
        snapshot = snapshot or SubscriptionSnapshot()
        try:
            result = self._collection.document(account_id).create(snapshot.to_document())
        except AlreadyExists:
            raise ValueError(f"Account '{account_id}' already exists")
        return VersionedSnapshot(snapshot, result.update_time)

    def get(self, account_id: str) -> VersionedSnapshot:
        doc = self._collection.document(account_id).get()
        if not doc.exists:
            raise AccountNotFound(f"Account not found: {account_id}")
        return VersionedSnapshot(SubscriptionSnapshot.from_document(doc.to_dict()), doc.update_time)

    def compare_and_set(
        self, account_id: str, expected_version: Any, snapshot: SubscriptionSnapshot
    ) -> VersionedSnapshot:
        doc_ref = self._collection.document(account_id)
        try:
            result = doc_ref.update(
                snapshot.to_document(),
                option=self._client.write_option(last_update_time=expected_version),
            )
        except NotFound:
            raise AccountNotFound(f"Account not found: {account_id}")
        except FailedPrecondition as e:
            raise ConcurrentModification(f"Account '{account_id}' changed since it was read: {e}")
        return VersionedSnapshot(snapshot, result.update_time)

    def find_by_subscription_id(self, subscription_id: str) -> List[str]:
        # Two results are enough to detect a duplicate link
        query = self._collection.where(
            filter=FieldFilter(SUBSCRIPTION_ID_FIELD, "==", subscription_id)
        ).limit(2)
        return [doc.id for doc in query.stream()]

    def find_by_status(self, status: SubscriptionStatus) -> List[Tuple[str, SubscriptionSnapshot]]:
        query = self._collection.where(filter=FieldFilter(STATUS_FIELD, "==", status.value))
        return [
            (doc.id, SubscriptionSnapshot.from_document(doc.to_dict()))
            for doc in query.stream()
        ]

    def __repr__(self) -> str:
        return f"FirestoreAccountStore(collection={self._collection.id})"
