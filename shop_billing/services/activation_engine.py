"""Subscription activation engine.

Responsibilities:
- Verify checkout confirmation signatures before touching any account
- Activate first-time subscriptions and extend renewals
- Apply gateway charges and cancellations received by webhook
- Run the manual (bank transfer) review flow and administrator adjustments

Every operation is a read-compute-write cycle over one account snapshot. The
write is conditional on the version that was read; when another writer got
there first the whole cycle is recomputed from a fresh read, a bounded number
of times.
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from shop_billing.exceptions import (
    AccountNotFound,
    ConcurrentModification,
    InvalidPlanDuration,
    InvalidPlanPrice,
    InvalidSignature,
    InvalidTransition,
    SubscriptionAlreadyLinked,
)
from shop_billing.logging_config import get_logger
from shop_billing.models.account import (
    PlanAdjustment,
    RequestKind,
    SubscriptionSnapshot,
    SubscriptionStatus,
)
from shop_billing.models.events import ClientConfirmation
from shop_billing.models.plan import PlanDefinition
from shop_billing.repositories.account_store import AccountStore
from shop_billing.repositories.plan_repository import PlanRepository
from shop_billing.services.time_controller import TimeController
from shop_billing.state_logger import log_signature_failure, log_snapshot_transition
from shop_billing.utils.billing_period import (
    add_billing_period,
    months_duration,
    parse_billing_period,
)
from shop_billing.utils.signature import verify_client_signature

logger = get_logger(__name__)

UTR_MIN_LENGTH = 12
UTR_MAX_LENGTH = 22

# Returns the snapshot to write, or None when nothing needs to change
Mutation = Callable[[SubscriptionSnapshot, datetime], Optional[SubscriptionSnapshot]]


def compute_term(
    now: datetime,
    current_end: Optional[datetime],
    is_renewal: bool,
    duration: relativedelta,
) -> Tuple[datetime, datetime]:
    """Compute the validity window of a newly paid term.

    A renewal whose current term has not ended yet starts at the current end
    date, so no paid time is lost. Everything else (first purchase, renewal of
    an ended or never-active term) starts now.

    Args:
        now: Current time
        current_end: End date of the existing term, if any
        is_renewal: Whether the payment is meant to extend the existing term
        duration: Plan duration (calendar arithmetic)

    Returns:
        (start_date, end_date)
    """
    if is_renewal and current_end is not None and current_end > now:
        start = current_end
    else:
        start = now
    return start, add_billing_period(start, duration)


class ActivationEngine:
    """Subscription activation and renewal engine.

    Collaborators are passed in explicitly; the engine keeps no state of its
    own between calls.
    """

    def __init__(
        self,
        account_store: AccountStore,
        plan_repository: PlanRepository,
        clock: TimeController,
        key_secret: str,
        max_attempts: int = 3,
        default_duration_months: int = 12,
    ):
        """Initialize activation engine.

        Args:
            account_store: Versioned account snapshot storage
            plan_repository: Plan catalog
            clock: Source of the current time
            key_secret: Secret used to verify checkout confirmation signatures
            max_attempts: Read-compute-write attempts before a conflict is reported
            default_duration_months: Term length when a snapshot carries no plan duration
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = account_store
        self.plan_repo = plan_repository
        self.clock = clock
        self._key_secret = key_secret
        self.max_attempts = max_attempts
        self.default_duration_months = default_duration_months

        logger.info("activation_engine_initialized", max_attempts=max_attempts)

    # ------------------------------------------------------------------
    # Update cycle
    # ------------------------------------------------------------------

    def _update(self, account_id: str, mutate: Mutation, reason: str) -> SubscriptionSnapshot:
        """Apply a mutation to one account with conditional writes.

        Raises:
            AccountNotFound: If the account does not exist
            ConcurrentModification: If every attempt lost a race with another writer
        """
        for attempt in range(1, self.max_attempts + 1):
            current = self.store.get(account_id)
            updated = mutate(current.snapshot, self.clock.now())
            if updated is None:
                return current.snapshot

            try:
                self.store.compare_and_set(account_id, current.version, updated)
            except ConcurrentModification:
                logger.warning(
                    "snapshot_update_conflict",
                    account_id=account_id,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    reason=reason,
                )
                continue

            log_snapshot_transition(account_id, current.snapshot, updated, reason=reason)
            return updated

        raise ConcurrentModification(
            f"Account '{account_id}' kept changing during update ({self.max_attempts} attempts)"
        )

    @staticmethod
    def _already_applied(snapshot: SubscriptionSnapshot, payment_id: str) -> bool:
        return (
            snapshot.status == SubscriptionStatus.ACTIVE
            and snapshot.external_payment_id is not None
            and snapshot.external_payment_id == payment_id
        )

    @staticmethod
    def _validate_plan(plan: PlanDefinition) -> relativedelta:
        """Check a catalog plan and return its duration.

        Raises:
            InvalidPlanPrice: If the price is not positive
            InvalidPlanDuration: If the duration is not positive
        """
        if plan.price <= 0:
            raise InvalidPlanPrice(f"Plan '{plan.id}' has invalid price: {plan.price}")
        try:
            return plan.duration
        except ValueError as e:
            raise InvalidPlanDuration(f"Plan '{plan.id}' has invalid duration: {e}")

    def _snapshot_duration(self, snapshot: SubscriptionSnapshot) -> relativedelta:
        """Duration of the plan recorded on a snapshot.

        Whole months win over the stored ISO period; snapshots carrying
        neither fall back to the catalog plan with the same name, then to the
        configured default term length.
        """
        try:
            if snapshot.plan_duration_months is not None:
                return months_duration(snapshot.plan_duration_months)
            if snapshot.plan_billing_period:
                return parse_billing_period(snapshot.plan_billing_period)
            plan = self.plan_repo.find_by_name(snapshot.plan_name) if snapshot.plan_name else None
            if plan is not None:
                return plan.duration
            return months_duration(self.default_duration_months)
        except ValueError as e:
            raise InvalidPlanDuration(str(e))

    @staticmethod
    def _with_plan(plan: PlanDefinition) -> dict:
        return {
            "plan_name": plan.name,
            "plan_price": plan.price,
            "plan_duration_months": plan.months,
            "plan_billing_period": plan.billing_period,
        }

    # ------------------------------------------------------------------
    # Gateway-confirmed payments
    # ------------------------------------------------------------------

    def activate_or_renew(
        self, account_id: str, event: ClientConfirmation, plan: PlanDefinition
    ) -> SubscriptionSnapshot:
        """Activate or renew a subscription from a checkout confirmation.

        Args:
            account_id: Account the payment is for
            event: Checkout confirmation carrying the gateway signature
            plan: Catalog plan purchased

        Returns:
            The snapshot after the update

        Raises:
            InvalidSignature: If the confirmation signature does not verify
            ValueError: If the confirmation names a different account
            SubscriptionAlreadyLinked: If another account already holds the subscription id
            InvalidPlanPrice / InvalidPlanDuration: If the plan is misconfigured
            AccountNotFound: If the account does not exist
            ConcurrentModification: If conflicting writes persisted through every attempt
        """
        if not verify_client_signature(
            self._key_secret, event.payment_id, event.subscription_id, event.signature
        ):
            log_signature_failure(
                source="client_confirmation",
                account_id=account_id,
                payment_id=event.payment_id,
                subscription_id=event.subscription_id,
                signature=event.signature,
            )
            raise InvalidSignature("Invalid payment signature")

        if event.account_id != account_id:
            raise ValueError(
                f"Confirmation is for account '{event.account_id}', not '{account_id}'"
            )

        duration = self._validate_plan(plan)
        self._ensure_unlinked(account_id, event.subscription_id)

        def mutate(snapshot: SubscriptionSnapshot, now: datetime) -> Optional[SubscriptionSnapshot]:
            if self._already_applied(snapshot, event.payment_id):
                logger.info(
                    "payment_already_applied",
                    account_id=account_id,
                    payment_id=event.payment_id,
                )
                return None

            start, end = compute_term(now, snapshot.end_date, event.is_renewal, duration)
            return snapshot.model_copy(
                update={
                    "status": SubscriptionStatus.ACTIVE,
                    "start_date": start,
                    "end_date": end,
                    "external_payment_id": event.payment_id,
                    "external_subscription_id": event.subscription_id,
                    "request_kind": RequestKind.NONE,
                    "rejection_reason": None,
                    **self._with_plan(plan),
                }
            )

        reason = "renewal" if event.is_renewal else "activation"
        snapshot = self._update(account_id, mutate, reason=f"client_confirmation_{reason}")

        logger.info(
            "subscription_confirmed",
            account_id=account_id,
            plan_id=plan.id,
            payment_id=event.payment_id,
            is_renewal=event.is_renewal,
            end_date=snapshot.end_date.isoformat() if snapshot.end_date else None,
        )
        return snapshot

    def resolve_account_by_subscription_id(self, subscription_id: str) -> Optional[str]:
        """Find the single account linked to a gateway subscription id.

        Returns:
            Account id, or None when zero or several accounts match
        """
        matches = self.store.find_by_subscription_id(subscription_id)
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            logger.error(
                "duplicate_subscription_link",
                subscription_id=subscription_id,
                account_ids=matches,
            )
        return None

    def _ensure_unlinked(self, account_id: str, subscription_id: str) -> None:
        """Refuse a subscription id that another account already holds.

        Raises:
            SubscriptionAlreadyLinked: If any other account carries the id
        """
        others = [
            other
            for other in self.store.find_by_subscription_id(subscription_id)
            if other != account_id
        ]
        if others:
            logger.warning(
                "subscription_link_rejected",
                account_id=account_id,
                subscription_id=subscription_id,
                linked_account_ids=others,
                security=True,
            )
            raise SubscriptionAlreadyLinked(
                f"Subscription '{subscription_id}' is already linked to another account"
            )

    def apply_charge(self, subscription_id: str, payment_id: str) -> Optional[SubscriptionSnapshot]:
        """Apply a gateway charge received by webhook.

        The stored request kind decides between a first-time activation and a
        renewal: an explicit "New" request starts fresh, an explicit "Renew"
        request or an already active account extends the current term, and a
        non-active account with no request kind starts fresh. Because the
        renewal rule itself restarts from now when the term has already ended,
        a stale request kind can only cost the difference between those two
        start dates, never add extra time.

        Returns:
            The snapshot after the update, or None if no account is linked to
            the subscription id
        """
        account_id = self.resolve_account_by_subscription_id(subscription_id)
        if account_id is None:
            logger.warning(
                "charge_for_unknown_subscription",
                subscription_id=subscription_id,
                payment_id=payment_id,
            )
            return None

        def mutate(snapshot: SubscriptionSnapshot, now: datetime) -> Optional[SubscriptionSnapshot]:
            if self._already_applied(snapshot, payment_id):
                logger.info("payment_already_applied", account_id=account_id, payment_id=payment_id)
                return None

            if snapshot.request_kind == RequestKind.NEW:
                is_renewal = False
            elif snapshot.request_kind == RequestKind.RENEW:
                is_renewal = True
            else:
                is_renewal = snapshot.status == SubscriptionStatus.ACTIVE

            start, end = compute_term(
                now, snapshot.end_date, is_renewal, self._snapshot_duration(snapshot)
            )
            return snapshot.model_copy(
                update={
                    "status": SubscriptionStatus.ACTIVE,
                    "start_date": start,
                    "end_date": end,
                    "external_payment_id": payment_id,
                    "request_kind": RequestKind.NONE,
                    "rejection_reason": None,
                }
            )

        return self._update(account_id, mutate, reason="gateway_charge")

    def cancel(self, account_id: str) -> SubscriptionSnapshot:
        """Mark a subscription inactive after a gateway cancellation.

        Dates are left untouched. Cancelling an inactive account changes nothing.
        """

        def mutate(snapshot: SubscriptionSnapshot, now: datetime) -> Optional[SubscriptionSnapshot]:
            if snapshot.status == SubscriptionStatus.INACTIVE:
                return None
            return snapshot.model_copy(update={"status": SubscriptionStatus.INACTIVE})

        return self._update(account_id, mutate, reason="gateway_cancellation")

    def cancel_by_subscription_id(self, subscription_id: str) -> Optional[SubscriptionSnapshot]:
        """Cancel the account linked to a gateway subscription id, if there is one."""
        account_id = self.resolve_account_by_subscription_id(subscription_id)
        if account_id is None:
            logger.warning("cancellation_for_unknown_subscription", subscription_id=subscription_id)
            return None
        return self.cancel(account_id)

    # ------------------------------------------------------------------
    # Manual payments and administration
    # ------------------------------------------------------------------

    def get_subscription(self, account_id: str) -> SubscriptionSnapshot:
        """Get an account's snapshot.

        Raises:
            AccountNotFound: If the account does not exist
        """
        return self.store.get(account_id).snapshot

    def submit_manual_payment(
        self, account_id: str, plan: PlanDefinition, utr: str
    ) -> SubscriptionSnapshot:
        """Record an offline bank transfer for administrator review.

        Raises:
            ValueError: If the UTR length is out of range
            InvalidTransition: If a payment is already awaiting review
        """
        utr = utr.strip()
        if not UTR_MIN_LENGTH <= len(utr) <= UTR_MAX_LENGTH:
            raise ValueError(
                f"UTR must be between {UTR_MIN_LENGTH} and {UTR_MAX_LENGTH} characters"
            )
        self._validate_plan(plan)

        def mutate(snapshot: SubscriptionSnapshot, now: datetime) -> SubscriptionSnapshot:
            if snapshot.status == SubscriptionStatus.PENDING_VERIFICATION:
                raise InvalidTransition("A payment is already awaiting verification")
            kind = RequestKind.RENEW if snapshot.has_running_term(now) else RequestKind.NEW
            return snapshot.model_copy(
                update={
                    "status": SubscriptionStatus.PENDING_VERIFICATION,
                    "request_kind": kind,
                    "request_date": now,
                    "payment_reference": utr,
                    "rejection_reason": None,
                    **self._with_plan(plan),
                }
            )

        return self._update(account_id, mutate, reason="manual_payment_submitted")

    def approve_manual_payment(self, account_id: str) -> SubscriptionSnapshot:
        """Approve a pending manual payment and activate or extend the term.

        Raises:
            InvalidTransition: If no payment is awaiting verification
        """

        def mutate(snapshot: SubscriptionSnapshot, now: datetime) -> SubscriptionSnapshot:
            if snapshot.status != SubscriptionStatus.PENDING_VERIFICATION:
                raise InvalidTransition(
                    f"Cannot approve payment for account in '{snapshot.status.value}' status"
                )
            start, end = compute_term(
                now,
                snapshot.end_date,
                snapshot.request_kind == RequestKind.RENEW,
                self._snapshot_duration(snapshot),
            )
            return snapshot.model_copy(
                update={
                    "status": SubscriptionStatus.ACTIVE,
                    "start_date": start,
                    "end_date": end,
                    "request_kind": RequestKind.NONE,
                    "rejection_reason": None,
                }
            )

        return self._update(account_id, mutate, reason="manual_payment_approved")

    def reject_manual_payment(self, account_id: str, reason: str) -> SubscriptionSnapshot:
        """Reject a pending manual payment.

        Raises:
            ValueError: If no reason is given
            InvalidTransition: If no payment is awaiting verification
        """
        reason = reason.strip()
        if not reason:
            raise ValueError("A rejection reason is required")

        def mutate(snapshot: SubscriptionSnapshot, now: datetime) -> SubscriptionSnapshot:
            if snapshot.status != SubscriptionStatus.PENDING_VERIFICATION:
                raise InvalidTransition(
                    f"Cannot reject payment for account in '{snapshot.status.value}' status"
                )
            return snapshot.model_copy(
                update={
                    "status": SubscriptionStatus.REJECTED,
                    "rejection_reason": reason,
                    "request_kind": RequestKind.NONE,
                }
            )

        return self._update(account_id, mutate, reason="manual_payment_rejected")

    def list_pending(self) -> List[Tuple[str, SubscriptionSnapshot]]:
        """List accounts with a manual payment awaiting verification, oldest first."""
        pending = self.store.find_by_status(SubscriptionStatus.PENDING_VERIFICATION)
        return sorted(
            pending,
            key=lambda item: (item[1].request_date is None, item[1].request_date or datetime.min),
        )

    def adjust_plan_duration(self, account_id: str, days: int, reason: str) -> SubscriptionSnapshot:
        """Add or remove days from an account's term (administrator correction).

        Adding days to an account without an active term activates it from now.
        An active term can be shortened, but never to end on or before its
        start date.

        Raises:
            ValueError: If days is zero, no reason is given, or the adjusted
                term would end on or before it starts
        """
        reason = reason.strip()
        if not days or not reason:
            raise ValueError("Days and reason are required")

        def mutate(snapshot: SubscriptionSnapshot, now: datetime) -> SubscriptionSnapshot:
            is_active = snapshot.status == SubscriptionStatus.ACTIVE
            base = snapshot.end_date if is_active and snapshot.end_date else now
            end = base + timedelta(days=days)
            update = {
                "end_date": end,
                "last_adjustment": PlanAdjustment(days=days, reason=reason, date=now),
            }
            if days > 0 and not is_active:
                update["status"] = SubscriptionStatus.ACTIVE
                if snapshot.start_date is None or snapshot.start_date >= end:
                    update["start_date"] = now
                is_active = True

            start = update.get("start_date", snapshot.start_date)
            if is_active and start is not None and end <= start:
                raise ValueError(
                    f"Removing {abs(days)} days would end the term on or before its start date"
                )
            return snapshot.model_copy(update=update)

        return self._update(account_id, mutate, reason="admin_adjustment")
