"""Tests for snapshot, plan and webhook event models."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from dateutil.relativedelta import relativedelta
from pydantic import ValidationError

from shop_billing.exceptions import InvalidWebhookPayload
from shop_billing.models import (
    EXPIRED,
    InvoicePaidEvent,
    ManualPaymentRequest,
    PaymentFailedEvent,
    PlanDefinition,
    PlanReference,
    RequestKind,
    SubscriptionActivatedEvent,
    SubscriptionCancelledEvent,
    SubscriptionChargedEvent,
    SubscriptionSnapshot,
    SubscriptionStatus,
    UnrecognizedEvent,
    VerifyPaymentRequest,
    parse_webhook_event,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def _body(data) -> bytes:
    return json.dumps(data).encode("utf-8")


class TestSubscriptionSnapshot:
    """Test snapshot defaults and document mapping."""

    def test_defaults_to_inactive(self):
        snapshot = SubscriptionSnapshot()
        assert snapshot.status == SubscriptionStatus.INACTIVE
        assert snapshot.request_kind == RequestKind.NONE
        assert snapshot.end_date is None

    def test_document_uses_existing_field_names(self):
        snapshot = SubscriptionSnapshot(
            status=SubscriptionStatus.ACTIVE,
            plan_name="Monthly",
            plan_price=799,
            plan_duration_months=1,
            start_date=NOW,
            end_date=NOW + relativedelta(months=1),
            external_payment_id="pay_1",
            external_subscription_id="sub_1",
        )
        document = snapshot.to_document()

        assert document["subscriptionStatus"] == "active"
        assert document["planName"] == "Monthly"
        assert document["planPrice"] == 799
        assert document["planDurationMonths"] == 1
        assert document["razorpay_payment_id"] == "pay_1"
        assert document["razorpay_subscription_id"] == "sub_1"
        assert document["subscriptionType"] == ""
        assert document["subscriptionEndDate"].startswith("2025-07-15T12:00:00")

    def test_from_document_ignores_unrelated_fields(self):
        snapshot = SubscriptionSnapshot.from_document(
            {
                "subscriptionStatus": "pending_verification",
                "subscriptionType": "Renew",
                "shopName": "Corner Store",
                "email": "owner@example.com",
            }
        )
        assert snapshot.status == SubscriptionStatus.PENDING_VERIFICATION
        assert snapshot.request_kind == RequestKind.RENEW

    def test_from_empty_document(self):
        assert SubscriptionSnapshot.from_document(None).status == SubscriptionStatus.INACTIVE

    def test_null_request_kind_reads_as_none(self):
        snapshot = SubscriptionSnapshot.from_document({"subscriptionType": None})
        assert snapshot.request_kind == RequestKind.NONE

    def test_naive_dates_are_utc(self):
        snapshot = SubscriptionSnapshot.from_document(
            {"subscriptionEndDate": "2025-07-01T00:00:00"}
        )
        assert snapshot.end_date.tzinfo == timezone.utc

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            SubscriptionSnapshot.from_document({"subscriptionStatus": "paused"})

    def test_billing_period_stored_beside_months(self):
        snapshot = SubscriptionSnapshot(plan_name="Weekly", plan_billing_period="P1W")

        document = snapshot.to_document()

        assert document["planBillingPeriod"] == "P1W"
        assert document["planDurationMonths"] is None
        assert SubscriptionSnapshot.from_document(document).plan_billing_period == "P1W"

    def test_populates_by_field_name_or_document_key(self):
        assert SubscriptionSnapshot.model_config["populate_by_name"] is True
        by_key = SubscriptionSnapshot.model_validate({"planName": "Monthly"})
        by_name = SubscriptionSnapshot.model_validate({"plan_name": "Monthly"})
        assert by_key.plan_name == by_name.plan_name == "Monthly"


class TestRequestModels:
    """Request models accept the client's keys and the Python field names."""

    def test_verify_payment_by_field_name(self):
        body = VerifyPaymentRequest(
            payment_id="pay_1",
            subscription_id="sub_1",
            signature="abc",
            account_id="shop-1",
            plan={"id": "monthly"},
        )
        assert body.model_dump(by_alias=True)["razorpay_payment_id"] == "pay_1"
        assert body.is_renewal is False

    def test_plan_reference_ignores_client_price(self):
        assert PlanReference.model_config["extra"] == "ignore"
        plan = PlanReference.model_validate({"id": "monthly", "price": 1})
        assert not hasattr(plan, "price")

    def test_manual_payment_by_document_key(self):
        body = ManualPaymentRequest.model_validate({"planId": "yearly", "utr": "123456789012"})
        assert body.plan_id == "yearly"


class TestDerivedStatus:
    """Test the read-time expired condition."""

    def test_active_with_future_end(self):
        snapshot = SubscriptionSnapshot(
            status=SubscriptionStatus.ACTIVE, start_date=NOW, end_date=NOW + timedelta(days=1)
        )
        assert snapshot.is_expired(NOW) is False
        assert snapshot.has_running_term(NOW) is True
        assert snapshot.effective_status(NOW) == "active"

    def test_active_with_past_end_reads_expired(self):
        snapshot = SubscriptionSnapshot(
            status=SubscriptionStatus.ACTIVE,
            start_date=NOW - timedelta(days=40),
            end_date=NOW - timedelta(days=10),
        )
        assert snapshot.is_expired(NOW) is True
        assert snapshot.has_running_term(NOW) is False
        assert snapshot.effective_status(NOW) == EXPIRED
        assert snapshot.status == SubscriptionStatus.ACTIVE

    def test_end_exactly_now_is_expired(self):
        snapshot = SubscriptionSnapshot(status=SubscriptionStatus.ACTIVE, end_date=NOW)
        assert snapshot.is_expired(NOW) is True

    def test_inactive_is_never_expired(self):
        snapshot = SubscriptionSnapshot(
            status=SubscriptionStatus.INACTIVE, end_date=NOW - timedelta(days=1)
        )
        assert snapshot.is_expired(NOW) is False
        assert snapshot.effective_status(NOW) == "inactive"


class TestPlanDefinition:
    """Test plan duration handling."""

    def test_duration_from_months(self):
        plan = PlanDefinition(id="monthly", name="Monthly", price=799, duration_months=1)
        assert plan.duration == relativedelta(months=1)
        assert plan.months == 1

    def test_duration_from_billing_period(self):
        plan = PlanDefinition(id="yearly", name="Yearly", price=7499, billing_period="P1Y")
        assert plan.duration == relativedelta(years=1)
        assert plan.months == 12

    def test_week_period_has_no_month_count(self):
        plan = PlanDefinition(id="trial", name="Trial", price=1, billing_period="P2W")
        assert plan.months is None

    def test_duration_required(self):
        with pytest.raises(ValidationError):
            PlanDefinition(id="broken", name="Broken", price=100)

    def test_non_positive_duration_raises_on_use(self):
        plan = PlanDefinition(id="zero", name="Zero", price=100, duration_months=0)
        with pytest.raises(ValueError):
            plan.duration


class TestParseWebhookEvent:
    """Test webhook body parsing."""

    def test_subscription_charged(self):
        event = parse_webhook_event(
            _body(
                {
                    "event": "subscription.charged",
                    "payload": {
                        "subscription": {"entity": {"id": "sub_1", "status": "active"}},
                        "payment": {"entity": {"id": "pay_1", "amount": 79900}},
                    },
                }
            )
        )
        assert isinstance(event, SubscriptionChargedEvent)
        assert event.subscription_id == "sub_1"
        assert event.payment_id == "pay_1"

    def test_subscription_activated(self):
        event = parse_webhook_event(
            _body(
                {
                    "event": "subscription.activated",
                    "payload": {
                        "subscription": {"entity": {"id": "sub_1"}},
                        "payment": {"entity": {"id": "pay_1"}},
                    },
                }
            )
        )
        assert isinstance(event, SubscriptionActivatedEvent)

    def test_subscription_cancelled(self):
        event = parse_webhook_event(
            _body(
                {
                    "event": "subscription.cancelled",
                    "payload": {"subscription": {"entity": {"id": "sub_9"}}},
                }
            )
        )
        assert isinstance(event, SubscriptionCancelledEvent)
        assert event.subscription_id == "sub_9"

    def test_invoice_paid_reads_subscription_from_invoice(self):
        event = parse_webhook_event(
            _body(
                {
                    "event": "invoice.paid",
                    "payload": {
                        "invoice": {"entity": {"id": "inv_1", "subscription_id": "sub_3"}},
                        "payment": {"entity": {"id": "pay_5"}},
                    },
                }
            )
        )
        assert isinstance(event, InvoicePaidEvent)
        assert event.subscription_id == "sub_3"
        assert event.payment_id == "pay_5"

    def test_invoice_paid_with_subscription_entity(self):
        event = parse_webhook_event(
            _body(
                {
                    "event": "invoice.paid",
                    "payload": {
                        "subscription": {"entity": {"id": "sub_4"}},
                        "payment": {"entity": {"id": "pay_6"}},
                    },
                }
            )
        )
        assert event.subscription_id == "sub_4"

    def test_invoice_paid_without_subscription_rejected(self):
        with pytest.raises(InvalidWebhookPayload):
            parse_webhook_event(
                _body(
                    {
                        "event": "invoice.paid",
                        "payload": {
                            "invoice": {"entity": {"id": "inv_1"}},
                            "payment": {"entity": {"id": "pay_5"}},
                        },
                    }
                )
            )

    def test_payment_failed(self):
        event = parse_webhook_event(
            _body(
                {
                    "event": "payment.failed",
                    "payload": {
                        "payment": {
                            "entity": {"id": "pay_2", "error_description": "Card declined"}
                        }
                    },
                }
            )
        )
        assert isinstance(event, PaymentFailedEvent)
        assert event.payment_id == "pay_2"
        assert event.error_description == "Card declined"

    def test_unknown_event_type(self):
        event = parse_webhook_event(_body({"event": "order.paid", "payload": {}}))
        assert isinstance(event, UnrecognizedEvent)
        assert event.event == "order.paid"

    def test_charged_without_payment_id_rejected(self):
        with pytest.raises(InvalidWebhookPayload):
            parse_webhook_event(
                _body(
                    {
                        "event": "subscription.charged",
                        "payload": {"subscription": {"entity": {"id": "sub_1"}}},
                    }
                )
            )

    @pytest.mark.parametrize(
        "raw_body",
        [b"not json", b"[1, 2]", b'{"payload": {}}', b'{"event": 5}', b"\xff\xfe"],
    )
    def test_malformed_bodies_rejected(self, raw_body):
        with pytest.raises(InvalidWebhookPayload):
            parse_webhook_event(raw_body)
