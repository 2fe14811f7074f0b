import asyncio

import pytest

from hoopshop.errors import PaymentNotCompleted
from hoopshop.fulfillment.dispatcher import route_event
from hoopshop.fulfillment.membership import membership_fields
from hoopshop.payments.metadata import build_intent_metadata

META = build_intent_metadata(
    [{"product_id": "jersey", "quantity": 1, "unit_price": "25.00"}],
    {"name": "Jordan", "email": "mj@example.com", "user_id": "user-1"},
    None,
)


def _event(event_type, obj):
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}

def _profile(store, user_id="user-1", email="mj@example.com", customer_id=None):
    store.add_user(f"tok-{user_id}", user_id, email, stripe_customer_id=customer_id)


def test_unknown_event_is_acknowledged(store):
    result = asyncio.run(route_event(_event("charge.refunded", {"id": "ch_1"})))
    assert result == {"received": True, "handled": False}

def test_payment_succeeded_materializes_order(store, stripe_fake):
    stripe_fake.add_intent("pi_1", 2500, META)
    result = asyncio.run(route_event(_event("payment_intent.succeeded", {"id": "pi_1", "metadata": META})))
    assert result["handled"] is True
    assert result["created"] is True
    assert store.rows("orders")[0]["payment_intent_id"] == "pi_1"

def test_payment_succeeded_redelivery_is_harmless(store, stripe_fake):
    stripe_fake.add_intent("pi_1", 2500, META)

    async def scenario():
        await route_event(_event("payment_intent.succeeded", {"id": "pi_1", "metadata": META}))
        return await route_event(_event("payment_intent.succeeded", {"id": "pi_1", "metadata": META}))

    result = asyncio.run(scenario())
    assert result["created"] is False
    assert len(store.rows("orders")) == 1

def test_payment_succeeded_event_is_checked_against_provider(store, stripe_fake):
    # L'événement dit "succeeded" mais Stripe dit encore "processing": pas de commande
    stripe_fake.add_intent("pi_1", 2500, META, status="processing")
    with pytest.raises(PaymentNotCompleted):
        asyncio.run(route_event(_event("payment_intent.succeeded", {"id": "pi_1", "status": "succeeded", "metadata": META})))
    assert store.rows("orders") == []

def test_payment_failed_marks_intent(store):
    store.tables["checkout_intents"].append({"correlation_id": "pi_ko", "status": "requires_payment", "amount": 2500})
    obj = {"id": "pi_ko", "status": "requires_payment_method", "last_payment_error": {"code": "card_declined"}}
    result = asyncio.run(route_event(_event("payment_intent.payment_failed", obj)))
    assert result["handled"] is True
    assert store.rows("checkout_intents")[0]["status"] == "failed"
    assert store.rows("orders") == []

def test_active_subscription_grants_premium_until_period_end(store):
    _profile(store, customer_id="cus_1")
    sub = {"id": "sub_1", "customer": "cus_1", "status": "active", "current_period_end": 1767225600}
    result = asyncio.run(route_event(_event("customer.subscription.created", sub)))
    assert result["handled"] is True
    profile = store.rows("user_profiles")[0]
    assert profile["membership_status"] == "premium"
    assert profile["membership_expires_at"].startswith("2026-01-01")

def test_subscription_matched_by_customer_email(store, stripe_fake):
    _profile(store)
    stripe_fake.customers["cus_new"] = {"id": "cus_new", "email": "mj@example.com"}
    sub = {"id": "sub_1", "customer": "cus_new", "status": "trialing",
           "items": {"data": [{"current_period_end": 1767225600}]}}
    asyncio.run(route_event(_event("customer.subscription.updated", sub)))
    profile = store.rows("user_profiles")[0]
    assert profile["membership_status"] == "premium"
    assert profile["stripe_customer_id"] == "cus_new"

def test_past_due_or_deleted_subscription_downgrades(store):
    _profile(store, customer_id="cus_1")
    store.tables["user_profiles"][0].update(membership_status="premium", membership_expires_at="2026-01-01T00:00:00+00:00")
    sub = {"id": "sub_1", "customer": "cus_1", "status": "active", "current_period_end": 1767225600}
    asyncio.run(route_event(_event("customer.subscription.deleted", sub)))
    profile = store.rows("user_profiles")[0]
    assert profile["membership_status"] == "free"
    assert profile["membership_expires_at"] is None

def test_subscription_without_matching_profile_is_not_handled(store, stripe_fake):
    sub = {"id": "sub_1", "customer": "cus_unknown", "status": "active"}
    result = asyncio.run(route_event(_event("customer.subscription.updated", sub)))
    assert result == {"received": True, "handled": False}

@pytest.mark.parametrize("status", ["past_due", "canceled", "incomplete", "unpaid"])
def test_non_active_statuses_are_free(status):
    assert membership_fields({"status": status, "current_period_end": 1767225600}) == {
        "membership_status": "free",
        "membership_expires_at": None,
    }

def test_payment_without_shop_lines_is_acknowledged(store, stripe_fake):
    # Paiement d'abonnement: aucun items_data dans les metadata
    stripe_fake.add_intent("pi_sub", 999, {"subscription_id": "sub_1"})
    result = asyncio.run(route_event(_event("payment_intent.succeeded", {"id": "pi_sub", "metadata": {"subscription_id": "sub_1"}})))
    assert result == {"received": True, "handled": False}
    assert store.rows("orders") == []
    assert stripe_fake.retrieve_calls == 0

def test_shop_payment_without_buyer_is_acknowledged(store, stripe_fake, caplog):
    anonymous = build_intent_metadata([{"product_id": "jersey", "quantity": 1, "unit_price": "25.00"}], {}, None)
    stripe_fake.add_intent("pi_anon", 2500, anonymous)
    with caplog.at_level("WARNING"):
        result = asyncio.run(route_event(_event("payment_intent.succeeded", {"id": "pi_anon", "metadata": anonymous})))
    assert result["handled"] is False
    assert store.rows("orders") == []
    assert any(getattr(r, "event", None) == "order.metadata_invalid" for r in caplog.records)
