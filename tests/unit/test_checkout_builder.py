import asyncio
from decimal import Decimal

import pytest

from hoopshop.cart.models import Variant
from hoopshop.cart.store import Cart
from hoopshop.checkout.builder import build_intent
from hoopshop.checkout.models import Buyer, ShippingAddress
from hoopshop.errors import EmptyCart, ProductUnavailable

BUYER = Buyer(name="Jordan", email="mj@example.com", user_id="user-1")
SHIPPING = ShippingAddress(line1="1 Court St", city="Chicago", postal_code="60601", country="US")


def test_empty_cart_is_rejected(store, stripe_fake):
    with pytest.raises(EmptyCart):
        asyncio.run(build_intent(Cart(), BUYER, SHIPPING))
    assert stripe_fake.intents == {}

def test_unknown_or_inactive_products_are_named(store, stripe_fake):
    store.add_product("ok")
    store.add_product("retired", is_active=False)
    cart = Cart()
    cart.add_line("ok", 1)
    cart.add_line("retired", 1)
    cart.add_line("ghost", 1)

    with pytest.raises(ProductUnavailable) as exc:
        asyncio.run(build_intent(cart, BUYER, SHIPPING))
    assert exc.value.product_ids == ["ghost", "retired"]
    assert stripe_fake.intents == {}

def test_amount_comes_from_catalog_not_from_cart(store, stripe_fake):
    store.add_product("jersey", name="Jersey", price="25.00")
    cart = Cart()
    cart.add_line("jersey", 2, Variant(size="L"), unit_price=Decimal("1.00"))

    intent = asyncio.run(build_intent(cart, BUYER, SHIPPING))

    assert intent.amount == Decimal("50.00")
    assert intent.is_free is False
    assert intent.client_secret.startswith(intent.correlation_id)
    provider = stripe_fake.intents[intent.correlation_id]
    assert provider["amount"] == 5000
    assert provider["metadata"]["user_id"] == "user-1"
    [record] = store.rows("checkout_intents")
    assert record["correlation_id"] == intent.correlation_id
    assert record["status"] == "requires_payment"
    assert record["amount"] == 5000
    # Le panier n'est pas vidé au checkout
    assert len(cart) == 1

def test_intent_is_immutable(store):
    store.add_product("jersey")
    cart = Cart()
    cart.add_line("jersey", 1)
    intent = asyncio.run(build_intent(cart, BUYER, SHIPPING))
    with pytest.raises(Exception):
        intent.amount = Decimal("0")

def test_free_cart_skips_provider_and_materializes(store, stripe_fake, recorded_events):
    store.add_product("sticker", name="Sticker", price="0")
    cart = Cart()
    cart.add_line("sticker", 3)

    intent = asyncio.run(build_intent(cart, BUYER, SHIPPING))

    assert intent.is_free is True
    assert intent.correlation_id.startswith("free_")
    assert stripe_fake.intents == {}
    [record] = store.rows("checkout_intents")
    assert record["status"] == "succeeded"
    [order] = store.rows("orders")
    assert order["payment_intent_id"] == intent.correlation_id
    assert order["status"] == "completed"
    assert order["payment_method"] == "free"
    assert order["total_amount"] == "0.00"
    assert len(store.rows("order_items")) == 1
    assert len(recorded_events) == 1

@pytest.mark.parametrize("price", [None, "", "n/a", "-5.00", "NaN"])
def test_unpriced_product_is_never_free(store, stripe_fake, price):
    store.add_product("mystery", price=price)
    cart = Cart()
    cart.add_line("mystery", 3)

    with pytest.raises(ProductUnavailable) as exc:
        asyncio.run(build_intent(cart, BUYER, SHIPPING))
    assert exc.value.product_ids == ["mystery"]
    assert store.rows("orders") == []
    assert store.rows("checkout_intents") == []

def test_negative_price_cannot_cancel_a_paid_cart(store, stripe_fake):
    store.add_product("jersey", price="25.00")
    store.add_product("coupon", price="-25.00")
    cart = Cart()
    cart.add_line("jersey", 1)
    cart.add_line("coupon", 1)

    with pytest.raises(ProductUnavailable):
        asyncio.run(build_intent(cart, BUYER, SHIPPING))
    assert store.rows("orders") == []
