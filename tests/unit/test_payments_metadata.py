from hoopshop.payments.metadata import (
    MAX_VALUE_LENGTH,
    build_intent_metadata,
    parse_intent_metadata,
)

BUYER = {"name": "Jordan", "email": "mj@example.com", "phone": "555-0123", "user_id": "user-1"}


def _lines(n):
    return [
        {"product_id": f"product-{i:04d}", "quantity": i + 1, "unit_price": "129.99",
         "size": "XL", "color": "Chicago Red", "name": f"Jersey edition {i}"}
        for i in range(n)
    ]


def test_small_cart_fits_in_single_key():
    meta = build_intent_metadata(_lines(1), BUYER, None)
    assert "items_data" in meta
    assert "items_data_1" not in meta
    assert meta["user_id"] == "user-1"

def test_large_cart_is_split_and_every_value_respects_limit():
    lines = _lines(20)
    meta = build_intent_metadata(lines, BUYER, {"line1": "1 Court St", "city": "Chicago", "postal_code": "60601", "country": "US"})
    assert "items_data" not in meta
    assert int(meta["items_data_parts"]) > 1
    assert all(isinstance(v, str) and len(v) <= MAX_VALUE_LENGTH for v in meta.values())

    parsed = parse_intent_metadata(meta)
    assert len(parsed["items"]) == 20
    assert parsed["items"][19]["quantity"] == 20
    assert parsed["items"][0]["color"] == "Chicago Red"
    assert parsed["shipping"]["city"] == "Chicago"
    assert parsed["buyer"]["email"] == "mj@example.com"

def test_unreadable_items_give_empty_list():
    parsed = parse_intent_metadata({"items_data": "{not json", "buyer_email": "a@b.c"})
    assert parsed["items"] == []
    assert parsed["user_id"] is None
