import asyncio
import logging

from hoopshop.cart import local_storage
from hoopshop.cart.models import LineKey, Variant
from hoopshop.cart.store import Cart
from hoopshop.cart.sync import CartSync, cleanup_duplicates
from hoopshop.config import CART_LOCAL_ONLY_FLAG, CART_SESSION_KEY
from hoopshop.utils.security import Identity

USER = Identity(user_id="user-1", email="player@example.com")


def _durable(store, user_id="user-1"):
    return {
        (r["product_id"], r["selected_size"], r["selected_color"]): r["quantity"]
        for r in store.rows("user_carts")
        if r["user_id"] == user_id
    }


def test_guest_cart_lives_in_session_only(store):
    session = {}

    async def scenario():
        sync = CartSync(session, Identity())
        await sync.load_for_session()
        await sync.add("p1", 2, Variant(size="L"))
        return sync

    sync = asyncio.run(scenario())
    assert sync.synced is False
    assert session[CART_SESSION_KEY][0]["product_id"] == "p1"
    assert store.rows("user_carts") == []

def test_login_merges_guest_cart_with_max_policy(store):
    store.add_product("X")
    store.add_cart_row("user-1", "X", 1)
    guest = Cart()
    guest.add_line("X", 2)
    guest.add_line("Y", 1)
    session = {}
    local_storage.save_local_cart(session, guest)

    async def scenario():
        sync = CartSync(session, USER)
        await sync.load_for_session()
        return sync

    sync = asyncio.run(scenario())
    assert {l.product_id: l.quantity for l in sync.cart.lines} == {"X": 2, "Y": 1}
    assert _durable(store) == {("X", None, None): 2, ("Y", None, None): 1}
    assert CART_SESSION_KEY not in session
    assert sync.synced is True

def test_login_merge_is_idempotent_on_reload(store):
    store.add_cart_row("user-1", "X", 3)
    session = {}

    async def scenario():
        first = CartSync(session, USER)
        await first.load_for_session()
        second = CartSync(session, USER)
        await second.load_for_session()
        return second

    sync = asyncio.run(scenario())
    assert [(l.product_id, l.quantity) for l in sync.cart.lines] == [("X", 3)]
    assert len(store.rows("user_carts")) == 1

def test_durable_failure_switches_to_local_only_mode(store, caplog):
    session = {}
    caplog.set_level(logging.WARNING, logger="hoopshop.observability")

    async def scenario():
        sync = CartSync(session, USER)
        await sync.load_for_session()
        store.down.add("user_carts")
        await sync.add("p1", 2)
        return sync

    sync = asyncio.run(scenario())
    assert sync.synced is False
    assert session[CART_LOCAL_ONLY_FLAG] is True
    assert session[CART_SESSION_KEY][0]["quantity"] == 2
    assert any(getattr(r, "event", None) == "cart.sync.degraded" for r in caplog.records)

def test_local_only_mode_resyncs_full_cart_once_store_is_back(store):
    store.add_cart_row("user-1", "stale", 1)
    session = {}

    async def scenario():
        sync = CartSync(session, USER)
        await sync.load_for_session()
        store.down.add("user_carts")
        await sync.add("p1", 2)
        await sync.remove(LineKey.of("stale"))
        store.down.clear()
        await sync.add("p2", 1)
        return sync

    sync = asyncio.run(scenario())
    assert sync.synced is True
    assert CART_LOCAL_ONLY_FLAG not in session
    assert CART_SESSION_KEY not in session
    assert _durable(store) == {("p1", None, None): 2, ("p2", None, None): 1}

def test_local_only_flag_survives_between_requests(store):
    session = {}

    async def degraded_request():
        sync = CartSync(session, USER)
        await sync.load_for_session()
        store.down.add("user_carts")
        await sync.add("p1", 1)

    async def next_request():
        sync = CartSync(session, USER)
        await sync.load_for_session()
        return sync

    asyncio.run(degraded_request())
    sync = asyncio.run(next_request())
    assert sync.synced is False
    assert [l.product_id for l in sync.cart.lines] == ["p1"]

def test_set_quantity_zero_deletes_durable_row(store):
    store.add_cart_row("user-1", "p1", 2, size="M")
    session = {}

    async def scenario():
        sync = CartSync(session, USER)
        await sync.load_for_session()
        await sync.set_quantity(LineKey.of("p1", "M"), 0)
        return sync

    sync = asyncio.run(scenario())
    assert sync.cart.is_empty()
    assert store.rows("user_carts") == []

def test_cleanup_duplicates_keeps_first_row_with_max_quantity(store):
    store.add_cart_row("user-1", "p1", 1, size="L")
    store.add_cart_row("user-1", "p1", 4, size="L")
    store.add_cart_row("user-1", "p1", 2, size="L")
    store.add_cart_row("user-1", "p2", 1)
    first_id = store.rows("user_carts")[0]["id"]

    result = asyncio.run(cleanup_duplicates("user-1"))

    assert result == {"consolidated_items": 1, "deleted_duplicates": 2}
    rows = store.rows("user_carts")
    assert len(rows) == 2
    kept = next(r for r in rows if r["product_id"] == "p1")
    assert kept["id"] == first_id
    assert kept["quantity"] == 4
