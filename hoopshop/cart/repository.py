"""
Accès aux données du panier durable (table 'user_carts').

Contrainte attendue côté base: unique (user_id, product_id, selected_size,
selected_color) NULLS NOT DISTINCT. Toute erreur Supabase devient
DurableStoreUnavailable; c'est l'adaptateur de synchronisation qui décide
de la dégrader.
"""
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
import logging

import hoopshop.infra.supabase_client as supabase_client
from hoopshop.errors import DurableStoreUnavailable
from hoopshop.infra.relations import has_one
from .models import CartLine, LineKey, Variant

logger = logging.getLogger(__name__)

CART_TABLE = "user_carts"
CART_SELECT = (
    "id, product_id, quantity, selected_size, selected_color, created_at, "
    "products(id, name, price, is_active)"
)

# module hoopshop.cart.repository
def _match_key(query, user_id: str, key: LineKey):
    query = query.eq("user_id", user_id).eq("product_id", key.product_id)
    query = query.is_("selected_size", "null") if key.size is None else query.eq("selected_size", key.size)
    query = query.is_("selected_color", "null") if key.color is None else query.eq("selected_color", key.color)
    return query

def row_to_line(row: Dict[str, Any]) -> CartLine:
    """Ligne durable -> CartLine (prix/nom d'affichage hydratés depuis products)."""
    product = has_one(row, "products") or {}
    price = product.get("price")
    return CartLine(
        product_id=str(row.get("product_id")),
        quantity=int(row.get("quantity") or 0),
        variant=Variant(size=row.get("selected_size"), color=row.get("selected_color")),
        unit_price=Decimal(str(price)) if price is not None else None,
        name=product.get("name"),
    )

async def fetch_cart_rows(user_id: str) -> List[Dict[str, Any]]:
    """Lignes brutes du panier durable, plus anciennes d'abord."""
    try:
        client = await supabase_client.get_service_supabase()
        res = await (
            client.table(CART_TABLE)
            .select(CART_SELECT)
            .eq("user_id", user_id)
            .order("created_at", desc=False)
            .execute()
        )
        return res.data or []
    except Exception as e:
        logger.exception("cart.repository.fetch_cart_rows failed user_id=%s", user_id)
        raise DurableStoreUnavailable(f"Panier durable indisponible: {e}") from e

async def _find_row(client, user_id: str, key: LineKey) -> Optional[Dict[str, Any]]:
    res = await _match_key(client.table(CART_TABLE).select("id, quantity"), user_id, key).limit(1).execute()
    rows = res.data or []
    return rows[0] if rows else None

async def set_line_quantity(user_id: str, key: LineKey, quantity: int) -> None:
    """
    Écrit la quantité exacte d'une ligne (update si présente, insert sinon).
    - Si un insert concurrent gagne (23505), on retombe sur un update.
    """
    try:
        client = await supabase_client.get_service_supabase()
        row = await _find_row(client, user_id, key)
        if row:
            await client.table(CART_TABLE).update({"quantity": quantity}).eq("id", row["id"]).execute()
            return
        payload = {
            "user_id": user_id,
            "product_id": key.product_id,
            "quantity": quantity,
            "selected_size": key.size,
            "selected_color": key.color,
        }
        try:
            await client.table(CART_TABLE).insert(payload).execute()
        except Exception as e:
            if not supabase_client.is_unique_violation(e):
                raise
            await _match_key(client.table(CART_TABLE).update({"quantity": quantity}), user_id, key).execute()
    except Exception as e:
        logger.exception("cart.repository.set_line_quantity failed user_id=%s key=%s", user_id, key.as_string())
        raise DurableStoreUnavailable(f"Écriture panier impossible: {e}") from e

async def delete_line(user_id: str, key: LineKey) -> None:
    try:
        client = await supabase_client.get_service_supabase()
        await _match_key(client.table(CART_TABLE).delete(), user_id, key).execute()
    except Exception as e:
        logger.exception("cart.repository.delete_line failed user_id=%s key=%s", user_id, key.as_string())
        raise DurableStoreUnavailable(f"Suppression panier impossible: {e}") from e

async def delete_rows(ids: Iterable[Any]) -> None:
    ids = [i for i in ids]
    if not ids:
        return
    try:
        client = await supabase_client.get_service_supabase()
        await client.table(CART_TABLE).delete().in_("id", ids).execute()
    except Exception as e:
        logger.exception("cart.repository.delete_rows failed ids=%s", ids)
        raise DurableStoreUnavailable(f"Suppression panier impossible: {e}") from e

async def update_row_quantity(row_id: Any, quantity: int) -> None:
    try:
        client = await supabase_client.get_service_supabase()
        await client.table(CART_TABLE).update({"quantity": quantity}).eq("id", row_id).execute()
    except Exception as e:
        logger.exception("cart.repository.update_row_quantity failed id=%s", row_id)
        raise DurableStoreUnavailable(f"Écriture panier impossible: {e}") from e

async def clear_cart(user_id: str) -> None:
    try:
        client = await supabase_client.get_service_supabase()
        await client.table(CART_TABLE).delete().eq("user_id", user_id).execute()
    except Exception as e:
        logger.exception("cart.repository.clear_cart failed user_id=%s", user_id)
        raise DurableStoreUnavailable(f"Vidage panier impossible: {e}") from e
