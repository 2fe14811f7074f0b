"""
Accès aux données des commandes (tables 'orders' et 'order_items').

Contraintes attendues:
- unique(orders.payment_intent_id): une seule commande par paiement;
- unique(order_items.order_id, product_id, selected_size, selected_color)
  nulls not distinct: un seul jeu de lignes par commande.
Ce sont les seules exclusions mutuelles entre confirmation client, webhook
et relance admin.
"""
from typing import Any, Dict, List, Optional
import logging

import hoopshop.infra.supabase_client as supabase_client
from hoopshop.errors import DurableStoreUnavailable, OrderConflict
from .models import Order

logger = logging.getLogger(__name__)

ORDER_SELECT = (
    "id, payment_intent_id, user_id, total_amount, status, shipping_address, payment_method, created_at, "
    "order_items(product_id, quantity, price_at_purchase, selected_size, selected_color)"
)

# module hoopshop.orders.repository
async def find_order(correlation_id: str) -> Optional[Order]:
    """Commande (avec ses lignes) pour un identifiant de corrélation, ou None."""
    try:
        client = await supabase_client.get_service_supabase()
        res = await (
            client.table("orders")
            .select(ORDER_SELECT)
            .eq("payment_intent_id", correlation_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.exception("orders.repository.find_order failed correlation_id=%s", correlation_id)
        raise DurableStoreUnavailable(f"Lecture de la commande impossible: {e}") from e
    rows = res.data or []
    return Order.from_row(rows[0]) if rows else None

async def insert_order(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Insère la ligne 'orders'.
    - 23505 sur payment_intent_id: OrderConflict (un autre déclencheur a gagné).
    """
    try:
        client = await supabase_client.get_service_supabase()
        res = await client.table("orders").insert(record).execute()
    except Exception as e:
        if supabase_client.is_unique_violation(e):
            raise OrderConflict(f"Commande déjà créée pour {record.get('payment_intent_id')}") from e
        logger.exception("orders.repository.insert_order failed correlation_id=%s", record.get("payment_intent_id"))
        raise DurableStoreUnavailable(f"Création de la commande impossible: {e}") from e
    return (res.data or [record])[0]

async def insert_order_items(order_id: str, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Insère toutes les lignes d'une commande en un seul INSERT (tout ou rien).
    - 23505 sur (order_id, product_id, selected_size, selected_color):
      OrderConflict, un autre déclencheur a déjà écrit les lignes.
    """
    payload = [
        {
            "order_id": order_id,
            "product_id": i["product_id"],
            "quantity": int(i["quantity"]),
            "price_at_purchase": str(i["unit_price"]),
            "selected_size": i.get("size"),
            "selected_color": i.get("color"),
        }
        for i in items
    ]
    try:
        client = await supabase_client.get_service_supabase()
        res = await client.table("order_items").insert(payload).execute()
    except Exception as e:
        if supabase_client.is_unique_violation(e):
            raise OrderConflict(f"Lignes déjà écrites pour la commande {order_id}") from e
        logger.exception("orders.repository.insert_order_items failed order_id=%s", order_id)
        raise DurableStoreUnavailable(f"Création des lignes de commande impossible: {e}") from e
    return res.data or payload

