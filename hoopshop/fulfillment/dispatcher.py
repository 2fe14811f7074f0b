"""
Routage des événements Stripe vérifiés vers leurs handlers.

- payment_intent.succeeded -> matérialisation de la commande (intents de la boutique)
- payment_intent.payment_failed -> tentative tracée, pas de commande
- customer.subscription.created|updated|deleted -> membership
- autres types: acquittés et ignorés
"""
from typing import Any, Awaitable, Callable, Dict
import logging

from hoopshop.errors import IntentMetadataInvalid
from hoopshop.orders import materializer
from hoopshop.payments import metadata as meta
from hoopshop.utils import observability
from . import membership

logger = logging.getLogger(__name__)

EventHandler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]

async def on_payment_succeeded(intent: Dict[str, Any]) -> Dict[str, Any]:
    """
    Matérialise la commande d'un paiement de la boutique.
    Un intent sans lignes de panier (abonnement, paiement hors boutique) ou
    aux metadata inexploitables est acquitté sans commande (200).
    """
    if not meta.parse_intent_metadata(intent.get("metadata"))["items"]:
        logger.info("fulfillment.dispatcher paiement hors boutique ignoré correlation_id=%s", intent.get("id"))
        return {"handled": False}
    try:
        result = await materializer.materialize(intent["id"], trigger="webhook")
    except IntentMetadataInvalid as e:
        observability.report("order.metadata_invalid", correlation_id=intent.get("id"), error=e.message)
        return {"handled": False}
    return {"handled": True, "order_id": result.order.id, "created": result.created}

async def on_payment_failed(intent: Dict[str, Any]) -> Dict[str, Any]:
    error = intent.get("last_payment_error") or {}
    logger.warning(
        "fulfillment.dispatcher paiement échoué correlation_id=%s code=%s",
        intent.get("id"), error.get("code"),
    )
    await materializer.record_failed_payment(intent["id"], intent.get("status"))
    return {"handled": True}

async def on_subscription_changed(subscription: Dict[str, Any]) -> Dict[str, Any]:
    fields = await membership.apply_subscription(subscription)
    return {"handled": fields is not None}

async def on_subscription_deleted(subscription: Dict[str, Any]) -> Dict[str, Any]:
    fields = await membership.apply_subscription(subscription, deleted=True)
    return {"handled": fields is not None}

HANDLERS: Dict[str, EventHandler] = {
    "payment_intent.succeeded": on_payment_succeeded,
    "payment_intent.payment_failed": on_payment_failed,
    "customer.subscription.created": on_subscription_changed,
    "customer.subscription.updated": on_subscription_changed,
    "customer.subscription.deleted": on_subscription_deleted,
}

async def route_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Dispatch d'un événement déjà vérifié (signature contrôlée en amont).
    Les erreurs des handlers remontent: la vue répond non-2xx et Stripe relance.
    """
    event_type = (event or {}).get("type") or ""
    data_obj = ((event or {}).get("data") or {}).get("object") or {}
    handler = HANDLERS.get(event_type)
    if handler is None:
        logger.info("fulfillment.dispatcher événement ignoré type=%s id=%s", event_type, event.get("id"))
        return {"received": True, "handled": False}
    logger.info("fulfillment.dispatcher type=%s id=%s", event_type, event.get("id"))
    result = await handler(data_obj)
    return {"received": True, **result}
