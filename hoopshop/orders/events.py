"""
Événements métier en mémoire de processus.

OrderMaterialized est publié après l'insertion effective d'une commande
(jamais sur le court-circuit idempotent). Les abonnés ne peuvent pas
annuler la commande: leurs erreurs sont loggées et ignorées.
"""
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, NamedTuple, Optional, Type
import logging

from hoopshop.cart import repository as cart_repository
from .models import Order

logger = logging.getLogger(__name__)


class OrderMaterialized(NamedTuple):
    order: Order
    buyer_email: Optional[str] = None


Handler = Callable[[object], Awaitable[None]]


class EventBus:
    def __init__(self):
        self._handlers: Dict[Type, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type, handler: Optional[Handler] = None):
        """
        Abonne un handler async à un type d'événement.
        Utilisable en décorateur: @bus.subscribe(OrderMaterialized).
        Un même handler n'est enregistré qu'une fois.
        """
        def _register(fn: Handler) -> Handler:
            if fn not in self._handlers[event_type]:
                self._handlers[event_type].append(fn)
            return fn
        return _register(handler) if handler is not None else _register

    def unsubscribe(self, event_type: Type, handler: Handler) -> None:
        if handler in self._handlers.get(event_type, []):
            self._handlers[event_type].remove(handler)

    def handlers(self, event_type: Type) -> List[Handler]:
        return list(self._handlers.get(event_type, []))

    async def publish(self, event) -> None:
        for handler in self.handlers(type(event)):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "orders.events handler %s failed for %s",
                    getattr(handler, "__name__", handler), type(event).__name__,
                )


bus = EventBus()


async def clear_buyer_cart(event: OrderMaterialized) -> None:
    """Vide le panier durable de l'acheteur une fois la commande écrite."""
    if not event.order.user_id:
        return
    await cart_repository.clear_cart(event.order.user_id)
    logger.info("orders.events panier vidé user_id=%s order_id=%s", event.order.user_id, event.order.id)


async def log_confirmation(event: OrderMaterialized) -> None:
    # Pas de gabarit d'email ici: la confirmation est tracée
    logger.info(
        "orders.events commande confirmée order_id=%s correlation_id=%s total=%s email=%s",
        event.order.id, event.order.correlation_id, event.order.total_amount, event.buyer_email,
    )


def register_default_subscribers(target: EventBus = bus) -> EventBus:
    target.subscribe(OrderMaterialized, clear_buyer_cart)
    target.subscribe(OrderMaterialized, log_confirmation)
    return target
