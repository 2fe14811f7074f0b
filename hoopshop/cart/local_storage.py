"""
Panier local (invité ou hors-ligne) stocké dans la session signée (SessionMiddleware).
Équivalent serveur du localStorage navigateur: propre à un appareil, éphémère.
"""
import logging
from typing import Any, MutableMapping

from hoopshop.config import CART_SESSION_KEY, CART_LOCAL_ONLY_FLAG
from .models import CartLine
from .store import Cart

logger = logging.getLogger(__name__)

# module hoopshop.cart.local_storage
def load_local_cart(session: MutableMapping[str, Any]) -> Cart:
    """
    Relit le panier de session.
    - Tolérant: une ligne illisible est ignorée (et loggée), pas d'exception.
    """
    raw = session.get(CART_SESSION_KEY) or []
    lines = []
    for entry in raw if isinstance(raw, list) else []:
        try:
            line = CartLine.from_dict(entry)
        except Exception:
            logger.warning("cart.local_storage ligne ignorée: %r", entry)
            continue
        if line.product_id and line.quantity > 0:
            lines.append(line)
    return Cart.from_lines(lines)

def save_local_cart(session: MutableMapping[str, Any], cart: Cart) -> None:
    session[CART_SESSION_KEY] = cart.to_list()

def clear_local_cart(session: MutableMapping[str, Any]) -> None:
    session.pop(CART_SESSION_KEY, None)

def is_local_only(session: MutableMapping[str, Any]) -> bool:
    return bool(session.get(CART_LOCAL_ONLY_FLAG))

def set_local_only(session: MutableMapping[str, Any], value: bool) -> None:
    if value:
        session[CART_LOCAL_ONLY_FLAG] = True
    else:
        session.pop(CART_LOCAL_ONLY_FLAG, None)
