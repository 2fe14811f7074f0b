"""
Sérialisation/désérialisation des métadonnées Stripe d'un PaymentIntent
(acheteur, adresse de livraison, lignes du panier).

Stripe limite chaque valeur à 500 caractères: un JSON trop long est découpé
sur `<clé>_1..n` avec `<clé>_parts` = n.
"""
import json
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

MAX_VALUE_LENGTH = 500
ITEMS_KEY = "items_data"
SHIPPING_KEY = "shipping"

# module hoopshop.payments.metadata
def _put_chunked(meta: Dict[str, str], key: str, text: str) -> None:
    if len(text) <= MAX_VALUE_LENGTH:
        meta[key] = text
        return
    parts = [text[i:i + MAX_VALUE_LENGTH] for i in range(0, len(text), MAX_VALUE_LENGTH)]
    for n, part in enumerate(parts, start=1):
        meta[f"{key}_{n}"] = part
    meta[f"{key}_parts"] = str(len(parts))

def _read_chunked(meta: Dict[str, Any], key: str) -> Optional[str]:
    if meta.get(key):
        return meta[key]
    try:
        count = int(meta.get(f"{key}_parts") or 0)
    except (TypeError, ValueError):
        count = 0
    if count <= 0:
        return None
    return "".join(str(meta.get(f"{key}_{n}") or "") for n in range(1, count + 1))

def _load_json(text: Optional[str], default):
    if not text:
        return default
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        logger.warning("payments.metadata JSON illisible: %r", text[:80])
        return default

def compact_items(lines: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Forme courte des lignes: {"id", "q", "p", "s", "c", "n"}."""
    compact = []
    for line in lines:
        entry = {"id": str(line["product_id"]), "q": int(line["quantity"]), "p": str(line["unit_price"])}
        if line.get("size"):
            entry["s"] = line["size"]
        if line.get("color"):
            entry["c"] = line["color"]
        if line.get("name"):
            entry["n"] = line["name"]
        compact.append(entry)
    return compact

def build_intent_metadata(
    lines: List[Dict[str, Any]],
    buyer: Dict[str, Any],
    shipping: Optional[Dict[str, Any]],
) -> Dict[str, str]:
    """
    Construit les metadata d'un PaymentIntent (toutes les valeurs en str).
    - lines: [{"product_id", "quantity", "unit_price", "size", "color", "name"}]
    - buyer: {"name", "email", "phone", "user_id"}
    """
    meta: Dict[str, str] = {
        "buyer_name": str(buyer.get("name") or "")[:MAX_VALUE_LENGTH],
        "buyer_email": str(buyer.get("email") or "")[:MAX_VALUE_LENGTH],
        "buyer_phone": str(buyer.get("phone") or "")[:MAX_VALUE_LENGTH],
    }
    if buyer.get("user_id"):
        meta["user_id"] = str(buyer["user_id"])
    if shipping:
        _put_chunked(meta, SHIPPING_KEY, json.dumps(shipping, separators=(",", ":"), ensure_ascii=False))
    _put_chunked(meta, ITEMS_KEY, json.dumps(compact_items(lines), separators=(",", ":"), ensure_ascii=False))
    return meta

def parse_intent_metadata(meta: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Inverse de build_intent_metadata.
    Retour: {"user_id", "buyer": {...}, "shipping": dict|None, "items": [{"product_id", ...}]}
    Tolérant: un JSON illisible donne items=[] / shipping=None.
    """
    meta = meta or {}
    raw_items = _load_json(_read_chunked(meta, ITEMS_KEY), [])
    items = []
    for entry in raw_items if isinstance(raw_items, list) else []:
        try:
            items.append({
                "product_id": str(entry["id"]),
                "quantity": int(entry["q"]),
                "unit_price": str(entry.get("p") or "0"),
                "size": entry.get("s"),
                "color": entry.get("c"),
                "name": entry.get("n"),
            })
        except (KeyError, TypeError, ValueError):
            logger.warning("payments.metadata ligne ignorée: %r", entry)
    shipping = _load_json(_read_chunked(meta, SHIPPING_KEY), None)
    return {
        "user_id": meta.get("user_id") or None,
        "buyer": {
            "name": meta.get("buyer_name") or None,
            "email": meta.get("buyer_email") or None,
            "phone": meta.get("buyer_phone") or None,
        },
        "shipping": shipping if isinstance(shipping, dict) else None,
        "items": items,
    }
