"""
Accès aux données du catalogue (table 'products').
Lecture seule: sert à l'hydratation du panier et au prix faisant foi du checkout.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional
import logging

import hoopshop.infra.supabase_client as supabase_client
from hoopshop.errors import DurableStoreUnavailable

logger = logging.getLogger(__name__)

# module hoopshop.catalog.repository
async def fetch_products_by_ids(ids: List[str]) -> List[Dict[str, Any]]:
    """
    Récupère les produits par leurs IDs.
    - Retourne [] si ids vide.
    - Soulève DurableStoreUnavailable si la base ne répond pas: un checkout
      ne doit jamais partir sur un catalogue inconnu.
    """
    if not ids:
        return []
    try:
        client = await supabase_client.get_service_supabase()
        res = await (
            client.table("products")
            .select("id, name, price, is_active")
            .in_("id", [str(i) for i in ids])
            .execute()
        )
        return res.data or []
    except Exception as e:
        logger.exception("catalog.repository.fetch_products_by_ids failed ids=%s", ids)
        raise DurableStoreUnavailable(f"Catalogue indisponible: {e}") from e

async def get_products_map(ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Retourne un dict {id: produit} à partir d'une liste d'IDs (dédoublonnés)."""
    unique = list(dict.fromkeys(str(i) for i in ids))
    products = await fetch_products_by_ids(unique)
    return {str(p.get("id")): p for p in products}

def price_from_product(product: Dict[str, Any]) -> Optional[Decimal]:
    """
    Prix catalogue en Decimal arrondi au centime.
    - None si le prix est absent, illisible ou négatif: le produit n'est pas vendable.
    - 0 explicite reste un prix valide (article offert).
    """
    raw = product.get("price")
    if raw is None or str(raw).strip() == "":
        return None
    try:
        price = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price < 0:
        return None
    return price.quantize(Decimal("0.01"))

def is_purchasable(product: Dict[str, Any]) -> bool:
    # is_active absent = actif (anciennes lignes du catalogue)
    return product.get("is_active") is not False and price_from_product(product) is not None
