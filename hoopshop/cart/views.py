import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from hoopshop.catalog import repository as catalog
from hoopshop.errors import DurableStoreUnavailable, ProductUnavailable
from hoopshop.utils.security import Identity, get_identity, require_user
from .models import LineKey, Variant
from .sync import CartSync, cleanup_duplicates

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])


class AddItemBody(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = 1
    size: Optional[str] = None
    color: Optional[str] = None


class SetQuantityBody(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int
    size: Optional[str] = None
    color: Optional[str] = None


async def get_cart_sync(request: Request, identity: Identity = Depends(get_identity)) -> CartSync:
    """Panier de la requête: chargé (et fusionné si besoin) avant chaque route."""
    sync = CartSync(request.session, identity)
    await sync.load_for_session()
    return sync

# module hoopshop.cart.views
@router.get("")
async def get_cart(sync: CartSync = Depends(get_cart_sync)) -> Dict[str, Any]:
    """Panier courant: {items, totals, synced}."""
    return sync.snapshot()

@router.post("/items")
async def add_item(body: AddItemBody, sync: CartSync = Depends(get_cart_sync)) -> Dict[str, Any]:
    """
    Ajoute un article (ou incrémente la ligne existante).
    - Produit inconnu/inactif: 409 ProductUnavailable
    - Quantité non positive: 422 InvalidQuantity
    - Catalogue indisponible: ajout sans prix d'affichage (le checkout revérifie)
    """
    unit_price, name = None, None
    try:
        products = await catalog.get_products_map([body.product_id])
    except DurableStoreUnavailable:
        logger.warning("cart.views catalogue indisponible, ajout sans prix product_id=%s", body.product_id)
    else:
        product = products.get(body.product_id)
        if not product or not catalog.is_purchasable(product):
            raise ProductUnavailable([body.product_id])
        unit_price, name = catalog.price_from_product(product), product.get("name")

    await sync.add(
        body.product_id,
        body.quantity,
        Variant(size=body.size, color=body.color),
        unit_price=unit_price,
        name=name,
    )
    return sync.snapshot()

@router.put("/items")
async def set_item_quantity(body: SetQuantityBody, sync: CartSync = Depends(get_cart_sync)) -> Dict[str, Any]:
    """Fixe la quantité exacte; quantity <= 0 retire la ligne."""
    changed = await sync.set_quantity(LineKey.of(body.product_id, body.size, body.color), body.quantity)
    return {**sync.snapshot(), "changed": changed}

@router.delete("/items")
async def remove_item(
    product_id: str,
    size: Optional[str] = None,
    color: Optional[str] = None,
    sync: CartSync = Depends(get_cart_sync),
) -> Dict[str, Any]:
    removed = await sync.remove(LineKey.of(product_id, size, color))
    return {**sync.snapshot(), "changed": removed}

@router.post("/sync")
async def sync_cart(sync: CartSync = Depends(get_cart_sync)) -> Dict[str, Any]:
    """
    Synchronisation explicite (ex: juste après connexion).
    Le chargement a déjà fusionné le panier de session ou rejoué le mode local.
    """
    return sync.snapshot()

@router.post("/clear")
async def clear_cart(sync: CartSync = Depends(get_cart_sync)) -> Dict[str, Any]:
    await sync.clear()
    return sync.snapshot()

@router.post("/cleanup")
async def cleanup_cart(request: Request, user: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    """Consolide les doublons du panier durable de l'utilisateur connecté."""
    result = await cleanup_duplicates(user["id"])
    sync = CartSync(request.session, Identity.from_user(user))
    await sync.load_for_session()
    return {**sync.snapshot(), **result}
