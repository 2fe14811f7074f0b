import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field

from hoopshop.cart import local_storage
from hoopshop.cart.sync import CartSync
from hoopshop.cart.views import get_cart_sync
from hoopshop.utils.rate_limit import optional_rate_limit
from . import builder
from .models import Buyer, ShippingAddress

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/checkout", tags=["Checkout API"])


class CheckoutBody(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=40)
    shipping: Optional[ShippingAddress] = None

# module hoopshop.checkout.views
@router.post("", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_checkout(body: CheckoutBody, sync: CartSync = Depends(get_cart_sync)) -> Dict[str, Any]:
    """
    Fige le panier courant en intent de paiement.
    - Connecté: user_id et email viennent de la session, jamais du corps.
    - Invité: email obligatoire (compte invité créé à la matérialisation).
    - Total nul: commande créée immédiatement, pas de client_secret.
    Réponse: {correlation_id, client_secret, amount, currency, free}
    """
    identity = sync.identity
    email = identity.email or body.email
    if not email:
        raise HTTPException(status_code=422, detail="Email requis pour commander")
    buyer = Buyer(name=body.name, email=email, phone=body.phone, user_id=identity.user_id)

    intent = await builder.build_intent(sync.cart, buyer, body.shipping)
    if intent.is_free:
        # Le panier durable est vidé par l'abonné OrderMaterialized; le panier de session ici
        local_storage.clear_local_cart(sync.session)
    return {
        "correlation_id": intent.correlation_id,
        "client_secret": intent.client_secret,
        "amount": str(intent.amount),
        "currency": intent.currency,
        "free": intent.is_free,
    }
