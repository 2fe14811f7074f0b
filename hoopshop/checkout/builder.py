"""
Cas d'usage 'checkout': fige un panier en intent de paiement.

- Les prix viennent uniquement du catalogue (jamais du client).
- Total > 0: PaymentIntent Stripe, l'id Stripe sert d'identifiant de corrélation.
- Total == 0: pas d'appel Stripe; identifiant `free_<uuid>` persisté en
  'succeeded' puis matérialisé par le même chemin que les paiements réels.
"""
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4
import logging

from hoopshop.cart.store import Cart
from hoopshop.catalog import repository as catalog
from hoopshop.config import CURRENCY
from hoopshop.errors import EmptyCart, ProductUnavailable
from hoopshop.orders import materializer
from hoopshop.payments import metadata as meta
from hoopshop.payments import stripe_client
from . import repository
from .models import FREE_PREFIX, Buyer, CheckoutIntent, IntentLine, ShippingAddress

logger = logging.getLogger(__name__)

async def price_lines(cart: Cart) -> List[IntentLine]:
    """
    Lignes figées au prix catalogue.
    - Panier vide: EmptyCart
    - Produit absent, inactif ou sans prix valide: ProductUnavailable (tous les ids fautifs)
    """
    if cart.is_empty():
        raise EmptyCart()
    products = await catalog.get_products_map(line.product_id for line in cart.lines)
    missing = [
        line.product_id
        for line in cart.lines
        if line.product_id not in products or not catalog.is_purchasable(products[line.product_id])
    ]
    if missing:
        raise ProductUnavailable(set(missing))

    lines = []
    for line in cart.lines:
        product = products[line.product_id]
        lines.append(IntentLine(
            product_id=line.product_id,
            name=product.get("name") or line.name,
            quantity=line.quantity,
            unit_price=catalog.price_from_product(product),
            size=line.variant.size,
            color=line.variant.color,
        ))
    return lines

async def build_intent(
    cart: Cart,
    buyer: Buyer,
    shipping: Optional[ShippingAddress] = None,
    *,
    currency: str = CURRENCY,
) -> CheckoutIntent:
    """
    Construit et persiste l'intent de paiement d'un panier.
    Le panier n'est pas modifié: il n'est vidé qu'après matérialisation de la commande.
    """
    lines = await price_lines(cart)
    amount = sum((l.unit_price * l.quantity for l in lines), Decimal("0.00")).quantize(Decimal("0.01"))
    metadata = meta.build_intent_metadata(
        [l.to_dict() for l in lines],
        buyer.model_dump(),
        shipping.model_dump() if shipping else None,
    )

    if amount == 0:
        return await _build_free_intent(lines, buyer, shipping, currency, metadata)

    provider = await stripe_client.create_intent(int(amount * 100), currency, metadata)
    intent = CheckoutIntent(
        correlation_id=provider["id"],
        lines=tuple(lines),
        buyer=buyer,
        shipping=shipping,
        currency=currency,
        amount=amount,
        client_secret=provider.get("client_secret"),
        is_free=False,
        status="requires_payment",
    )
    await repository.insert_intent(_intent_record(intent, metadata))
    logger.info("checkout.builder intent créé correlation_id=%s amount=%s", intent.correlation_id, amount)
    return intent

async def _build_free_intent(lines, buyer, shipping, currency, metadata) -> CheckoutIntent:
    intent = CheckoutIntent(
        correlation_id=f"{FREE_PREFIX}{uuid4().hex}",
        lines=tuple(lines),
        buyer=buyer,
        shipping=shipping,
        currency=currency,
        amount=Decimal("0.00"),
        is_free=True,
        status="succeeded",
    )
    await repository.insert_intent(_intent_record(intent, metadata))
    logger.info("checkout.builder commande gratuite correlation_id=%s", intent.correlation_id)
    await materializer.materialize(intent.correlation_id)
    return intent

def _intent_record(intent: CheckoutIntent, metadata) -> dict:
    # amount en centimes, comme côté Stripe: la vérification lit les deux de la même façon
    return {
        "correlation_id": intent.correlation_id,
        "user_id": intent.buyer.user_id,
        "email": intent.buyer.email,
        "currency": intent.currency,
        "amount": intent.amount_cents,
        "is_free": intent.is_free,
        "status": intent.status,
        "metadata": metadata,
    }
