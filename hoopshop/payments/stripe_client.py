"""
Adaptateur Stripe: centralise la configuration et les appels au fournisseur.
Seules opérations consommées: créer/relire un PaymentIntent, vérifier un
webhook signé, relire un client (email) pour les abonnements.
"""
from typing import Any, Dict, Optional
import logging

import stripe

from hoopshop.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from hoopshop.errors import OrderNotFound, PaymentProviderUnavailable, SignatureInvalid

logger = logging.getLogger(__name__)

# module hoopshop.payments.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Soulève PaymentProviderUnavailable si STRIPE_SECRET_KEY est absent.
    """
    if not STRIPE_SECRET_KEY:
        raise PaymentProviderUnavailable("STRIPE_SECRET_KEY manquant")
    stripe.api_key = STRIPE_SECRET_KEY
    return stripe

def _to_dict(obj: Any) -> Any:
    # StripeObject n'est plus un dict dans les versions récentes du SDK: to_dict() puis types natifs
    if isinstance(obj, stripe.StripeObject):
        obj = obj.to_dict()
    if isinstance(obj, dict):
        return {k: _to_dict(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_to_dict(v) for v in obj]
    return obj

async def create_intent(amount_cents: int, currency: str, metadata: Dict[str, str]) -> Dict[str, Any]:
    """
    Crée un PaymentIntent (paiement unique, méthodes automatiques).
    Retour: {"id": "pi_...", "client_secret": "...", "status": "...", ...}
    """
    require_stripe()
    try:
        intent = await stripe.PaymentIntent.create_async(
            amount=amount_cents,
            currency=currency,
            automatic_payment_methods={"enabled": True},
            metadata=metadata,
        )
    except stripe.StripeError as e:
        logger.exception("payments.stripe_client.create_intent failed amount=%s", amount_cents)
        raise PaymentProviderUnavailable(f"Création du paiement impossible: {e}") from e
    return _to_dict(intent) or {}

async def retrieve_intent(correlation_id: str) -> Dict[str, Any]:
    """
    Relit un PaymentIntent (source de vérité du statut et des metadata).
    latest_charge est étendu pour le repli sur l'adresse de livraison/facturation.
    - id inconnu chez Stripe: OrderNotFound
    """
    require_stripe()
    try:
        intent = await stripe.PaymentIntent.retrieve_async(correlation_id, expand=["latest_charge"])
    except stripe.InvalidRequestError as e:
        raise OrderNotFound(f"Paiement introuvable: {correlation_id}") from e
    except stripe.StripeError as e:
        logger.exception("payments.stripe_client.retrieve_intent failed id=%s", correlation_id)
        raise PaymentProviderUnavailable(f"Lecture du paiement impossible: {e}") from e
    return _to_dict(intent) or {}

async def retrieve_customer(customer_id: str) -> Dict[str, Any]:
    require_stripe()
    try:
        customer = await stripe.Customer.retrieve_async(customer_id)
    except stripe.StripeError as e:
        logger.exception("payments.stripe_client.retrieve_customer failed id=%s", customer_id)
        raise PaymentProviderUnavailable(f"Lecture du client impossible: {e}") from e
    return _to_dict(customer) or {}

def verify_webhook_signature(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """
    Valide un événement Stripe signé (Stripe-Signature + STRIPE_WEBHOOK_SECRET).
    - Toute anomalie (secret absent, signature absente/fausse, payload illisible)
      soulève SignatureInvalid: rejet définitif, pas de nouvelle tentative utile.
    """
    if not STRIPE_WEBHOOK_SECRET:
        logger.error("payments.stripe_client STRIPE_WEBHOOK_SECRET manquant, webhook refusé")
        raise SignatureInvalid("Webhook non configuré")
    if not signature:
        raise SignatureInvalid("En-tête Stripe-Signature manquant")
    try:
        event = stripe.Webhook.construct_event(payload=payload, sig_header=signature, secret=STRIPE_WEBHOOK_SECRET)
    except stripe.SignatureVerificationError as e:
        raise SignatureInvalid(f"Signature invalide: {e}") from e
    except ValueError as e:
        raise SignatureInvalid(f"Payload invalide: {e}") from e
    return _to_dict(event) or {}
