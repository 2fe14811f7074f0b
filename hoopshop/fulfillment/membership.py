"""
Mise à jour de l'abonnement (membership) depuis les événements
customer.subscription.* de Stripe.

- active / trialing: premium jusqu'à current_period_end
- tout autre statut, ou abonnement supprimé: free, sans expiration
Profil retrouvé par stripe_customer_id, sinon par l'email du client Stripe
(l'id client est alors enregistré sur le profil).
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from hoopshop.payments import stripe_client
from hoopshop.users import repository as users

logger = logging.getLogger(__name__)

PREMIUM_STATUSES = ("active", "trialing")

def period_end(subscription: Dict[str, Any]) -> Optional[int]:
    # Selon la version d'API, current_period_end est porté par l'abonnement ou par ses items
    if subscription.get("current_period_end"):
        return int(subscription["current_period_end"])
    items = ((subscription.get("items") or {}).get("data")) or []
    ends = [int(i["current_period_end"]) for i in items if i.get("current_period_end")]
    return max(ends) if ends else None

def membership_fields(subscription: Dict[str, Any], deleted: bool = False) -> Dict[str, Any]:
    status = subscription.get("status")
    if deleted or status not in PREMIUM_STATUSES:
        return {"membership_status": "free", "membership_expires_at": None}
    end = period_end(subscription)
    expires_at = datetime.fromtimestamp(end, tz=timezone.utc).isoformat() if end else None
    return {"membership_status": "premium", "membership_expires_at": expires_at}

async def find_subscriber(customer_id: str) -> Optional[Dict[str, Any]]:
    profile = await users.find_profile_by_customer_id(customer_id)
    if profile:
        return profile
    customer = await stripe_client.retrieve_customer(customer_id)
    email = customer.get("email")
    if not email:
        return None
    profile = await users.find_profile_by_email(email)
    if profile:
        logger.info("fulfillment.membership profil retrouvé par email customer_id=%s", customer_id)
    return profile

async def apply_subscription(subscription: Dict[str, Any], deleted: bool = False) -> Optional[Dict[str, Any]]:
    """
    Applique l'état d'un abonnement au profil correspondant.
    Retourne les champs écrits, ou None si aucun profil ne correspond.
    """
    customer_id = subscription.get("customer")
    if isinstance(customer_id, dict):
        customer_id = customer_id.get("id")
    if not customer_id:
        logger.warning("fulfillment.membership abonnement sans client id=%s", subscription.get("id"))
        return None

    profile = await find_subscriber(customer_id)
    if not profile:
        logger.warning("fulfillment.membership aucun profil pour customer_id=%s", customer_id)
        return None

    fields = {**membership_fields(subscription, deleted=deleted), "stripe_customer_id": customer_id}
    await users.update_profile(profile["id"], fields)
    logger.info(
        "fulfillment.membership profile_id=%s status=%s expires_at=%s",
        profile["id"], fields["membership_status"], fields["membership_expires_at"],
    )
    return fields
