import logging
from typing import Any, Dict

from fastapi import APIRouter, Request

from hoopshop.payments import stripe_client
from . import dispatcher

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/webhooks", tags=["Webhooks"])

# module hoopshop.fulfillment.views
@router.post("/stripe", include_in_schema=False)
async def stripe_webhook(request: Request) -> Dict[str, Any]:
    """
    Webhook Stripe.
    - Signature invalide: 400 SignatureInvalid, rien n'est dispatché
    - Événement traité, ignoré ou déjà traité: 200
    - Erreur métier/infra: statut non-2xx, Stripe relivre plus tard
    """
    payload = await request.body()
    event = stripe_client.verify_webhook_signature(payload, request.headers.get("stripe-signature"))
    result = await dispatcher.route_event(event)
    logger.info("fulfillment.webhook type=%s handled=%s", event.get("type"), result.get("handled"))
    return result
