import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from hoopshop.cart import local_storage
from hoopshop.checkout import repository as intents
from hoopshop.utils.rate_limit import optional_rate_limit
from hoopshop.utils.security import Identity, get_identity, require_admin
from . import materializer
from . import repository

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])
admin_router = APIRouter(prefix="/api/v1/admin/orders", tags=["Admin API"])


class ConfirmBody(BaseModel):
    correlation_id: str = Field(min_length=1)


# module hoopshop.orders.views
def _order_view(order, identity: Identity) -> Dict[str, Any]:
    if identity.role == "admin" or (identity.user_id and identity.user_id == order.user_id):
        return order.to_public()
    return order.to_summary()

@router.post("/confirm", dependencies=[Depends(optional_rate_limit(times=20, seconds=60))])
async def confirm_order(
    body: ConfirmBody,
    request: Request,
    identity: Identity = Depends(get_identity),
) -> Dict[str, Any]:
    """
    Déclencheur client après confirmation du paiement côté navigateur.
    - Idempotent: un second appel (ou le webhook) renvoie la même commande.
    - Paiement pas encore abouti: 409 PaymentNotCompleted (réessayer plus tard)
    - Paiement échoué: 402 PaymentFailed
    - Détail complet pour le titulaire, statut et total sinon
    """
    result = await materializer.materialize(body.correlation_id, trigger="client")
    local_storage.clear_local_cart(request.session)
    return {"order": _order_view(result.order, identity), "created": result.created}

@router.get("/{correlation_id}")
async def get_order(correlation_id: str, identity: Identity = Depends(get_identity)):
    """
    Statut/détail d'une commande par identifiant de corrélation.
    - Titulaire du compte (ou admin): détail complet.
    - Autre lecteur, invité compris: statut et total uniquement.
    - Pas encore de commande: 404 avec le statut de l'intent local s'il existe.
    """
    order = await repository.find_order(correlation_id)
    if order is not None:
        return {"order": _order_view(order, identity)}
    intent = await intents.get_intent(correlation_id)
    content = {"detail": "Commande introuvable", "code": "OrderNotFound"}
    if intent:
        content["status"] = "failed" if intent.get("status") == "failed" else "pending"
    return JSONResponse(status_code=404, content=content)

@admin_router.post("/{correlation_id}/reconcile")
async def reconcile_order(correlation_id: str, admin: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    """Relance manuelle (admin) de la matérialisation; mêmes garanties que les autres déclencheurs."""
    logger.info("orders.views reconcile admin_id=%s correlation_id=%s", admin.get("id"), correlation_id)
    result = await materializer.materialize(correlation_id, trigger="admin")
    return {"order": result.order.to_public(), "created": result.created}
