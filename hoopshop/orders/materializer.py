"""
Matérialisation d'une commande à partir d'un paiement confirmé.

Déclencheurs: confirmation client, webhook Stripe, relance admin, checkout
gratuit. Tous passent par materialize(); le comportement est identique.

1. Commande complète existante pour cet identifiant -> retournée (created=False).
   Une commande sans lignes (écriture interrompue) est complétée.
2. Paiement vérifié auprès de la source de vérité (Stripe, ou l'intent local
   pour un identifiant free_*). Seuls ses metadata et son montant sont lus.
3. Compte: user_id des metadata, sinon profil par email (créé si absent).
4. Insertion commande puis lignes (un seul INSERT). Une violation d'unicité
   signifie qu'un autre déclencheur a gagné: on relit sa commande.
5. OrderMaterialized publié par l'appel qui a écrit les lignes.

Pas de boucle de relance interne: l'appelant relance en rappelant materialize().
"""
from decimal import Decimal
from typing import Any, Dict, NamedTuple, Optional
import logging

from hoopshop.checkout import repository as intents
from hoopshop.checkout.models import is_free_correlation_id
from hoopshop.errors import (
    DUPLICATE_IGNORED,
    DurableStoreUnavailable,
    IntentMetadataInvalid,
    OrderConflict,
    OrderNotFound,
    PaymentFailed,
    PaymentNotCompleted,
)
from hoopshop.payments import metadata as meta
from hoopshop.payments import stripe_client
from hoopshop.users import repository as users
from hoopshop.utils import observability
from . import events
from . import repository
from .models import Order, OrderStatus

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"


class MaterializeResult(NamedTuple):
    order: Order
    created: bool


async def verify_payment(correlation_id: str) -> Dict[str, Any]:
    """
    Relit le paiement auprès de sa source de vérité.
    Retour homogène: {"id", "status", "amount" (centimes), "currency", "metadata", ...}
    """
    if not is_free_correlation_id(correlation_id):
        return await stripe_client.retrieve_intent(correlation_id)

    record = await intents.get_intent(correlation_id)
    if not record:
        raise OrderNotFound(f"Intent inconnu: {correlation_id}")
    verified = {
        "id": correlation_id,
        "status": record.get("status"),
        "amount": int(record.get("amount") or 0),
        "currency": record.get("currency"),
        "metadata": record.get("metadata") or {},
        "payment_method_types": ["free"],
    }
    # Un identifiant free_* ne peut couvrir qu'un montant nul
    if verified["amount"] != 0 or not record.get("is_free", True):
        logger.error("orders.materializer intent gratuit incohérent correlation_id=%s amount=%s",
                     correlation_id, verified["amount"])
        raise PaymentNotCompleted(correlation_id, "invalid_free_intent")
    return verified

def is_failed_payment(intent: Dict[str, Any]) -> bool:
    status = intent.get("status")
    if status in ("canceled", "failed"):
        return True
    # requires_payment_method est aussi l'état initial: échec seulement après une tentative
    return status == "requires_payment_method" and bool(intent.get("last_payment_error"))

async def record_failed_payment(correlation_id: str, status: Optional[str]) -> None:
    """Trace un paiement échoué; l'intent local (s'il existe) passe en 'failed'."""
    observability.report("payment.failed", correlation_id=correlation_id, status=status)
    try:
        await intents.update_intent_status(correlation_id, "failed")
    except DurableStoreUnavailable:
        logger.warning("orders.materializer statut 'failed' non enregistré correlation_id=%s", correlation_id)

def _address_from(details: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not details:
        return None
    address = details.get("address") or {}
    if not address.get("line1"):
        return None
    return {
        "name": details.get("name"),
        "line1": address.get("line1"),
        "line2": address.get("line2"),
        "city": address.get("city"),
        "state": address.get("state"),
        "postal_code": address.get("postal_code"),
        "country": address.get("country"),
    }

def shipping_address_for(intent: Dict[str, Any], parsed: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Adresse: metadata, puis shipping de l'intent, puis shipping/billing de la dernière charge."""
    if parsed.get("shipping"):
        return parsed["shipping"]
    charge = intent.get("latest_charge")
    charge = charge if isinstance(charge, dict) else {}
    for candidate in (
        intent.get("shipping"),
        charge.get("shipping"),
        charge.get("billing_details"),
    ):
        address = _address_from(candidate)
        if address:
            return address
    return None

def payment_method_for(intent: Dict[str, Any]) -> str:
    charge = intent.get("latest_charge")
    if isinstance(charge, dict):
        details_type = (charge.get("payment_method_details") or {}).get("type")
        if details_type:
            return details_type
    types = intent.get("payment_method_types") or []
    return types[0] if types else "card"

async def _resolve_user_id(parsed: Dict[str, Any], correlation_id: str) -> str:
    if parsed.get("user_id"):
        return parsed["user_id"]
    buyer = parsed.get("buyer") or {}
    if not buyer.get("email"):
        raise IntentMetadataInvalid(f"Aucun acheteur identifiable pour {correlation_id}")
    profile = await users.find_or_create_profile(buyer["email"], buyer.get("name"))
    return str(profile["id"])

async def _existing_or_conflict(correlation_id: str) -> Order:
    winner = await repository.find_order(correlation_id)
    if winner is None:
        raise OrderConflict(f"Commande en cours de création pour {correlation_id}, réessayer")
    return winner

async def _write_lines(order_id: str, correlation_id: str, parsed: Dict[str, Any], trigger: str) -> MaterializeResult:
    """
    Écrit les lignes d'une commande sans lignes. L'INSERT est tout ou rien et
    l'index unique des lignes désigne un seul gagnant: lui seul obtient
    created=True et publie OrderMaterialized.
    """
    try:
        await repository.insert_order_items(order_id, parsed["items"])
    except OrderConflict:
        winner = await _existing_or_conflict(correlation_id)
        logger.info("orders.materializer %s (lignes déjà écrites) trigger=%s correlation_id=%s",
                    DUPLICATE_IGNORED, trigger, correlation_id)
        return MaterializeResult(winner, False)

    order = await _existing_or_conflict(correlation_id)
    logger.info("orders.materializer commande créée trigger=%s correlation_id=%s order_id=%s",
                trigger, correlation_id, order.id)

    try:
        await intents.update_intent_status(correlation_id, SUCCEEDED)
    except DurableStoreUnavailable:
        logger.warning("orders.materializer statut d'intent non mis à jour correlation_id=%s", correlation_id)

    await events.bus.publish(events.OrderMaterialized(order=order, buyer_email=parsed["buyer"].get("email")))
    return MaterializeResult(order, True)

async def materialize(correlation_id: str, *, trigger: str = "client") -> MaterializeResult:
    """
    Retourne (commande, created). Idempotent: N appels, séquentiels ou
    concurrents, produisent une seule commande avec toutes ses lignes, et un
    seul appel reçoit created=True.
    - Paiement non abouti: PaymentNotCompleted (aucune écriture)
    - Paiement échoué: PaymentFailed (tentative tracée, aucune commande)
    - Commande trouvée sans lignes (écriture interrompue ou en cours): on la complète
    """
    existing = await repository.find_order(correlation_id)
    if existing is not None and existing.lines:
        logger.info("orders.materializer %s trigger=%s correlation_id=%s", DUPLICATE_IGNORED, trigger, correlation_id)
        return MaterializeResult(existing, False)

    intent = await verify_payment(correlation_id)
    status = intent.get("status")
    if is_failed_payment(intent):
        await record_failed_payment(correlation_id, status)
        raise PaymentFailed(correlation_id, status)
    if status != SUCCEEDED:
        raise PaymentNotCompleted(correlation_id, status)

    parsed = meta.parse_intent_metadata(intent.get("metadata"))
    if not parsed["items"]:
        raise IntentMetadataInvalid(f"Aucune ligne dans les metadata de {correlation_id}")

    if existing is not None:
        logger.warning("orders.materializer commande sans lignes, reprise trigger=%s correlation_id=%s",
                       trigger, correlation_id)
        return await _write_lines(existing.id, correlation_id, parsed, trigger)

    user_id = await _resolve_user_id(parsed, correlation_id)
    total = (Decimal(int(intent.get("amount") or 0)) / 100).quantize(Decimal("0.01"))
    record = {
        "payment_intent_id": correlation_id,
        "user_id": user_id,
        "total_amount": str(total),
        "status": OrderStatus.COMPLETED.value,
        "shipping_address": shipping_address_for(intent, parsed),
        "payment_method": payment_method_for(intent),
    }
    try:
        row = await repository.insert_order(record)
    except OrderConflict:
        winner = await _existing_or_conflict(correlation_id)
        if winner.lines:
            logger.info("orders.materializer %s (course perdue) correlation_id=%s", DUPLICATE_IGNORED, correlation_id)
            return MaterializeResult(winner, False)
        # Le gagnant n'a pas encore écrit ses lignes: l'index unique des lignes tranche
        return await _write_lines(winner.id, correlation_id, parsed, trigger)

    # Échec ici: la commande reste sans lignes, le prochain appel la complète
    return await _write_lines(str(row["id"]), correlation_id, parsed, trigger)
