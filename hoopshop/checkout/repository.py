"""
Accès aux données des intents de paiement (table 'checkout_intents').
correlation_id est unique; `status` est la seule colonne modifiée après insertion.
"""
from typing import Any, Dict, Optional
import logging

import hoopshop.infra.supabase_client as supabase_client
from hoopshop.errors import DurableStoreUnavailable

logger = logging.getLogger(__name__)

INTENTS_TABLE = "checkout_intents"

# module hoopshop.checkout.repository
async def insert_intent(record: Dict[str, Any]) -> Dict[str, Any]:
    try:
        client = await supabase_client.get_service_supabase()
        res = await client.table(INTENTS_TABLE).insert(record).execute()
        return (res.data or [record])[0]
    except Exception as e:
        logger.exception("checkout.repository.insert_intent failed correlation_id=%s", record.get("correlation_id"))
        raise DurableStoreUnavailable(f"Enregistrement de l'intent impossible: {e}") from e

async def get_intent(correlation_id: str) -> Optional[Dict[str, Any]]:
    try:
        client = await supabase_client.get_service_supabase()
        res = await (
            client.table(INTENTS_TABLE)
            .select("*")
            .eq("correlation_id", correlation_id)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception as e:
        logger.exception("checkout.repository.get_intent failed correlation_id=%s", correlation_id)
        raise DurableStoreUnavailable(f"Lecture de l'intent impossible: {e}") from e

async def update_intent_status(correlation_id: str, status: str) -> bool:
    """Met à jour le statut local; retourne False si aucun intent local ne correspond."""
    try:
        client = await supabase_client.get_service_supabase()
        res = await (
            client.table(INTENTS_TABLE)
            .update({"status": status})
            .eq("correlation_id", correlation_id)
            .execute()
        )
        return bool(res.data)
    except Exception as e:
        logger.exception("checkout.repository.update_intent_status failed correlation_id=%s", correlation_id)
        raise DurableStoreUnavailable(f"Mise à jour de l'intent impossible: {e}") from e
