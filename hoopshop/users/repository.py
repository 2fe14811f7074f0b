"""Couche d'accès aux données (Supabase) pour les profils (table user_profiles).
Utilisée par la matérialisation des commandes (compte invité créé à la volée)
et par la mise à jour des abonnements.
Les erreurs Supabase deviennent DurableStoreUnavailable.
"""
from typing import Any, Dict, Optional
from uuid import uuid4
import logging

import hoopshop.infra.supabase_client as supabase_client
from hoopshop.errors import DurableStoreUnavailable

logger = logging.getLogger(__name__)

PROFILES_TABLE = "user_profiles"
PROFILE_SELECT = "id, email, full_name, role, membership_status, membership_expires_at, stripe_customer_id"

def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()

async def _first(query) -> Optional[Dict[str, Any]]:
    res = await query.limit(1).execute()
    rows = res.data or []
    return rows[0] if rows else None

async def find_profile_by_email(email: str) -> Optional[Dict[str, Any]]:
    """Profil par email (insensible à la casse côté appelant: email normalisé)."""
    if not email:
        return None
    try:
        client = await supabase_client.get_service_supabase()
        return await _first(client.table(PROFILES_TABLE).select(PROFILE_SELECT).eq("email", _normalize_email(email)))
    except Exception as e:
        logger.exception("users.repository.find_profile_by_email failed")
        raise DurableStoreUnavailable(f"Lecture du profil impossible: {e}") from e

async def find_profile_by_customer_id(customer_id: str) -> Optional[Dict[str, Any]]:
    if not customer_id:
        return None
    try:
        client = await supabase_client.get_service_supabase()
        return await _first(client.table(PROFILES_TABLE).select(PROFILE_SELECT).eq("stripe_customer_id", customer_id))
    except Exception as e:
        logger.exception("users.repository.find_profile_by_customer_id failed customer_id=%s", customer_id)
        raise DurableStoreUnavailable(f"Lecture du profil impossible: {e}") from e

async def find_or_create_profile(email: str, full_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Compte invité paresseux: retourne le profil de cet email, le crée sinon
    (membership_status=free, role=user).
    - Si un autre appelant crée le même email en parallèle (23505), on relit.
    """
    existing = await find_profile_by_email(email)
    if existing:
        return existing
    payload = {
        "id": str(uuid4()),
        "email": _normalize_email(email),
        "full_name": full_name,
        "role": "user",
        "membership_status": "free",
    }
    try:
        client = await supabase_client.get_service_supabase()
        res = await client.table(PROFILES_TABLE).insert(payload).execute()
        logger.info("users.repository profil invité créé id=%s", payload["id"])
        return (res.data or [payload])[0]
    except Exception as e:
        if supabase_client.is_unique_violation(e):
            winner = await find_profile_by_email(email)
            if winner:
                return winner
        logger.exception("users.repository.find_or_create_profile failed")
        raise DurableStoreUnavailable(f"Création du profil impossible: {e}") from e

async def update_profile(profile_id: str, fields: Dict[str, Any]) -> bool:
    """Met à jour les colonnes données; retourne False si aucun profil ne correspond."""
    try:
        client = await supabase_client.get_service_supabase()
        res = await client.table(PROFILES_TABLE).update(fields).eq("id", profile_id).execute()
        return bool(res.data)
    except Exception as e:
        logger.exception("users.repository.update_profile failed id=%s", profile_id)
        raise DurableStoreUnavailable(f"Mise à jour du profil impossible: {e}") from e
