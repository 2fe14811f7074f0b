from typing import Optional
from postgrest.exceptions import APIError
from supabase import acreate_client, AsyncClient
from hoopshop.config import SUPABASE_URL, SUPABASE_ANON, SUPABASE_SERVICE_KEY

_supabase: Optional[AsyncClient] = None
_service_supabase: Optional[AsyncClient] = None

# Code PostgreSQL renvoyé par PostgREST sur violation de contrainte unique
UNIQUE_VIOLATION = "23505"

async def get_supabase() -> AsyncClient:
    """
    Client Supabase 'anon' (lecture publique, vérification des jetons Auth).
    """
    global _supabase
    if _supabase is None:
        _supabase = await acreate_client(SUPABASE_URL, SUPABASE_ANON)
    return _supabase

async def get_service_supabase() -> AsyncClient:
    """
    Client service-role (bypass RLS) pour les écritures serveur:
    paniers durables, intents, commandes, profils.
    """
    global _service_supabase
    if not SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_SERVICE_KEY manquant pour get_service_supabase()")
    if _service_supabase is None:
        _service_supabase = await acreate_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    return _service_supabase

def is_unique_violation(exc: Exception) -> bool:
    """True si l'erreur PostgREST correspond à une violation d'unicité (23505)."""
    if not isinstance(exc, APIError):
        return False
    code = getattr(exc, "code", None)
    if code is None and exc.args and isinstance(exc.args[0], dict):
        code = exc.args[0].get("code")
    return str(code or "") == UNIQUE_VIOLATION
