from fastapi import Request, HTTPException, Depends
from typing import Optional, Dict, Any, NamedTuple
import asyncio
import logging

import hoopshop.infra.supabase_client as supabase_client
from hoopshop.config import PROFILE_LOOKUP_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

COOKIE_NAME = "sb_access"
DEFAULT_PROFILE = {"role": "user", "membership_status": "free"}


class Identity(NamedTuple):
    """Identité de la requête; user_id None = invité (panier de session)."""
    user_id: Optional[str] = None
    email: Optional[str] = None
    role: str = "user"
    membership_status: str = "free"

    @property
    def is_anonymous(self) -> bool:
        return not self.user_id

    @classmethod
    def from_user(cls, user: Optional[Dict[str, Any]]) -> "Identity":
        if not user or not user.get("id"):
            return cls()
        return cls(
            user_id=str(user["id"]),
            email=user.get("email"),
            role=user.get("role") or "user",
            membership_status=user.get("membership_status") or "free",
        )


def _token_from_request(request: Request) -> Optional[str]:
    # Hybride: priorité au Bearer, fallback cookie
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(COOKIE_NAME)

async def _fetch_profile(user_id: str) -> Dict[str, Any]:
    client = await supabase_client.get_service_supabase()
    res = await (
        client.table("user_profiles")
        .select("role, membership_status")
        .eq("id", user_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else {}

async def load_profile(user_id: str) -> Dict[str, Any]:
    """
    Enrichissement opportuniste (rôle, abonnement) borné par un timeout court.
    - Au-delà du timeout ou en cas d'erreur: profil par défaut (user / free).
    """
    try:
        profile = await asyncio.wait_for(_fetch_profile(user_id), timeout=PROFILE_LOOKUP_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("security.load_profile timeout user_id=%s", user_id)
        return dict(DEFAULT_PROFILE)
    except Exception as e:
        logger.warning("security.load_profile failed user_id=%s: %s", user_id, e)
        return dict(DEFAULT_PROFILE)
    return {
        "role": (profile.get("role") or "user").lower(),
        "membership_status": profile.get("membership_status") or "free",
    }

async def user_from_token(token: str) -> Dict[str, Any]:
    """Vérifie le jeton auprès de Supabase Auth et retourne {id, email, role, membership_status}."""
    client = await supabase_client.get_supabase()
    res = await client.auth.get_user(token)
    user = getattr(res, "user", None)
    uid = getattr(user, "id", None)
    if not uid:
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")
    profile = await load_profile(str(uid))
    return {"id": str(uid), "email": getattr(user, "email", None), **profile}

async def get_current_user(request: Request) -> Dict[str, Any]:
    token = _token_from_request(request)
    if not token:
        raise HTTPException(status_code=401, detail="Non authentifié")
    try:
        return await user_from_token(token)
    except HTTPException:
        raise
    except Exception:
        logger.warning("security.get_current_user jeton refusé")
        raise HTTPException(status_code=401, detail="Session expirée, veuillez vous connecter")

async def get_identity(request: Request) -> Identity:
    """
    Identité optionnelle: un invité (ou un jeton invalide) obtient Identity() anonyme,
    le panier reste alors en session.
    """
    token = _token_from_request(request)
    if not token:
        return Identity()
    try:
        return Identity.from_user(await user_from_token(token))
    except Exception:
        logger.info("security.get_identity jeton invalide, session invitée")
        return Identity()

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user

def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Accès interdit")
    return user
