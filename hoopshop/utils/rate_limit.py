from typing import Dict, Any
from fastapi import Request, Response, HTTPException
import hashlib
import logging
import os
import time

from hoopshop.utils.security import COOKIE_NAME

logger = logging.getLogger(__name__)

def _client_key(request: Request) -> str:
    # Priorité: jeton de session (hashé) puis IP, toujours par chemin
    token = request.cookies.get(COOKIE_NAME)
    path = request.url.path
    if token:
        digest = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{digest}:{path}"
    ip = request.client.host if request.client else "local"
    return f"ip:{ip}:{path}"

def optional_rate_limit(times: int, seconds: int):
    """
    Dépendance de limitation (checkout, confirmation de commande).
    - LOCAL_RATE_LIMIT_FALLBACK=1: fenêtre glissante en mémoire (dev/tests).
    - app.state.rate_limit_enabled False: aucune limite.
    - Sinon fastapi-limiter (Redis); s'il est indisponible, on laisse passer.
    """
    async def _dep(request: Request, response: Response):
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = _client_key(request)
            store = getattr(request.app.state, "_rl_store", {})
            hits = [t for t in store.get(key, []) if now - t < seconds]
            if len(hits) >= times:
                raise HTTPException(status_code=429, detail="Too Many Requests")
            hits.append(now)
            store[key] = hits
            request.app.state._rl_store = store
            return

        if getattr(request.app.state, "rate_limit_enabled", None) is False:
            return

        try:
            from fastapi_limiter.depends import RateLimiter
        except ImportError:
            return

        async def _identifier(req: Request) -> str:
            return _client_key(req)

        try:
            await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
        except HTTPException:
            raise
        except Exception as e:
            # Redis HS: pas de 429 en prod
            logger.warning("rate_limit indisponible: %s", e)
    return _dep

def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    try:
        from fastapi_limiter import FastAPILimiter
        ready = getattr(FastAPILimiter, "redis", None) is not None
    except ImportError:
        ready = False
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": ready,
        "backend": "redis" if ready else None,
    }
