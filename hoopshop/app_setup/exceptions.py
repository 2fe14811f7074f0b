"""
Gestionnaires d'exceptions de l'application.
- ShopError (et sous-classes): JSON {"detail", "code"} avec le statut porté par l'erreur.
- HTTPException: JSON {"detail"} (401/403 des dépendances d'authentification).
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from hoopshop.errors import ShopError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError):
        if exc.status_code >= 500:
            logger.warning("%s %s -> %s %s", request.method, request.url.path, exc.kind, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.kind})

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))
