"""
Middlewares transverses de l'application.
- register_basic_middlewares: session (panier invité), CORS, TrustedHost et confiance en X-Forwarded-*.
- register_security_middleware: en-têtes de sécurité et protection CSRF (cookie + header)
  pour les requêtes mutatives authentifiées par cookie.
Notes:
- Le webhook Stripe est exempté du CSRF: il est authentifié par sa signature.
- Les clients Bearer n'envoient pas le cookie de session: pas de CSRF possible, pas de contrôle.
"""
import secrets

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from hoopshop.config import ALLOWED_HOSTS, COOKIE_SECURE, CORS_ORIGINS, SESSION_SECRET_KEY
from hoopshop.utils.security import COOKIE_NAME

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_EXEMPT_PATHS = {
    "/api/v1/webhooks/stripe",
}

def register_basic_middlewares(app: FastAPI) -> None:
    """
    Ajoute les middlewares « de base »:
    - SessionMiddleware: cookie signé (itsdangerous) qui porte le panier invité et le drapeau mode local.
    - CORSMiddleware: autorise les origines définies (dev/prod).
    - TrustedHostMiddleware: limite les hôtes acceptés (défense host header).
    - ProxyHeadersMiddleware: fait confiance aux en-têtes du proxy (x-forwarded-*).
    """
    app.add_middleware(
        SessionMiddleware,
        secret_key=SESSION_SECRET_KEY,
        https_only=COOKIE_SECURE,
        same_site="lax",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=ALLOWED_HOSTS + ["*"] if "*" in CORS_ORIGINS else ALLOWED_HOSTS,
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

def register_security_middleware(app: FastAPI) -> None:
    """
    Middleware de sécurité:
    - CSRF: vérifie X-CSRF-Token contre le cookie csrf_token sur requêtes mutatives
      portant le cookie d'authentification. Exemption: webhook Stripe.
    - En-têtes: X-Frame-Options, X-Content-Type-Options, Referrer-Policy, HSTS (si secure).
    - Dépose un cookie CSRF si manquant (httponly=False pour que le front lise la valeur).
    """
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        method = request.method.upper()
        path = request.url.path
        has_session = bool(request.cookies.get(COOKIE_NAME))
        is_state_changing = method in ("POST", "PUT", "PATCH", "DELETE")
        csrf_cookie = request.cookies.get(CSRF_COOKIE_NAME)

        if is_state_changing and has_session and path not in CSRF_EXEMPT_PATHS:
            header_token = request.headers.get(CSRF_HEADER_NAME, "")
            if not csrf_cookie or not header_token or not secrets.compare_digest(header_token, csrf_cookie):
                return JSONResponse(status_code=403, content={"detail": "CSRF verification failed", "code": "CsrfFailed"})

        response = await call_next(request)
        if "X-Frame-Options" not in response.headers:
            response.headers["X-Frame-Options"] = "DENY"
        if "X-Content-Type-Options" not in response.headers:
            response.headers["X-Content-Type-Options"] = "nosniff"
        if "Referrer-Policy" not in response.headers:
            response.headers["Referrer-Policy"] = "no-referrer"
        if COOKIE_SECURE and "Strict-Transport-Security" not in response.headers:
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains; preload"

        if not csrf_cookie:
            response.set_cookie(
                key=CSRF_COOKIE_NAME,
                value=secrets.token_urlsafe(32),
                httponly=False,
                secure=COOKIE_SECURE,
                samesite="Lax",
                max_age=60 * 60,
                path="/",
            )
        return response
