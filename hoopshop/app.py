# module hoopshop.app
from fastapi import FastAPI

from hoopshop.app_setup.exceptions import register_exception_handlers
from hoopshop.app_setup.lifespan import lifespan
from hoopshop.app_setup.middlewares import register_basic_middlewares, register_security_middleware
from hoopshop.app_setup.routers import register_routers


def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      1) middlewares de base: session, CORS, TrustedHost, ProxyHeaders
      2) middleware de sécurité: CSRF + en-têtes
      3) gestionnaires d'exceptions (ShopError -> JSON {detail, code})
      4) tous les routers (panier, checkout, commandes, admin, webhooks, health)
    """
    app = FastAPI(title="HoopShop API", lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
