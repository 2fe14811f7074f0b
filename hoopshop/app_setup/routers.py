"""
Registre central des routers (API v1, admin, webhooks, health).
"""
from fastapi import FastAPI
from hoopshop.cart import views as cart_views
from hoopshop.checkout import views as checkout_views
from hoopshop.orders import views as orders_views
from hoopshop.fulfillment import views as fulfillment_views
from hoopshop.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    """
    Agrège tous les routers de l'application.
    L'ordre n'a pas d'impact sauf conflits de chemins (évités par préfixes).
    """
    # API v1
    app.include_router(cart_views.router)
    app.include_router(checkout_views.router)
    app.include_router(orders_views.router)
    # Admin
    app.include_router(orders_views.admin_router)
    # Webhooks fournisseur
    app.include_router(fulfillment_views.router)
    # Health & monitoring
    app.include_router(health_router)
