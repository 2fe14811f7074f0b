"""
ASGI entrypoint: expose `app` pour les process managers / déploiements.

- En production, un process manager (uvicorn workers, gunicorn -k uvicorn.workers.UvicornWorker)
  importe `hoopshop.asgi:app`.
- Toute la configuration est centralisée dans hoopshop.app.create_app().
"""
from hoopshop.app import create_app

app = create_app()
