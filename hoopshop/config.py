"""
Configuration centrale de la boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe), cookies, CORS/hosts
- Expose les réglages du panier et du checkout (devise, timeouts)
"""
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)


def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _float_env(name: str, default: float) -> float:
    try:
        return float(_clean_env(os.getenv(name) or "") or default)
    except ValueError:
        return default

# Supabase: URL et clés (anon/service)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("NEXT_PUBLIC_SUPABASE_ANON_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Cookies / sessions
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
SESSION_SECRET_KEY = _clean_env(os.getenv("SESSION_SECRET_KEY") or "replace_me_with_a_long_random_secret")
CART_SESSION_KEY = "cart"
CART_LOCAL_ONLY_FLAG = "cart_local_only"

# CORS
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

# Stripe: STRIPE_MODE choisit les clés test (sandbox) ou live
STRIPE_MODE = _clean_env(os.getenv("STRIPE_MODE") or "sandbox").lower()
_HAS_LIVE_KEYS = bool(_clean_env(os.getenv("STRIPE_LIVE_SECRET_KEY") or ""))
STRIPE_SANDBOX = STRIPE_MODE in ("sandbox", "test") or not _HAS_LIVE_KEYS

if STRIPE_SANDBOX:
    STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_TEST_SECRET_KEY") or os.getenv("STRIPE_SECRET_KEY") or "")
    STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_TEST_WEBHOOK_SECRET") or os.getenv("STRIPE_WEBHOOK_SECRET") or "")
else:
    STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_LIVE_SECRET_KEY") or "")
    STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_LIVE_WEBHOOK_SECRET") or "")

# Checkout
CURRENCY = _clean_env(os.getenv("SHOP_CURRENCY") or "usd").lower()
DEFAULT_SHIPPING_COUNTRY = _clean_env(os.getenv("DEFAULT_SHIPPING_COUNTRY") or "US")

# Lookups opportunistes (profil / rôle) : au-delà, valeurs par défaut
PROFILE_LOOKUP_TIMEOUT_SECONDS = _float_env("PROFILE_LOOKUP_TIMEOUT_SECONDS", 3.0)
