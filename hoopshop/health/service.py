from urllib.parse import urlparse
import asyncio
import socket

import hoopshop.infra.supabase_client as supabase_client
from hoopshop.config import SUPABASE_URL

HEALTH_TABLES = ["products", "user_carts", "checkout_intents", "orders", "order_items", "user_profiles"]

async def _check_table(client, name: str):
    try:
        res = await client.table(name).select("*").limit(1).execute()
        cnt = len(res.data or [])
        return {"ok": True, "rows": cnt}
    except Exception as e:
        return {"ok": False, "error": str(e)}

async def health_supabase_info():
    effective_url = SUPABASE_URL
    parsed = urlparse(effective_url) if effective_url else None
    hostname = parsed.hostname if parsed else None
    dns_ok = None
    dns_error = None
    if hostname:
        try:
            await asyncio.get_running_loop().getaddrinfo(hostname, 443)
            dns_ok = True
        except (OSError, socket.gaierror) as e:
            dns_ok = False
            dns_error = str(e)

    info = {
        "supabase_url": effective_url,
        "hostname": hostname,
        "dns_ok": dns_ok,
        "dns_error": dns_error,
        "connect_ok": False,
        "error": None,
        "tables": {}
    }
    try:
        client = await supabase_client.get_service_supabase()
        for t in HEALTH_TABLES:
            info["tables"][t] = await _check_table(client, t)
        info["connect_ok"] = True
    except Exception as e:
        info["error"] = str(e)
    return info
