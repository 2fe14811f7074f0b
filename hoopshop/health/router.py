from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from hoopshop.health.service import health_supabase_info
from hoopshop.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/api/v1/health", tags=["Health"])

@router.get("")
async def health_root(request: Request):
    return {"ok": True, "rate_limit": rate_limit_health_info(request)}

@router.get("/supabase")
async def health_supabase():
    return JSONResponse(await health_supabase_info())
