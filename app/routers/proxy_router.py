# routers/proxy_router.py

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.concurrency import run_in_threadpool

from core.rate_limiter import limit_param, limiter
from services.asset_proxy import AssetProxy, asset_proxy

router = APIRouter(prefix="/api", tags=["Asset Proxy"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
}


def get_asset_proxy() -> AssetProxy:
    return asset_proxy


@router.get("/proxy", summary="Proxy an allow-listed asset URL")
@limiter.limit(limit_param)
async def proxy_asset(
    request: Request,
    url: Optional[str] = Query(None),
    proxy: AssetProxy = Depends(get_asset_proxy)
) -> Response:
    body, content_type = await run_in_threadpool(proxy.fetch, url)
    return Response(
        content=body,
        media_type=content_type,
        headers={
            **CORS_HEADERS,
            "Cache-Control": "public, max-age=86400",
        },
    )


@router.options("/proxy", include_in_schema=False)
async def proxy_options() -> Response:
    return Response(
        status_code=200,
        headers={**CORS_HEADERS, "Access-Control-Allow-Headers": "Content-Type"},
    )
