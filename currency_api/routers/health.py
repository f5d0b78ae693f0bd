from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from currency_api.services.registry import Services, get_services

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness probe")
async def health(services: Services = Depends(get_services)):
    return {"status": "ok", "version": services.settings.version}


@router.get("/v1/cache/stats", summary="Cache, catalog and usage counters")
async def cache_stats(services: Services = Depends(get_services)):
    catalog = services.catalog
    return {
        "rate_cache": asdict(services.rate_cache.get_stats()),
        "country_cache": asdict(services.country_cache.get_stats()),
        "usage": asdict(services.usage.get_stats()),
        "catalog": {
            "countries": len(catalog),
            "last_checked": catalog.last_checked.isoformat() if catalog.last_checked else None,
        },
    }
