"""Background upkeep: cache sweeps and catalog refreshes.

Correctness never depends on this loop (cache reads check expiry lazily);
it only keeps memory bounded and the catalog current.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Iterable, Optional

from currency_api.core.errors import ServiceError
from currency_api.services.cache import Cache
from currency_api.services.currency.catalog import CurrencyCatalog

logger = logging.getLogger("currency_api.maintenance")


async def refresh_catalog(
    catalog: CurrencyCatalog, snapshot_path: Optional[Path] = None
) -> bool:
    """Refresh and optionally persist the catalog; False if the refresh failed."""
    logger.info("starting currency catalog refresh")
    try:
        count = await catalog.refresh()
    except ServiceError as e:
        logger.error("failed to update currency data: %s", e)
        return False
    if snapshot_path is not None:
        try:
            catalog.save_snapshot(snapshot_path)
        except OSError as e:
            logger.warning("failed to write catalog snapshot %s: %s", snapshot_path, e)
    logger.info("currency catalog refreshed with %d countries", count)
    return True


async def run_maintenance_once(
    caches: Iterable[Cache],
    catalog: CurrencyCatalog,
    *,
    catalog_max_age_hours: float,
    snapshot_path: Optional[Path] = None,
) -> None:
    for cache in caches:
        removed = cache.clear_expired()
        if removed:
            logger.debug("%s: swept %d expired entries", cache.name, removed)
    if catalog.is_stale(catalog_max_age_hours):
        await refresh_catalog(catalog, snapshot_path)


async def maintenance_loop(
    caches: Iterable[Cache],
    catalog: CurrencyCatalog,
    *,
    interval_seconds: float,
    catalog_max_age_hours: float,
    snapshot_path: Optional[Path] = None,
) -> None:
    caches = list(caches)
    while True:
        await asyncio.sleep(interval_seconds)
        logger.debug("running periodic cache cleanup")
        try:
            await run_maintenance_once(
                caches,
                catalog,
                catalog_max_age_hours=catalog_max_age_hours,
                snapshot_path=snapshot_path,
            )
        except Exception:
            # keep the loop alive; the next tick retries
            logger.exception("maintenance pass failed")
