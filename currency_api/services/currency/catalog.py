from __future__ import annotations

"""Per-country currency catalog.

Holds one CountryCurrencyConfig per country (keyed by common name), built
from the country directory and resolved with the primary-currency
heuristics. refresh() rebuilds the whole table and swaps it in; entries are
never merged. An optional JSON snapshot lets a restart serve the previous
table before the first refresh completes.
"""
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, TYPE_CHECKING

from currency_api.core.errors import ServiceError
from currency_api.models.currency import (
    CatalogSnapshot,
    CountryCurrencyConfig,
    CountryInfo,
    CurrencyInfo,
)
from .resolver import build_usage_patterns, resolve_country

if TYPE_CHECKING:  # pragma: no cover
    from currency_api.services.countries import CountryDirectory
    from currency_api.services.rates.base import SupportsExchangeRate

logger = logging.getLogger("currency_api.catalog")

REFERENCE_BASE = "USD"


def build_catalog(
    countries: Iterable[CountryInfo],
    reference_rates: Optional[Mapping[str, float]] = None,
) -> Dict[str, CountryCurrencyConfig]:
    """Resolve every country that lists at least one currency."""
    countries = list(countries)
    usage = build_usage_patterns(countries)
    configs: Dict[str, CountryCurrencyConfig] = {}
    for country in countries:
        if not country.currencies:
            continue
        config = resolve_country(country.currencies, usage, reference_rates)
        logger.debug(
            "processing %s: %d currencies, primary: %s, multi: %s",
            country.name.common,
            len(config.currencies),
            config.primary_currency,
            config.is_multi_currency,
        )
        configs[country.name.common] = config
    return configs


class CurrencyCatalog:
    def __init__(
        self,
        directory: Optional["CountryDirectory"] = None,
        rate_provider: Optional["SupportsExchangeRate"] = None,
    ):
        self._directory = directory
        self._rate_provider = rate_provider
        self._data: Dict[str, CountryCurrencyConfig] = {}
        self._last_checked: Optional[datetime] = None
        self._last_modified: Optional[datetime] = None
        self._lock = threading.Lock()

    # Accessors -------------------------------------------------
    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    @property
    def last_checked(self) -> Optional[datetime]:
        return self._last_checked

    @property
    def last_modified(self) -> Optional[datetime]:
        return self._last_modified

    def get_config(self, country: str) -> Optional[CountryCurrencyConfig]:
        with self._lock:
            return self._data.get(country)

    def get_primary_currency(self, country: str) -> Optional[str]:
        config = self.get_config(country)
        return config.primary_currency if config else None

    def is_multi_currency(self, country: str) -> bool:
        config = self.get_config(country)
        return config.is_multi_currency if config else False

    def get_available_currencies(self, country: str) -> Optional[Dict[str, CurrencyInfo]]:
        config = self.get_config(country)
        return dict(config.currencies) if config else None

    def countries(self) -> List[str]:
        with self._lock:
            return list(self._data)

    # Updates ---------------------------------------------------
    def replace(
        self,
        configs: Mapping[str, CountryCurrencyConfig],
        *,
        checked_at: Optional[datetime] = None,
    ) -> None:
        now = checked_at or datetime.now(timezone.utc)
        new_data = dict(configs)
        with self._lock:
            self._data = new_data
            self._last_checked = now
            self._last_modified = now
        logger.info("currency catalog replaced with %d countries", len(new_data))

    async def refresh(self) -> int:
        """Rebuild from the country directory. Returns the number of countries.

        Reference rates only sharpen the primary pick for countries without
        USD/EUR; if they cannot be fetched the usage-based rule is used.
        """
        if self._directory is None:
            raise RuntimeError("catalog has no country directory to refresh from")
        countries = await self._directory.list_countries()
        reference_rates: Optional[Dict[str, float]] = None
        if self._rate_provider is not None:
            try:
                rates = await self._rate_provider.get_exchange_rate(REFERENCE_BASE)
                reference_rates = dict(rates.conversion_rates)
                logger.debug("retrieved %d reference rates", len(reference_rates))
            except ServiceError as e:
                logger.warning("reference rates unavailable, using usage only: %s", e)
        configs = build_catalog(countries, reference_rates)
        self.replace(configs)
        return len(configs)

    def is_stale(self, max_age_hours: float, *, now: Optional[datetime] = None) -> bool:
        if self._last_checked is None:
            return True
        now = now or datetime.now(timezone.utc)
        return (now - self._last_checked).total_seconds() >= max_age_hours * 3600

    # Snapshot --------------------------------------------------
    def to_snapshot(self) -> CatalogSnapshot:
        now = datetime.now(timezone.utc)
        with self._lock:
            return CatalogSnapshot(
                last_checked=self._last_checked or now,
                last_modified=self._last_modified or now,
                data=dict(self._data),
            )

    def save_snapshot(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(self.to_snapshot().model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(path)
        logger.debug("saved currency catalog to %s", path)

    def load_snapshot(self, path: Path) -> bool:
        """Load a saved catalog. Returns False when the file is absent or unreadable."""
        path = Path(path)
        if not path.is_file():
            return False
        try:
            snapshot = CatalogSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("failed to parse currency catalog file %s: %s", path, e)
            return False
        with self._lock:
            self._data = dict(snapshot.data)
            self._last_checked = snapshot.last_checked
            self._last_modified = snapshot.last_modified
        logger.info("loaded currency catalog from file with %d entries", len(snapshot.data))
        return True
