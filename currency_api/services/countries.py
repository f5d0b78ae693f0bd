from __future__ import annotations

"""Country directory client (REST Countries v3.1).

Only the fields the converter consumes are requested: name and currencies.
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError
from starlette import status

from currency_api.core.errors import CountryNotFound, ExternalApiError
from currency_api.models.currency import CountryInfo
from currency_api.services.http_client import make_async_client, read_json, send_get

logger = logging.getLogger("currency_api.countries")

_COUNTRY_LIST = TypeAdapter(List[CountryInfo])
_FIELDS = {"fields": "name,currencies"}


class CountryDirectory(ABC):
    @abstractmethod
    async def get_country_info(self, name: str) -> CountryInfo:
        """Raises CountryNotFound, ExternalApiError or ServiceUnavailable."""
        raise NotImplementedError

    @abstractmethod
    async def list_countries(self) -> List[CountryInfo]:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class RestCountriesClient(CountryDirectory):
    service = "REST Countries API"

    def __init__(
        self,
        *,
        base_url: str = "https://restcountries.com/v3.1",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or make_async_client(timeout=timeout)

    async def get_country_info(self, name: str) -> CountryInfo:
        url = f"{self._base_url}/name/{quote(name, safe='')}"
        logger.debug("fetching country info for: %s", name)
        response = await send_get(self._client, url, service=self.service, params=_FIELDS)

        if response.status_code == status.HTTP_404_NOT_FOUND:
            logger.debug("country not found: %s", name)
            raise CountryNotFound(name)
        if response.status_code != status.HTTP_200_OK:
            logger.error(
                "REST Countries API error: %s for country: %s", response.status_code, name
            )
            raise ExternalApiError(
                f"REST Countries API returned status: {response.status_code}"
            )

        countries = self._parse(response)
        if not countries:
            raise CountryNotFound(name)
        # Partial-name search can return several; prefer an exact common-name match
        for country in countries:
            if country.name.common.casefold() == name.casefold():
                return country
        return countries[0]

    async def list_countries(self) -> List[CountryInfo]:
        url = f"{self._base_url}/all"
        logger.info("fetching country data from REST Countries API")
        response = await send_get(self._client, url, service=self.service, params=_FIELDS)
        if response.status_code != status.HTTP_200_OK:
            raise ExternalApiError(
                f"REST Countries API returned status: {response.status_code}"
            )
        return self._parse(response)

    def _parse(self, response: httpx.Response) -> List[CountryInfo]:
        payload = read_json(response, service=self.service)
        try:
            return _COUNTRY_LIST.validate_python(payload)
        except ValidationError as e:
            logger.error("failed to parse REST Countries API response: %s", e)
            raise ExternalApiError(f"Failed to parse country data: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
