import asyncio
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Optional

import requests
from dotenv import load_dotenv

from errors import ExternalServiceError

load_dotenv()

OMDB_API_KEY = os.getenv("OMDB_API_KEY")
OMDB_BASE = os.getenv("OMDB_BASE_URL", "https://www.omdbapi.com/")
OMDB_TIMEOUT = float(os.getenv("OMDB_TIMEOUT", "10"))

logger = logging.getLogger(__name__)


@dataclass
class LookupResult:
    found: bool
    record: Optional[dict[str, Any]] = None


@dataclass
class SearchResult:
    found: bool
    items: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0


class OmdbClient:
    """
    Acceso mínimo a OMDb. "No encontrado" se devuelve como resultado
    (found=False); cualquier fallo de transporte o HTTP lanza ExternalServiceError.
    """

    def __init__(self, api_key: str | None = None, base_url: str = OMDB_BASE,
                 timeout: float = OMDB_TIMEOUT, session: requests.Session | None = None):
        self.api_key = api_key or OMDB_API_KEY
        if not self.api_key:
            raise RuntimeError("OMDB_API_KEY is not configured. Copy .env.example to .env and set your key.")
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, params: dict) -> dict:
        try:
            r = self.session.get(self.base_url, params={"apikey": self.api_key, **params}, timeout=self.timeout)
            r.raise_for_status()
            return r.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("OMDb request failed (%s): %s", params, exc)
            raise ExternalServiceError() from exc

    def get_by_id(self, imdb_id: str) -> LookupResult:
        data = self._get({"i": imdb_id})
        if data.get("Response") == "False":
            return LookupResult(found=False)
        return LookupResult(found=True, record=data)

    def search(self, query: str, type: str | None = None, year: int | None = None,
               page: int | None = None) -> SearchResult:
        params = {"s": query}
        if type:
            params["type"] = type
        if year is not None:
            params["y"] = year
        if page is not None:
            params["page"] = page
        data = self._get(params)
        if data.get("Response") == "False":
            return SearchResult(found=False)
        try:
            total = int(data.get("totalResults") or 0)
        except ValueError:
            total = 0
        return SearchResult(found=True, items=data.get("Search") or [], total=total)


async def lookup_many(client, imdb_ids: list[str]) -> list:
    """
    Lanza una petición por ID en paralelo y espera a todas.
    Cada posición es un LookupResult o la excepción que lanzó esa petición.
    """
    return await asyncio.gather(
        *(asyncio.to_thread(client.get_by_id, imdb_id) for imdb_id in imdb_ids),
        return_exceptions=True,
    )


@lru_cache
def get_omdb_client() -> OmdbClient:
    return OmdbClient()
