# backend/enrichment.py
import asyncio
import logging
from typing import Optional

from comparison import parse_rating, parse_year
from models import ComparisonRecord, WatchlistEntry
from omdb import lookup_many
from schemas import WatchlistOut, as_utc

logger = logging.getLogger(__name__)

MIN_RESOLVED_PER_COMPARISON = 2

# campo de la respuesta -> clave de ordenación (None = sin valor, siempre al final)
SORT_KEYS = {
    "dateAdded": lambda m: m.get("dateAdded"),
    "title": lambda m: m.get("title"),
    "year": lambda m: parse_year(m.get("year")),
    "imdbRating": lambda m: parse_rating(m.get("imdbRating")),
    "myRating": lambda m: m.get("myRating"),
}
DEFAULT_SORT = "dateAdded"


def enrich_entry(row: WatchlistEntry, record: Optional[dict]) -> dict:
    d = record or {}
    return {
        **WatchlistOut.from_entry(row).model_dump(),
        "title": d.get("Title"),
        "year": d.get("Year"),
        "poster": d.get("Poster"),
        "type": d.get("Type"),
        "plot": d.get("Plot"),
        "director": d.get("Director"),
        "imdbRating": d.get("imdbRating"),
        "genre": d.get("Genre"),
        "runtime": d.get("Runtime"),
    }


def detail_entry(row: WatchlistEntry, record: Optional[dict]) -> dict:
    d = record or {}
    out = enrich_entry(row, record)
    out.update({
        "rated": d.get("Rated"),
        "actors": d.get("Actors"),
    })
    return out


def sort_movies(items: list[dict], sort: Optional[str] = None, order: Optional[str] = None) -> list[dict]:
    """
    Ordena por uno de SORT_KEYS (desconocido -> dateAdded), desc por defecto.
    Los valores vacíos van al final en ambas direcciones; la ordenación es estable.
    """
    key = SORT_KEYS.get(sort or DEFAULT_SORT, SORT_KEYS[DEFAULT_SORT])
    present = [m for m in items if key(m) is not None]
    absent = [m for m in items if key(m) is None]
    present.sort(key=key, reverse=(order != "asc"))
    return present + absent


def filter_by_type(items: list[dict], type_filter: Optional[str]) -> list[dict]:
    if not type_filter:
        return items
    return [m for m in items if m.get("type") == type_filter]


class WatchlistEnricher:
    """Cruza filas de la watchlist con datos frescos de OMDb (sin caché)."""

    def __init__(self, client):
        self.client = client

    async def _records(self, rows: list[WatchlistEntry]) -> list[Optional[dict]]:
        results = await lookup_many(self.client, [r.imdb_id for r in rows])
        # todas las peticiones terminan; si alguna falló, falla la lista entera
        failure = next((res for res in results if isinstance(res, BaseException)), None)
        if failure is not None:
            raise failure
        records = []
        for row, res in zip(rows, results):
            if not res.found:
                logger.warning("OMDb has no record for watchlist entry %s", row.imdb_id)
            records.append(res.record)
        return records

    async def enrich(self, rows: list[WatchlistEntry]) -> list[dict]:
        if not rows:
            return []
        records = await self._records(rows)
        return [enrich_entry(row, rec) for row, rec in zip(rows, records)]

    async def enrich_detail(self, row: WatchlistEntry) -> dict:
        (record,) = await self._records([row])
        return detail_entry(row, record)

    async def list_view(self, rows: list[WatchlistEntry], sort: Optional[str] = None,
                        order: Optional[str] = None, type_filter: Optional[str] = None) -> list[dict]:
        items = await self.enrich(rows)
        return sort_movies(filter_by_type(items, type_filter), sort, order)


async def _resolve_comparison(client, record: ComparisonRecord) -> Optional[dict]:
    imdb_ids = list(record.imdb_ids or [])
    results = await lookup_many(client, imdb_ids)
    movies = []
    for imdb_id, res in zip(imdb_ids, results):
        # aquí un fallo solo quita esa película, no la respuesta entera
        if isinstance(res, BaseException):
            logger.warning("OMDb error for id %s in comparison %s: %s", imdb_id, record.id, res)
            continue
        if not res.found:
            continue
        m = res.record
        movies.append({
            "imdbID": m.get("imdbID") or imdb_id,
            "Title": m.get("Title"),
            "Poster": m.get("Poster"),
            "imdbRating": m.get("imdbRating"),
        })

    if len(movies) < MIN_RESOLVED_PER_COMPARISON:
        logger.debug("Skipping comparison %s: only %d movies resolved", record.id, len(movies))
        return None
    return {
        "id": record.id,
        "createdAt": as_utc(record.created_at),
        "movies": movies,
        "movieCount": len(movies),
    }


async def recent_comparisons(client, records: list[ComparisonRecord]) -> list[dict]:
    resolved = await asyncio.gather(*(_resolve_comparison(client, r) for r in records))
    return [r for r in resolved if r is not None]
