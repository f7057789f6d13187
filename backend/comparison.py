# backend/comparison.py
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Optional

import numpy as np

from errors import MoviesNotFound
from omdb import lookup_many
from stores import ComparisonStore
from validation import validate_comparison_request

logger = logging.getLogger(__name__)

SUMMARY_FIELDS = ("Title", "imdbID", "imdbRating", "Year", "Runtime", "Genre", "Metascore", "BoxOffice")

_LEADING_INT = re.compile(r"\s*(\d+)")


# ---------- Parsers de campos OMDb ("N/A" y basura -> None, nunca 0) ----------

def parse_rating(value: Any) -> Optional[float]:
    if value is None or value == "N/A":
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(v) else v


def parse_year(value: Any) -> Optional[int]:
    # "2008", "2010–2014", "2019–"
    m = _LEADING_INT.match(str(value)) if value is not None else None
    return int(m.group(1)) if m else None


def parse_runtime(value: Any) -> Optional[int]:
    # "142 min"
    if not value or value == "N/A":
        return None
    m = _LEADING_INT.match(str(value))
    return int(m.group(1)) if m else None


def parse_money(value: Any) -> Optional[int]:
    # "$1,234,567"
    if not value or value == "N/A":
        return None
    digits = re.sub(r"[$€£,\s]", "", str(value))
    return int(digits) if digits.isdigit() else None


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _mean(values: list) -> float:
    # fsum es exacta: el resultado no depende del orden de entrada
    return math.fsum(values) / len(values)


# ---------- Métricas ----------

def rating_stats(movies: list[dict]) -> dict:
    rated = [(m, parse_rating(m.get("imdbRating"))) for m in movies]
    rated = [(m, r) for m, r in rated if r is not None]
    if not rated:
        return {"highest": None, "lowest": None, "average": None, "range": None}

    values = np.array([r for _, r in rated])
    # argmax/argmin devuelven la primera aparición en caso de empate
    highest = rated[int(np.argmax(values))][0]
    lowest = rated[int(np.argmin(values))][0]
    return {
        "highest": highest,
        "lowest": lowest,
        "average": f"{_mean(values.tolist()):.2f}",
        "range": f"{float(values.max() - values.min()):.1f}",
    }


def year_stats(movies: list[dict]) -> dict:
    years = [y for y in (parse_year(m.get("Year")) for m in movies) if y is not None]
    if not years:
        return {"oldest": None, "newest": None, "span": None}
    oldest, newest = min(years), max(years)
    return {"oldest": oldest, "newest": newest, "span": f"{newest - oldest} years"}


def runtime_stats(movies: list[dict]) -> dict:
    runtimes = [r for r in (parse_runtime(m.get("Runtime")) for m in movies) if r is not None]
    if not runtimes:
        return {"average": None}
    return {"average": f"{_round_half_up(_mean(runtimes))} min"}


def box_office_stats(movies: list[dict]) -> dict:
    amounts = [a for a in (parse_money(m.get("BoxOffice")) for m in movies) if a is not None]
    if not amounts:
        return {"total": None, "average": None}
    return {
        "total": f"${sum(amounts):,}",
        "average": f"${_round_half_up(_mean(amounts)):,}",
    }


def compute_metrics(movies: list[dict]) -> dict:
    return {
        "ratings": rating_stats(movies),
        "releaseYears": year_stats(movies),
        "runtime": runtime_stats(movies),
        "boxOffice": box_office_stats(movies),
    }


def summarize(movie: dict) -> dict:
    return {k: movie.get(k) for k in SUMMARY_FIELDS}


# ---------- Motor ----------

class ComparisonEngine:
    """
    validar -> pedir las N películas en paralelo -> métricas -> guardar -> responder.
    Lo único que se persiste es la lista de IDs, y solo si todas las peticiones salieron bien.
    """

    def __init__(self, client, store: ComparisonStore):
        self.client = client
        self.store = store

    async def compare(self, imdb_ids: Any) -> dict:
        imdb_ids = validate_comparison_request(imdb_ids)

        results = await lookup_many(self.client, imdb_ids)

        # un fallo del proveedor gana a "no encontrado": la lista de ausentes estaría incompleta
        for res in results:
            if isinstance(res, BaseException):
                raise res

        missing = [imdb_id for imdb_id, res in zip(imdb_ids, results) if not res.found]
        if missing:
            raise MoviesNotFound(missing)

        movies = [res.record for res in results]
        comparison = compute_metrics(movies)

        record = self.store.append(imdb_ids)
        logger.info("Comparison %s stored for %s", record.id, imdb_ids)

        return {
            "movies": [summarize(m) for m in movies],
            "comparison": comparison,
            "comparedAt": datetime.now(timezone.utc),
            "movieCount": len(movies),
        }
