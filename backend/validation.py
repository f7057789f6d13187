# backend/validation.py
"""
Reglas de validación puras. Todo lo que acepta un IMDb ID pasa por aquí
antes de tocar OMDb o la base de datos.
"""
import re
from typing import Any

from errors import (
    DuplicateIds,
    EmptyPatch,
    ImmutableField,
    InvalidRating,
    InvalidType,
    MalformedId,
    MissingField,
    TooFew,
    TooMany,
    ValidationError,
)
from schemas import WatchlistCandidate, WatchlistPatch

IMDB_ID_RE = re.compile(r"tt[0-9]{7,8}")

MIN_COMPARE = 2
MAX_COMPARE = 5


def is_well_formed_id(value: Any) -> bool:
    return isinstance(value, str) and IMDB_ID_RE.fullmatch(value) is not None


def is_valid_rating(value: Any) -> bool:
    if value is None:
        return True
    # bool es subclase de int: True no es una nota
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    # notas enteras; 8.0 vale, 7.5 no
    if isinstance(value, float) and not value.is_integer():
        return False
    return 1 <= value <= 10


def _as_rating(value: Any):
    return None if value is None else int(value)


def require_well_formed_id(value: Any, message: str = "Invalid IMDb ID format") -> str:
    if not is_well_formed_id(value):
        raise MalformedId(message)
    return value


def validate_comparison_request(imdb_ids: Any) -> list[str]:
    """
    Valida la lista de IDs a comparar. El orden de los chequeos es parte del
    contrato: el primero que falla es el error que ve el cliente.
    """
    if imdb_ids is None:
        raise MissingField("imdbIds array is required")
    if not isinstance(imdb_ids, list):
        raise InvalidType("imdbIds must be an array")
    if len(imdb_ids) < MIN_COMPARE:
        raise TooFew(f"At least {MIN_COMPARE} movies required for comparison")
    if len(imdb_ids) > MAX_COMPARE:
        raise TooMany(f"Maximum {MAX_COMPARE} movies can be compared at once")

    # repr distingue 1 de True y admite elementos no hashables
    if len(set(map(repr, imdb_ids))) != len(imdb_ids):
        raise DuplicateIds("Duplicate IMDb IDs found. All movies must be unique")

    if not all(is_well_formed_id(i) for i in imdb_ids):
        raise MalformedId("All IMDb IDs must be valid format")
    return list(imdb_ids)


def _item_error(item: Any) -> dict | None:
    if not isinstance(item, dict) or not item.get("imdbId"):
        return {"field": "imdbId", "message": "imdbId is required"}
    if not is_well_formed_id(item["imdbId"]):
        return {"field": "imdbId", "message": "Invalid IMDb ID format"}
    if not is_valid_rating(item.get("myRating")):
        return {"field": "myRating", "message": "myRating must be an integer between 1 and 10"}
    watched = item.get("watched")
    if watched is not None and not isinstance(watched, bool):
        return {"field": "watched", "message": "watched must be a boolean"}
    return None


def validate_bulk_add_request(items: Any) -> list[WatchlistCandidate]:
    """
    Valida todos los elementos y acumula los errores con su índice.
    Si falla uno, se rechaza el lote entero.
    """
    if not isinstance(items, list):
        raise InvalidType("Request body must be an array")
    if not items:
        raise ValidationError("Request body must contain at least one movie")

    errors = []
    candidates = []
    seen = set()
    for index, item in enumerate(items):
        err = _item_error(item)
        if err is None and item["imdbId"] in seen:
            err = {"field": "imdbId", "message": "Duplicate imdbId in request"}
        if err:
            errors.append({**err, "index": index})
            continue
        seen.add(item["imdbId"])
        candidates.append(WatchlistCandidate(
            imdbId=item["imdbId"],
            myRating=_as_rating(item.get("myRating")),
            watched=bool(item.get("watched") or False),
        ))

    if errors:
        raise ValidationError("Validation failed", {"details": errors})
    return candidates


def validate_patch(body: Any) -> WatchlistPatch:
    if not isinstance(body, dict):
        raise InvalidType("Request body must be an object")
    if "imdbId" in body:
        raise ImmutableField("imdbId cannot be modified")
    if "myRating" not in body and "watched" not in body:
        raise EmptyPatch("Request must contain myRating or watched")
    if not is_valid_rating(body.get("myRating")):
        raise InvalidRating("myRating must be an integer between 1 and 10")
    watched = body.get("watched")
    if watched is not None and not isinstance(watched, bool):
        raise InvalidType("watched must be a boolean")
    return WatchlistPatch(myRating=_as_rating(body.get("myRating")), watched=watched)
