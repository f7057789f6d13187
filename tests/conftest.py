from __future__ import annotations

import threading

import pytest
from fastapi.testclient import TestClient

from app import app
from database import Database
from errors import ExternalServiceError
from omdb import LookupResult, SearchResult, get_omdb_client


def make_movie(imdb_id, title, year, rating, runtime="N/A", *, type="movie", box_office="N/A", **extra):
    """Registro con la forma que devuelve OMDb para ?i=<id>."""
    return {
        "Title": title,
        "Year": year,
        "Rated": "PG-13",
        "Runtime": runtime,
        "Genre": "Drama",
        "Director": "Someone",
        "Actors": "A, B",
        "Plot": f"Plot of {title}",
        "Poster": f"https://img.example/{imdb_id}.jpg",
        "Metascore": "80",
        "imdbRating": rating,
        "imdbID": imdb_id,
        "Type": type,
        "BoxOffice": box_office,
        "Response": "True",
        **extra,
    }


MATRIX = make_movie("tt0133093", "The Matrix", "1999", "8.7", "136 min", box_office="$172,076,928")
DARK_KNIGHT = make_movie("tt0468569", "The Dark Knight", "2008", "9.0", "152 min", box_office="$534,987,076")
INCEPTION = make_movie("tt1375666", "Inception", "2010", "8.8", "148 min", box_office="$292,587,330")
BREAKING_BAD = make_movie("tt0903747", "Breaking Bad", "2008–2013", "9.5", "49 min", type="series")

MOVIES = {m["imdbID"]: m for m in (MATRIX, DARK_KNIGHT, INCEPTION, BREAKING_BAD)}


class FakeOmdbClient:
    """Sustituto de OmdbClient: sirve registros en memoria y apunta cada llamada."""

    def __init__(self, records=None, failing=()):
        self.records = dict(records if records is not None else MOVIES)
        self.failing = set(failing)
        self.calls = []
        self._lock = threading.Lock()

    def get_by_id(self, imdb_id):
        with self._lock:
            self.calls.append(imdb_id)
        if imdb_id in self.failing:
            raise ExternalServiceError()
        record = self.records.get(imdb_id)
        return LookupResult(found=record is not None, record=record)

    def search(self, query, type=None, year=None, page=None):
        with self._lock:
            self.calls.append(("search", query, type, year, page))
        if "search" in self.failing:
            raise ExternalServiceError()
        items = [
            {k: r[k] for k in ("Title", "Year", "imdbID", "Type", "Poster")}
            for r in self.records.values()
            if query.lower() in r["Title"].lower() and (type is None or r["Type"] == type)
        ]
        return SearchResult(found=bool(items), items=items, total=len(items))


class BarrierOmdbClient(FakeOmdbClient):
    """Cada get_by_id espera a que lleguen las `parties` peticiones; en serie salta el timeout."""

    def __init__(self, parties, records=None, timeout=5):
        super().__init__(records)
        self.barrier = threading.Barrier(parties, timeout=timeout)

    def get_by_id(self, imdb_id):
        self.barrier.wait()
        return super().get_by_id(imdb_id)


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    s = database.session()
    yield s
    s.close()


@pytest.fixture
def fake_omdb():
    return FakeOmdbClient()


@pytest.fixture
def client(database, fake_omdb):
    """TestClient sobre una SQLite en memoria y un OMDb falso."""
    app.state.db = database
    app.dependency_overrides[get_omdb_client] = lambda: fake_omdb
    yield TestClient(app)
    app.dependency_overrides.clear()
