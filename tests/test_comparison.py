from __future__ import annotations

import asyncio
import itertools

import pytest

from comparison import (
    ComparisonEngine,
    box_office_stats,
    compute_metrics,
    parse_money,
    parse_rating,
    parse_runtime,
    parse_year,
    rating_stats,
    runtime_stats,
    year_stats,
)
from conftest import DARK_KNIGHT, INCEPTION, MATRIX, BarrierOmdbClient, FakeOmdbClient, make_movie
from errors import DuplicateIds, ExternalServiceError, MoviesNotFound, TooFew
from stores import ComparisonStore


def _movies(ratings=(), years=(), runtimes=()):
    n = max(len(ratings), len(years), len(runtimes))
    out = []
    for i in range(n):
        out.append(make_movie(
            f"tt000000{i}",
            f"Movie {i}",
            years[i] if i < len(years) else "N/A",
            ratings[i] if i < len(ratings) else "N/A",
            runtimes[i] if i < len(runtimes) else "N/A",
        ))
    return out


class TestParsers:
    def test_rating(self):
        assert parse_rating("8.7") == 8.7
        assert parse_rating("N/A") is None
        assert parse_rating(None) is None
        assert parse_rating("nan") is None

    def test_year(self):
        assert parse_year("1999") == 1999
        assert parse_year("2008–2013") == 2008
        assert parse_year("N/A") is None

    def test_runtime(self):
        assert parse_runtime("142 min") == 142
        assert parse_runtime("N/A") is None
        assert parse_runtime(None) is None
        assert parse_runtime("unknown") is None

    def test_money(self):
        assert parse_money("$534,987,076") == 534987076
        assert parse_money("N/A") is None
        assert parse_money("unknown") is None


class TestMetrics:
    def test_rating_average_and_range(self):
        stats = rating_stats(_movies(ratings=["7.5", "8.0", "9.0"]))
        assert stats["average"] == "8.17"
        assert stats["range"] == "1.5"
        assert stats["highest"]["imdbRating"] == "9.0"
        assert stats["lowest"]["imdbRating"] == "7.5"

    def test_rating_average_is_order_independent(self):
        ratings = ["7.5", "8.0", "9.0", "6.1"]
        averages = {
            rating_stats(_movies(ratings=list(p)))["average"]
            for p in itertools.permutations(ratings)
        }
        assert averages == {"7.65"}

    def test_ties_keep_first_occurrence(self):
        movies = _movies(ratings=["9.0", "7.0", "9.0", "7.0"])
        stats = rating_stats(movies)
        assert stats["highest"] is movies[0]
        assert stats["lowest"] is movies[1]

    def test_unparseable_ratings_are_skipped(self):
        stats = rating_stats(_movies(ratings=["8.0", "N/A", "6.0"]))
        assert stats["average"] == "7.00"
        assert stats["range"] == "2.0"

    def test_no_ratings(self):
        assert rating_stats(_movies(ratings=["N/A", "N/A"]))["average"] is None

    @pytest.mark.parametrize("years", list(itertools.permutations(["1999", "2008", "2010"])))
    def test_year_span_is_order_independent(self, years):
        assert year_stats(_movies(years=list(years))) == {"oldest": 1999, "newest": 2010, "span": "11 years"}

    def test_runtime_average_excludes_unparseable(self):
        assert runtime_stats(_movies(runtimes=["142 min", "N/A", "116 min"])) == {"average": "129 min"}

    def test_runtime_average_rounds_half_up(self):
        assert runtime_stats(_movies(runtimes=["100 min", "101 min"])) == {"average": "101 min"}

    def test_runtime_average_absent_when_nothing_parses(self):
        assert runtime_stats(_movies(runtimes=["N/A", "N/A"])) == {"average": None}

    def test_box_office(self):
        stats = box_office_stats([MATRIX, DARK_KNIGHT, make_movie("tt0000001", "X", "2000", "5.0")])
        assert stats == {"total": "$707,064,004", "average": "$353,532,002"}

    def test_compute_metrics_shape(self):
        metrics = compute_metrics([MATRIX, DARK_KNIGHT, INCEPTION])
        assert set(metrics) == {"ratings", "releaseYears", "runtime", "boxOffice"}
        assert metrics["ratings"]["highest"]["imdbID"] == "tt0468569"
        assert metrics["ratings"]["lowest"]["imdbID"] == "tt0133093"
        assert metrics["releaseYears"]["span"] == "11 years"
        assert metrics["runtime"]["average"] == "145 min"


class TestComparisonEngine:
    def _engine(self, session, client):
        return ComparisonEngine(client, ComparisonStore(session))

    def test_successful_comparison_is_persisted(self, session):
        fake = FakeOmdbClient()
        store = ComparisonStore(session)
        result = asyncio.run(ComparisonEngine(fake, store).compare(["tt0133093", "tt0468569", "tt1375666"]))

        assert result["movieCount"] == 3
        assert [m["imdbID"] for m in result["movies"]] == ["tt0133093", "tt0468569", "tt1375666"]
        assert set(result["movies"][0]) == {
            "Title", "imdbID", "imdbRating", "Year", "Runtime", "Genre", "Metascore", "BoxOffice",
        }
        assert result["comparison"]["ratings"]["average"] == "8.83"
        assert result["comparedAt"] is not None

        records = store.recent()
        assert len(records) == 1
        assert records[0].imdb_ids == ["tt0133093", "tt0468569", "tt1375666"]

    def test_not_found_reports_every_missing_id_and_persists_nothing(self, session):
        fake = FakeOmdbClient()
        store = ComparisonStore(session)
        before = store.count()
        with pytest.raises(MoviesNotFound) as exc:
            asyncio.run(ComparisonEngine(fake, store).compare(["tt0133093", "tt9999991", "tt9999992"]))
        assert exc.value.missing == ["tt9999991", "tt9999992"]
        assert exc.value.status_code == 404
        assert store.count() == before

    def test_service_failure_persists_nothing(self, session):
        fake = FakeOmdbClient(failing={"tt0468569"})
        store = ComparisonStore(session)
        with pytest.raises(ExternalServiceError):
            asyncio.run(ComparisonEngine(fake, store).compare(["tt0133093", "tt0468569"]))
        assert store.count() == 0

    def test_service_failure_wins_over_not_found(self, session):
        fake = FakeOmdbClient(failing={"tt0468569"})
        with pytest.raises(ExternalServiceError):
            asyncio.run(self._engine(session, fake).compare(["tt9999991", "tt0468569"]))

    def test_invalid_request_makes_no_external_calls(self, session):
        fake = FakeOmdbClient()
        with pytest.raises(DuplicateIds):
            asyncio.run(self._engine(session, fake).compare(["tt0133093", "tt0133093"]))
        with pytest.raises(TooFew):
            asyncio.run(self._engine(session, fake).compare(["tt0133093"]))
        assert fake.calls == []
        assert ComparisonStore(session).count() == 0

    def test_fetches_every_id(self, session):
        fake = FakeOmdbClient()
        asyncio.run(self._engine(session, fake).compare(["tt0133093", "tt0468569", "tt1375666"]))
        assert sorted(fake.calls) == ["tt0133093", "tt0468569", "tt1375666"]

    def test_lookups_run_concurrently(self, session):
        ids = ["tt0133093", "tt0468569", "tt1375666"]
        fake = BarrierOmdbClient(len(ids))
        result = asyncio.run(self._engine(session, fake).compare(ids))
        assert result["movieCount"] == 3
        assert not fake.barrier.broken
