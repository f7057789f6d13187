from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


def as_utc(value):
	# SQLite devuelve los datetime sin zona: se guardan siempre en UTC
	if value is not None and value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value


# ---------- Entradas (ya validadas por validation.py) ----------

class WatchlistCandidate(BaseModel):
	imdbId: str
	myRating: Optional[int] = None
	watched: bool = False


class WatchlistPatch(BaseModel):
	myRating: Optional[int] = None
	watched: Optional[bool] = None


# ---------- Watchlist ----------

class WatchlistOut(BaseModel):
	id: int
	imdbId: str
	myRating: Optional[int] = None
	watched: bool
	dateAdded: datetime

	@classmethod
	def from_entry(cls, row):
		return cls(
			id=row.id,
			imdbId=row.imdb_id,
			myRating=row.my_rating,
			watched=bool(row.watched),
			dateAdded=as_utc(row.created_at),
		)


class WatchlistUpdated(WatchlistOut):
	lastUpdated: datetime


class EnrichedMovie(WatchlistOut):
	title: Optional[str] = None
	year: Optional[str] = None
	poster: Optional[str] = None
	type: Optional[str] = None
	plot: Optional[str] = None
	director: Optional[str] = None
	imdbRating: Optional[str] = None
	genre: Optional[str] = None
	runtime: Optional[str] = None


class WatchlistDetail(WatchlistOut):
	title: Optional[str] = None
	year: Optional[str] = None
	rated: Optional[str] = None
	runtime: Optional[str] = None
	genre: Optional[str] = None
	director: Optional[str] = None
	actors: Optional[str] = None
	plot: Optional[str] = None
	imdbRating: Optional[str] = None
	type: Optional[str] = None


# ---------- Búsqueda ----------

class SearchItem(BaseModel):
	imdbID: str
	Title: Optional[str] = None
	Year: Optional[str] = None
	Type: Optional[str] = None
	Poster: Optional[str] = None
	isInWatchlist: bool = False


class SearchResponse(BaseModel):
	Response: str = "True"
	Search: List[SearchItem]


# ---------- Comparación ----------

class MovieSummary(BaseModel):
	Title: Optional[str] = None
	imdbID: str
	imdbRating: Optional[str] = None
	Year: Optional[str] = None
	Runtime: Optional[str] = None
	Genre: Optional[str] = None
	Metascore: Optional[str] = None
	BoxOffice: Optional[str] = None


class RatingStats(BaseModel):
	highest: Optional[Dict[str, Any]] = None
	lowest: Optional[Dict[str, Any]] = None
	average: Optional[str] = None
	range: Optional[str] = None


class YearStats(BaseModel):
	oldest: Optional[int] = None
	newest: Optional[int] = None
	span: Optional[str] = None


class RuntimeStats(BaseModel):
	average: Optional[str] = None


class BoxOfficeStats(BaseModel):
	total: Optional[str] = None
	average: Optional[str] = None


class ComparisonStats(BaseModel):
	ratings: RatingStats
	releaseYears: YearStats
	runtime: RuntimeStats
	boxOffice: BoxOfficeStats


class CompareResponse(BaseModel):
	movies: List[MovieSummary]
	comparison: ComparisonStats
	comparedAt: datetime
	movieCount: int


class RecentMovie(BaseModel):
	imdbID: str
	Title: Optional[str] = None
	Poster: Optional[str] = None
	imdbRating: Optional[str] = None


class RecentComparison(BaseModel):
	id: int
	createdAt: datetime
	movies: List[RecentMovie]
	movieCount: int


class RecentComparisonsResponse(BaseModel):
	comparisons: List[RecentComparison]
