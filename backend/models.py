from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String
from sqlalchemy.orm import validates

from database import Base
from errors import ImmutableField, MalformedId
from validation import is_well_formed_id


def _utcnow():
    return datetime.now(timezone.utc)


class WatchlistEntry(Base):
    __tablename__ = "watchlist"
    id = Column(Integer, primary_key=True, index=True)
    imdb_id = Column(String(16), nullable=False, unique=True, index=True)
    my_rating = Column(Integer, nullable=True)  # 1..10
    watched = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    @validates("imdb_id")
    def _check_imdb_id(self, key, value):
        if self.imdb_id is not None and value != self.imdb_id:
            raise ImmutableField("imdbId cannot be modified")
        if not is_well_formed_id(value):
            raise MalformedId("Invalid IMDb ID format")
        return value


class ComparisonRecord(Base):
    __tablename__ = "comparisons"
    id = Column(Integer, primary_key=True, index=True)
    imdb_ids = Column(JSON, nullable=False)  # lista ordenada, p.ej. ["tt0133093", "tt0468569"]
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_comparisons_recent", "created_at", "id"),
    )
