# backend/stores.py
import logging
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import Conflict, NotFound, StorageError
from models import ComparisonRecord, WatchlistEntry
from schemas import WatchlistCandidate, WatchlistPatch

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10


def _conflict(imdb_ids: list[str]) -> Conflict:
    return Conflict("Conflict", {"details": [
        {"imdbId": i, "message": "Movie already in watchlist"} for i in imdb_ids
    ]})


def _storage_error(db: Session, exc: SQLAlchemyError) -> StorageError:
    db.rollback()
    logger.exception("Database error")
    orig = getattr(exc, "orig", None) or exc
    return StorageError(code=type(orig).__name__)


class WatchlistStore:
    def __init__(self, db: Session):
        self.db = db

    def existing_ids(self, imdb_ids: Iterable[str]) -> set[str]:
        imdb_ids = list(imdb_ids)
        if not imdb_ids:
            return set()
        try:
            rows = self.db.query(WatchlistEntry.imdb_id).filter(WatchlistEntry.imdb_id.in_(imdb_ids)).all()
        except SQLAlchemyError as exc:
            raise _storage_error(self.db, exc) from exc
        return {r.imdb_id for r in rows}

    def bulk_add(self, candidates: list[WatchlistCandidate]) -> list[WatchlistEntry]:
        """Todo o nada: si algún ID ya existe no se inserta ninguno."""
        imdb_ids = [c.imdbId for c in candidates]
        existing = self.existing_ids(imdb_ids)
        if existing:
            raise _conflict([i for i in imdb_ids if i in existing])

        rows = [
            WatchlistEntry(imdb_id=c.imdbId, my_rating=c.myRating, watched=c.watched)
            for c in candidates
        ]
        try:
            self.db.add_all(rows)
            self.db.commit()
        except IntegrityError as exc:
            # otra petición insertó el mismo ID entre la comprobación y el commit
            self.db.rollback()
            raced = self.existing_ids(imdb_ids)
            raise _conflict([i for i in imdb_ids if i in raced] or imdb_ids) from exc
        except SQLAlchemyError as exc:
            raise _storage_error(self.db, exc) from exc

        for r in rows:
            self.db.refresh(r)
        return rows

    def find(self, imdb_id: str) -> Optional[WatchlistEntry]:
        try:
            return self.db.query(WatchlistEntry).filter(WatchlistEntry.imdb_id == imdb_id).first()
        except SQLAlchemyError as exc:
            raise _storage_error(self.db, exc) from exc

    def get(self, imdb_id: str) -> WatchlistEntry:
        row = self.find(imdb_id)
        if row is None:
            raise NotFound("Movie not found in watchlist")
        return row

    def list(self, watched: Optional[bool] = None) -> list[WatchlistEntry]:
        q = self.db.query(WatchlistEntry)
        if watched is not None:
            q = q.filter(WatchlistEntry.watched == watched)
        try:
            return q.order_by(WatchlistEntry.id).all()
        except SQLAlchemyError as exc:
            raise _storage_error(self.db, exc) from exc

    def update(self, imdb_id: str, patch: WatchlistPatch) -> WatchlistEntry:
        row = self.get(imdb_id)
        # COALESCE: lo que no viene (o viene a null) se queda como estaba
        if patch.myRating is not None:
            row.my_rating = patch.myRating
        if patch.watched is not None:
            row.watched = patch.watched
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            raise _storage_error(self.db, exc) from exc
        self.db.refresh(row)
        return row

    def remove(self, imdb_id: str) -> None:
        row = self.get(imdb_id)
        try:
            self.db.delete(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            raise _storage_error(self.db, exc) from exc


class ComparisonStore:
    """Log de comparaciones: solo se añade, nunca se modifica."""

    def __init__(self, db: Session):
        self.db = db

    def append(self, imdb_ids: list[str]) -> ComparisonRecord:
        row = ComparisonRecord(imdb_ids=list(imdb_ids))
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as exc:
            raise _storage_error(self.db, exc) from exc
        self.db.refresh(row)
        return row

    def recent(self, n: int = RECENT_LIMIT) -> list[ComparisonRecord]:
        if n <= 0:
            return []
        try:
            return (
                self.db.query(ComparisonRecord)
                .order_by(ComparisonRecord.created_at.desc(), ComparisonRecord.id.desc())
                .limit(n)
                .all()
            )
        except SQLAlchemyError as exc:
            raise _storage_error(self.db, exc) from exc

    def count(self) -> int:
        try:
            return self.db.query(ComparisonRecord).count()
        except SQLAlchemyError as exc:
            raise _storage_error(self.db, exc) from exc
