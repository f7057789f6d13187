# backend/app.py
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from comparison import ComparisonEngine
from database import DATABASE_URL, Database, get_db
from enrichment import WatchlistEnricher, recent_comparisons
from errors import MissingField, MovieAppError, NotFound
from omdb import get_omdb_client
from schemas import (
    CompareResponse,
    EnrichedMovie,
    RecentComparisonsResponse,
    SearchResponse,
    WatchlistDetail,
    WatchlistOut,
    WatchlistUpdated,
)
from stores import RECENT_LIMIT, ComparisonStore, WatchlistStore
from validation import require_well_formed_id, validate_bulk_add_request, validate_patch

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

CLIENT_URL = os.getenv("CLIENT_URL")

# Rutas cuyos datos vienen de OMDb en cada petición: nunca cachear
NO_CACHE_PATHS = ("/api/search", "/api/watchlist", "/api/comparisons/recent")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up movie API...")
    db = Database(DATABASE_URL)
    db.create_all()
    app.state.db = db
    yield
    logger.info("Shutting down movie API...")
    db.dispose()


app = FastAPI(title="Movie Watchlist & Compare API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[CLIENT_URL] if CLIENT_URL else ["*"],
    allow_credentials=bool(CLIENT_URL),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def no_cache(request, call_next):
    response = await call_next(request)
    if request.url.path.startswith(NO_CACHE_PATHS):
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        response.headers["Pragma"] = "no-cache"
    return response


@app.exception_handler(MovieAppError)
async def movie_app_error_handler(request: Request, exc: MovieAppError):
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_body()))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in e.get("loc", ())[1:]), "message": e.get("msg")}
        for e in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Validation failed", "details": details})


@app.get("/health")
async def health():
    return {"ok": True}


# ---------- Dependencias ----------

def get_watchlist_store(db: Session = Depends(get_db)) -> WatchlistStore:
    return WatchlistStore(db)


def get_comparison_store(db: Session = Depends(get_db)) -> ComparisonStore:
    return ComparisonStore(db)


router = APIRouter(prefix="/api")


# ---------- OMDb proxy ----------

@router.get("/search", response_model=SearchResponse)
async def search(
    s: Optional[str] = None,
    type_: Optional[Literal["movie", "series", "episode"]] = Query(None, alias="type"),
    y: Optional[int] = None,
    page: Optional[int] = Query(None, ge=1, le=100),
    client=Depends(get_omdb_client),
    store: WatchlistStore = Depends(get_watchlist_store),
):
    if not s:
        raise MissingField("Search parameter 's' is required")
    result = await asyncio.to_thread(client.search, s, type=type_, year=y, page=page)
    if not result.found:
        raise NotFound("Movie not found!")

    in_watchlist = store.existing_ids(m.get("imdbID") for m in result.items)
    return {
        "Response": "True",
        "Search": [
            {
                "imdbID": m.get("imdbID"),
                "Title": m.get("Title"),
                "Year": m.get("Year"),
                "Type": m.get("Type"),
                "Poster": m.get("Poster"),
                "isInWatchlist": m.get("imdbID") in in_watchlist,
            }
            for m in result.items
        ],
    }


@router.get("/movie/{imdb_id}")
async def get_movie(imdb_id: str, client=Depends(get_omdb_client)):
    require_well_formed_id(imdb_id, "Invalid IMDb ID format. Must be 'tt' followed by 7-8 digits")
    result = await asyncio.to_thread(client.get_by_id, imdb_id)
    if not result.found:
        raise NotFound("Movie not found!")
    return result.record


# ---------- Watchlist CRUD ----------

@router.post("/watchlist", response_model=list[WatchlistOut], status_code=201)
async def add_to_watchlist(
    payload: Any = Body(None),
    store: WatchlistStore = Depends(get_watchlist_store),
):
    candidates = validate_bulk_add_request(payload)
    rows = store.bulk_add(candidates)
    return [WatchlistOut.from_entry(r) for r in rows]


@router.get("/watchlist", response_model=list[EnrichedMovie])
async def list_watchlist(
    sort: str = "dateAdded",
    order: str = "desc",
    filter: Optional[str] = None,
    watched: Optional[str] = None,
    client=Depends(get_omdb_client),
    store: WatchlistStore = Depends(get_watchlist_store),
):
    # watched se filtra en la base de datos; type y el orden, tras enriquecer
    watched_flag = {"true": True, "false": False}.get(watched)
    rows = store.list(watched=watched_flag)
    return await WatchlistEnricher(client).list_view(rows, sort=sort, order=order, type_filter=filter)


@router.get("/watchlist/{imdb_id}", response_model=WatchlistDetail)
async def get_watchlist_entry(
    imdb_id: str,
    client=Depends(get_omdb_client),
    store: WatchlistStore = Depends(get_watchlist_store),
):
    require_well_formed_id(imdb_id)
    row = store.get(imdb_id)
    return await WatchlistEnricher(client).enrich_detail(row)


@router.patch("/watchlist/{imdb_id}", response_model=WatchlistUpdated)
async def update_watchlist_entry(
    imdb_id: str,
    payload: Any = Body(None),
    store: WatchlistStore = Depends(get_watchlist_store),
):
    require_well_formed_id(imdb_id)
    patch = validate_patch(payload)
    row = store.update(imdb_id, patch)
    return {
        **WatchlistOut.from_entry(row).model_dump(),
        "lastUpdated": datetime.now(timezone.utc),
    }


@router.delete("/watchlist/{imdb_id}", status_code=204)
async def delete_watchlist_entry(imdb_id: str, store: WatchlistStore = Depends(get_watchlist_store)):
    require_well_formed_id(imdb_id)
    store.remove(imdb_id)
    return Response(status_code=204)


# ---------- Comparaciones ----------

@router.post("/compare", response_model=CompareResponse)
async def compare(
    payload: Any = Body(None),
    client=Depends(get_omdb_client),
    store: ComparisonStore = Depends(get_comparison_store),
):
    imdb_ids = payload.get("imdbIds") if isinstance(payload, dict) else None
    return await ComparisonEngine(client, store).compare(imdb_ids)


@router.get("/comparisons/recent", response_model=RecentComparisonsResponse)
async def get_recent_comparisons(
    client=Depends(get_omdb_client),
    store: ComparisonStore = Depends(get_comparison_store),
):
    records = store.recent(RECENT_LIMIT)
    return {"comparisons": await recent_comparisons(client, records)}


app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=False)
