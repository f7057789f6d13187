# backend/database.py
import logging
import os

from dotenv import load_dotenv
from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./movies.db")

logger = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """Engine + fábrica de sesiones. Se crea al arrancar la app y se cierra al pararla."""

    def __init__(self, url: str = DATABASE_URL):
        kwargs = {}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # una sola conexión, si no cada sesión vería una base vacía
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True
        self.url = url
        self.engine = create_engine(url, **kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def create_all(self):
        import models  # noqa: F401  registra las tablas en Base.metadata
        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    def dispose(self):
        logger.info("Disposing database engine")
        self.engine.dispose()


def get_db(request: Request):
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()
