import logging
import os
import time
from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlmodel import SQLModel, create_engine

import models  # noqa: F401  registra le tabelle nella metadata

logger = logging.getLogger(__name__)

# Fallback per lo sviluppo locale quando DATABASE_URL non è impostata.
DEFAULT_DATABASE_URL = "sqlite:///app.db"


def get_database_url() -> str:
    url = os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL
    # Alcuni provider (Heroku, Neon) espongono ancora lo schema "postgres://".
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def make_engine(database_url: Optional[str] = None) -> Engine:
    """
    Crea l'engine SQLAlchemy.

    - SQLite (sviluppo locale): check_same_thread disattivato, perché FastAPI
      esegue gli handler sincroni nel threadpool.
    - Postgres (produzione): pool con pre-ping e riciclo delle connessioni,
      adatto a un database serverless.
    """
    url = database_url or get_database_url()
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )
    return create_engine(
        url,
        pool_pre_ping=True,       # Controlla la connessione prima di ogni utilizzo.
        pool_size=5,
        max_overflow=5,
        pool_recycle=1800,        # Ricicla le connessioni ogni 30 minuti.
    )


def with_retry(fn: Callable, retries: int = 5, delay: float = 2.0):
    """
    Esegue una funzione con tentativi multipli in caso di errori operativi di connessione.
    Utile per database "serverless" che potrebbero richiedere un "risveglio".
    """
    for i in range(retries):
        try:
            return fn()
        except OperationalError:
            if i == retries - 1:
                raise
            logger.warning("Database non raggiungibile (tentativo %d/%d)", i + 1, retries)
            time.sleep(delay * (i + 1))


def is_lazy_init() -> bool:
    return os.getenv("DB_INIT_LAZY", "").strip().lower() in ("1", "true", "yes")


def init_db(engine: Engine, lazy: bool = False):
    """
    Crea le tabelle (definite in models.py) se non esistono già.

    - lazy=True: non esegue nulla, lo schema va creato a parte.
    - lazy=False: crea le tabelle usando with_retry.
    """
    if lazy:
        logger.info("Creazione dello schema rimandata (DB_INIT_LAZY)")
        return

    def _create():
        SQLModel.metadata.create_all(engine)

    with_retry(_create)
