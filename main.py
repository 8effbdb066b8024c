import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from db import is_lazy_init, make_engine
from errors import TournamentError
from routes import router
from storage import Storage

logger = logging.getLogger(__name__)


def configure_logging():
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def cors_origins() -> List[str]:
    raw = os.getenv("CORS_ORIGINS", "*")
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]


# ========== GESTIONE ERRORI ==========
# Ogni errore esce come {"message": ..., "errors"?: [...]}.
def tournament_error_handler(request: Request, exc: TournamentError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Invalid request body", "errors": errors})


def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Errore non gestito su %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


def create_app(engine: Optional[Engine] = None, lazy_init: Optional[bool] = None) -> FastAPI:
    """
    Costruisce l'app. Lo storage viene creato qui e passato agli handler
    tramite app.state, così i test possono usare un engine dedicato.
    """
    storage = Storage(engine if engine is not None else make_engine())
    lazy = is_lazy_init() if lazy_init is None else lazy_init

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # with_retry può dormire: fuori dall'event loop.
        await run_in_threadpool(storage.init_schema, lazy=lazy)
        yield

    app = FastAPI(title="Tournament API", lifespan=lifespan)
    app.state.storage = storage

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(TournamentError, tournament_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/")
    def root():
        return {"ok": True}

    @app.get("/healthz")
    def healthz():
        try:
            storage.ping()
            return {"ok": True, "db": "up"}
        except Exception:
            logger.warning("Health check: database non raggiungibile", exc_info=True)
            return {"ok": True, "db": "down"}

    app.include_router(router)
    return app


def get_app() -> FastAPI:
    # Entry point per uvicorn: `uvicorn main:get_app --factory`
    configure_logging()
    return create_app()
