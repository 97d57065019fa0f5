from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stockatelier.api.routers import dashboard, materials, movements, users, work
from stockatelier.core.config import settings
from stockatelier.core.errors import StockAtelierError
from stockatelier.core.logging import configure_logging
from stockatelier.schemas.common import Health

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    logger.info("stockatelier api starting: env=%s", settings.app_env)
    yield
    logger.info("stockatelier api stopped")


app = FastAPI(title="Stock Atelier API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StockAtelierError)
async def stockatelier_error_handler(request: Request, exc: StockAtelierError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request failed: path=%s, code=%s, message=%s", request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"code": "VALIDATION_ERROR", "message": "invalid payload", "errors": jsonable_encoder(exc.errors())},
    )


app.include_router(users.router)
app.include_router(dashboard.router)
app.include_router(materials.router)
app.include_router(movements.router)
app.include_router(work.router)


@app.get("/health", response_model=Health)
async def health() -> Health:
    return Health(status="ok", time=datetime.now(timezone.utc))
