# crm/main.py
import os

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from crm.api.v1.router import api_router
from crm.core.config import settings
from crm.core.errors import CRMError
from crm.core.idempotency import IdempotencyMiddleware
from crm.core.logging import setup_logging
from crm.db.bootstrap import run_migrations_and_seed
from crm.services.storage import PUBLIC_DIR

setup_logging()
log = structlog.get_logger(__name__)

api = FastAPI(
    title="CRM - Backend",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    swagger_ui_parameters={"displayRequestDuration": True, "persistAuthorization": True},
)

api.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # ajuste para domínios específicos em produção
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
api.add_middleware(IdempotencyMiddleware)

# métricas /metrics (Prometheus)
Instrumentator().instrument(api).expose(api, include_in_schema=False, should_gzip=True)

api.include_router(api_router, prefix="/api/v1")

# arquivos enviados (avatares, contratos, anexos)
os.makedirs(PUBLIC_DIR, exist_ok=True)
api.mount("/static", StaticFiles(directory=PUBLIC_DIR), name="static")


@api.get("/healthz", tags=["health"])
def healthz():
    return {"status": "ok"}


@api.on_event("startup")
def startup():
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        run_migrations_and_seed()


# ---------------------- toasts de erro ----------------------
@api.exception_handler(CRMError)
def handle_crm_error(request: Request, exc: CRMError):
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@api.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors(), custom_encoder={Exception: str})
    first = errors[0].get("msg", "Dados inválidos.") if errors else "Dados inválidos."
    # pydantic prefixa "Value error, " nas mensagens dos validators
    message = first.removeprefix("Value error, ")
    return JSONResponse(status_code=422, content={"code": "VALIDATION_ERROR", "message": message, "details": errors})


@api.exception_handler(StarletteHTTPException)
def handle_http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": f"HTTP_{exc.status_code}", "message": exc.detail, "details": None},
        headers=getattr(exc, "headers", None),
    )


@api.exception_handler(IntegrityError)
def handle_integrity_error(request: Request, exc: IntegrityError):
    return JSONResponse(
        status_code=409,
        content={"code": "UNIQUE_VIOLATION", "message": "Registro duplicado.", "details": str(getattr(exc, "orig", exc))}
    )


@api.exception_handler(Exception)
def handle_unexpected(request: Request, exc: Exception):
    log.exception("request.unhandled", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"code": "INTERNAL_ERROR", "message": "Erro interno.", "details": str(exc)}
    )
