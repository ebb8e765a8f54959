"""Main FastAPI application for the invoice compliance service"""

import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .routes.batch import router as batch_router
from .routes.bir_compliance import router as bir_compliance_router
from .routes.configs import router as configs_router
from .routes.documents import router as documents_router
from .routes.invoices import router as invoices_router
from .routes.validation import router as validation_router
from .utils.database import db_manager
from .utils.logging import logger

ROUTERS = (
    validation_router, bir_compliance_router, batch_router, configs_router, documents_router, invoices_router
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect PostgreSQL up front only when rule sets live there or it is asked for"""
    logger.log_step("compliance_service_starting", {
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "env": settings.APP_ENV,
        "rule_set_store": settings.RULE_SET_STORE,
        "python_version": sys.version
    })

    if settings.POSTGRES_CONNECT_ON_STARTUP or settings.RULE_SET_STORE == "postgres":
        try:
            await db_manager.connect()
        except Exception as e:
            # Repositories retry the connection on first use
            logger.log_error("postgres_startup_connection_failed", {"error": str(e)})

    yield

    await db_manager.close()
    logger.log_step("compliance_service_stopped")


app = FastAPI(
    title=settings.SERVICE_NAME,
    description="Completeness and BIR compliance validation for Philippine invoices",
    version=settings.SERVICE_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = int((time.perf_counter() - start_time) * 1000)

    response.headers["X-Process-Time-Ms"] = str(elapsed_ms)
    logger.log_step("http_request", {
        "method": request.method,
        "path": request.url.path,
        "status_code": response.status_code,
        "process_time_ms": elapsed_ms
    })
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Anything not translated by a route becomes a bare 500"""
    logger.log_error("unhandled_exception", {
        "method": request.method,
        "path": request.url.path,
        "error_type": type(exc).__name__,
        "error": str(exc)
    })
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


for router in ROUTERS:
    app.include_router(router)


@app.get("/")
async def root():
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "endpoints": {
            "health": "/api/v1/health",
            "validate": "/api/v1/document/validate",
            "bir_compliance": "/api/v1/document/bir-compliance",
            "batch_validate": "/api/v1/document/batch-validate",
            "batch_bir_compliance": "/api/v1/document/batch-bir-compliance",
            "rule_sets": "/api/v1/validation/configs",
            "documents": "/api/v1/documents",
            "invoices": "/api/v1/invoices",
            "docs": "/docs"
        }
    }
