"""FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from traceaid.api.v1.router import api_v1_router
from traceaid.core.config import settings
from traceaid.core.exceptions import (
    ServiceError,
    http_exception_handler,
    service_error_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from traceaid.core.logging import configure_logging
from traceaid.core.middleware.cors import get_cors_config
from traceaid.core.middleware.request_id import RequestIdMiddleware
from traceaid.db.session import engine
from traceaid.services.bank_directory import BankDirectory
from traceaid.services.notifications import EmailNotifier

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    app.state.notifier = EmailNotifier(
        settings.EMAIL_API_URL, settings.EMAIL_API_KEY, settings.EMAIL_SENDER
    )
    app.state.bank_directory = BankDirectory(
        settings.BANK_LIST_URL,
        settings.BANK_LIST_REFRESH_SECONDS,
        api_key=settings.GATEWAY_SECRET_KEY,
    )
    await app.state.bank_directory.refresh()
    logger.info("TraceAid API started (%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()


app = FastAPI(
    title="TraceAid API",
    version="0.1.0",
    docs_url="/docs",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Middleware (last added = first executed)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(CORSMiddleware, **get_cors_config())

# Exception handlers (response envelope)
app.add_exception_handler(ServiceError, service_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# Routes
app.include_router(api_v1_router, prefix="/api/v1")
