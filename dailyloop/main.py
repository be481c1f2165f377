import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load env from dailyloop/.env (tests configure their own environment)
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from dailyloop.core.config import settings, validate_config  # noqa: E402
from dailyloop.core.logging import configure_logging  # noqa: E402
from dailyloop.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from dailyloop.core.middleware.metrics import MetricsMiddleware  # noqa: E402
from dailyloop.core.validation import validate_env  # noqa: E402
from dailyloop.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from dailyloop.api import health, metrics, progress  # noqa: E402
from dailyloop.features.progress.store import get_store  # noqa: E402

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("dailyloop")
    logger.info("Starting dailyloop backend...")
    store = get_store()
    logger.info(f"Progress store: {store.__class__.__name__}")
    try:
        yield
    finally:
        logging.getLogger("dailyloop").info("Stopping dailyloop backend...")


app = FastAPI(title="dailyloop - Backend", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(MetricsMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(progress.router, tags=["progress"])
app.include_router(health.root_router, tags=["health"])
app.include_router(metrics.router, tags=["metrics"])


@app.get("/test")
def test_endpoint():
    """Simple test endpoint to verify backend is accessible."""
    logger = logging.getLogger("dailyloop")
    logger.info("[/test] endpoint called")
    return {"message": "API is working!", "version": "0.1.0"}
