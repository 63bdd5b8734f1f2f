"""
FastAPI application entry point for the BudgeNudge backend.

This module creates the FastAPI app instance and registers all routers.
"""

import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from budgenudge import __version__
from budgenudge.config import settings
from budgenudge.routes.adf import router as adf_router
from budgenudge.routes.category_pacing import router as category_pacing_router
from budgenudge.routes.health import router as health_router
from budgenudge.routes.merchant_pacing import router as merchant_pacing_router
from budgenudge.routes.pacing import router as pacing_router
from budgenudge.routes.sms import router as sms_router
from budgenudge.routes.tagged_merchants import router as tagged_merchants_router
from budgenudge.routes.tagging import router as tagging_router
from budgenudge.routes.transaction_rules import router as transaction_rules_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def _get_cors_origins() -> list[str]:
    """
    Allowed CORS origins for the current environment.

    - production: CORS_ALLOWED_ORIGINS (none if unset)
    - anything else: all origins
    """
    if settings.is_production():
        origins = [origin.strip() for origin in settings.CORS_ORIGINS if origin.strip()]
        if origins:
            logger.info(f"CORS configured for production with {len(origins)} allowed origins")
        else:
            logger.warning(
                "CORS_ALLOWED_ORIGINS not set in production. "
                "No web origins allowed."
            )
        return origins

    logger.info(f"CORS configured for {settings.ENVIRONMENT}: allowing all origins")
    return ["*"]


app = FastAPI(
    title="BudgeNudge API",
    description="Backend service for BudgeNudge spending alerts",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)


def _jsonable_errors(exc: RequestValidationError) -> list:
    # ctx can hold exception instances (e.g. ValueError from validators)
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        errors.append(error)
    return errors


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log validation failures and return them as a 422 validation_error."""
    logger.error(
        f"Validation error on {request.method} {request.url.path}: {exc.errors()}"
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "details": _jsonable_errors(exc)
        }
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health_router)
app.include_router(transaction_rules_router)
app.include_router(merchant_pacing_router)
app.include_router(category_pacing_router)
app.include_router(pacing_router)
app.include_router(tagged_merchants_router)
app.include_router(sms_router)
app.include_router(adf_router)
app.include_router(tagging_router)

logger.info("FastAPI app initialized successfully")
