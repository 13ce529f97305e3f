from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import uuid

from walkroute.core.config import settings
from walkroute.logging import configure_logging
from walkroute.middleware.logging import LoggingMiddleware
from walkroute.api.routes import router as api_router
from walkroute.services.geo_lookup import KakaoGeoLookupClient
from walkroute.services.registry import SessionRegistry

configure_logging()
logger = logging.getLogger(__name__)

# --- Application Lifecycle Management ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Application startup: v{settings.VERSION}")
    if not settings.KAKAO_REST_API_KEY:
        logger.warning("KAKAO_REST_API_KEY is not set; addresses and place searches will come back empty.")

    # Tests may install their own registry before startup
    if getattr(app.state, "registry", None) is None:
        app.state.registry = SessionRegistry(KakaoGeoLookupClient())

    yield

    logger.info(f"Application shutdown: closing {len(app.state.registry)} open sessions.")
    app.state.registry.close_all()

# --- FastAPI Application Initialization ---
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description=settings.BRIEF_DESCRIPTION,
    lifespan=lifespan,
)

app.add_middleware(LoggingMiddleware)

# --- API Routes ---
app.include_router(api_router, prefix="/api")

# --- Health Check Endpoint ---
@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check(request: Request):
    registry = getattr(request.app.state, "registry", None)
    return {
        "status": "ok",
        "open_sessions": len(registry) if registry is not None else 0,
    }

# --- Global Exception Handler (for unhandled errors) ---
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    error_id = str(uuid.uuid4())
    logger.error(f"Unhandled exception (ID: {error_id}): {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": {
                "error": "INTERNAL_SERVER_ERROR",
                "detail": "An unexpected error occurred. Please report this error ID.",
                "error_id": error_id
            }
        }
    )
