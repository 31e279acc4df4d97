"""
AI/GEO Audit API

FastAPI application serving the AI/GEO audit dashboard:
- Live SERP, AI mode, backlink, Search Console and Business Profile signals
- Audit, keyword ranking and GSC timeseries storage (Supabase)
- Portfolio segment metrics and domain strength snapshots
- Optimisation tasks with KPI objectives and goal progress

Every response uses the envelope {"status", "data" | "error", "meta"}.
"""

import logging
import sys

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from aigeo import __version__
from aigeo.utils.config import Settings, get_settings
from aigeo.utils.responses import error_response, ok_response

from api import aigeo as aigeo_routes
from api import audits, domain_strength, optimisation, portfolio, search_console

settings = get_settings()

# Configure logging to output to stdout
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

app = FastAPI(
    title="AI/GEO Audit API",
    description="AI Overview citation tracking, search visibility and audit storage",
    version=__version__,
)

app.include_router(aigeo_routes.router)
app.include_router(search_console.router)
app.include_router(audits.router)
app.include_router(portfolio.router)
app.include_router(domain_strength.router)
app.include_router(optimisation.router)


# =============================================================================
# ERROR ENVELOPE
# =============================================================================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(str(exc.detail), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response("Invalid request", status_code=400, details=jsonable_encoder(exc.errors()))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return error_response("Internal server error", status_code=500, details=str(exc))


# =============================================================================
# HEALTH
# =============================================================================

@app.get("/")
async def root():
    """Health check endpoint."""
    return ok_response({"service": "AI/GEO Audit API"})


@app.get("/api/health")
async def health(current: Settings = Depends(get_settings)):
    """Which integrations have credentials configured."""
    return ok_response({
        "service": "AI/GEO Audit API",
        "version": __version__,
        "environment": current.ENVIRONMENT,
        "integrations": {
            "supabase": current.has_supabase,
            "dataforseo": current.has_dataforseo,
            "google": current.has_google_oauth,
            "admin": bool(current.ARP_ADMIN_KEY),
        },
    })


# =============================================================================
# RUN SERVER
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    from dotenv import load_dotenv

    load_dotenv()

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
