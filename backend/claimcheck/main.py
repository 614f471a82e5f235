import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from claimcheck import __version__
from claimcheck.api.routes import router
from claimcheck.config import get_settings
from claimcheck.database import create_tables, get_engine
from claimcheck.models.errors import validation_error
from claimcheck.models.schemas import ErrorResponse

logger = logging.getLogger(__name__)


# =============================================================================
# LIFESPAN: Startup and Shutdown Logic
# =============================================================================
#
# Everything BEFORE 'yield' runs once on startup, everything AFTER on shutdown.
#
# The database is optional: with no RANKINGS_DATABASE_URL the leaderboard
# lives in memory and no engine is ever created.
#
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # === STARTUP ===
    if settings.rankings_database_url:
        # Create the rankings table if it does not exist yet
        await create_tables(get_engine())
        logger.info("Rankings database ready")
    else:
        logger.warning("RANKINGS_DATABASE_URL not set: rankings reset on restart")

    if not settings.openai_api_key:
        # Not fatal: requests that need the collaborator answer 500 CONFIG_ERROR
        logger.warning("OPENAI_API_KEY not set: verify/search/rephrase will fail")

    yield

    # === SHUTDOWN ===
    if settings.rankings_database_url:
        await get_engine().dispose()


app = FastAPI(
    title="ClaimCheck",
    description="Claim verification with source trust tiers and an AI-source leaderboard",
    version=__version__,
    lifespan=lifespan,
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


# =============================================================================
# ERROR BODIES
# =============================================================================
#
# Every non-2xx response is an ErrorResponse: {"error": str, "code": str|None}.
# FastAPI's defaults (422 with a "detail" list, {"detail": ...} for 404/405)
# are rewritten here.
#

_HTTP_MESSAGES = {
    404: "Not found",
    405: "Method not allowed",
}


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are client errors: 400, not 422."""
    errors = exc.errors()
    message, field = "Invalid request body", None
    if errors:
        first = errors[0]
        location = [str(part) for part in first.get("loc", ()) if part != "body"]
        if location:
            field = ".".join(location)
            message = f"Invalid value for {field}: {first.get('msg', 'invalid')}"
    error = validation_error(message, field=field)
    logger.info(f"Rejected request to {request.url.path}: {message}")
    return JSONResponse(status_code=error.status, content=error.to_body())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    body = ErrorResponse(error=_HTTP_MESSAGES.get(exc.status_code, str(exc.detail)))
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude={"field"}),
        headers=getattr(exc, "headers", None),
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
