"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from api.routes import game
from config import config
from core.errors import BlackjackError, ErrorKind, StorageError

logging.basicConfig(
    level=config.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# HTTP status per error kind
ERROR_STATUS = {
    ErrorKind.BETTING: 400,
    ErrorKind.STATE: 400,
    ErrorKind.SETUP: 502,
    ErrorKind.DRAW: 502,
    ErrorKind.PERSISTENCE: 503,
}

limiter = Limiter(
    key_func=get_remote_address,
    enabled=config.rate_limit.enabled,
    default_limits=[f"{config.rate_limit.requests_per_minute}/minute"],
)


def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded errors."""
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}"},
    )


def _blackjack_error_handler(request: Request, exc: BlackjackError) -> JSONResponse:
    """Report an engine error with its kind and failing phase."""
    status = ERROR_STATUS[exc.kind]
    if status >= 500:
        logger.error("%s (root cause: %r)", exc, exc.root_cause)
    return JSONResponse(status_code=status, content=exc.to_dict())


def _storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Storage failure: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await game.close_card_source()


app = FastAPI(
    title="Blackjack Shoe",
    description="Single-player blackjack rounds dealt from a casino-style shoe",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(BlackjackError, _blackjack_error_handler)
app.add_exception_handler(StorageError, _storage_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors.allowed_origins,
    allow_credentials=config.cors.allow_credentials,
    allow_methods=config.cors.allow_methods,
    allow_headers=config.cors.allow_headers,
)


@app.get("/api/health")
@limiter.limit(f"{config.rate_limit.requests_per_minute}/minute")
async def health_check(request: Request) -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


app.include_router(game.router, prefix="/api/game", tags=["game"])


def run() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    uvicorn.run("api.main:app", host=config.host, port=config.port, reload=config.debug)


if __name__ == "__main__":
    run()
