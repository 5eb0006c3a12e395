"""Main FastAPI application for SceneCast."""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from scenecast.core.env_loader import ensure_env_loaded
ensure_env_loaded()

from scenecast import __version__
from scenecast.api.limits import limiter
from scenecast.api.routers import blobs, images, prompts, story
from scenecast.core.config import get_settings
from scenecast.core.logging_config import get_logger

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info(
        f"SceneCast API starting (blob backend: {settings.blob_backend}, "
        f"rate limiting: {'on' if limiter.enabled else 'off'})"
    )
    yield
    logger.info("SceneCast API stopped")


app = FastAPI(
    title="SceneCast API",
    description="Turns stories into cinematic scenes and images",
    version=__version__,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors, reported as 400."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    detail = f"{field}: {message}" if field else message
    return JSONResponse(status_code=400, content={"detail": detail})


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(story.router, prefix="/api", tags=["story"])
app.include_router(prompts.router, prefix="/api", tags=["prompts"])
app.include_router(images.router, prefix="/api", tags=["images"])
app.include_router(blobs.router, prefix="/api", tags=["blobs"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "SceneCast API", "version": __version__}


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


def start_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Start the FastAPI server."""
    uvicorn.run(
        "scenecast.api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="warning",
    )


if __name__ == "__main__":
    start_server()
