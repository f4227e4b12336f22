"""
Main application entry point for the FastAPI backend.
"""
import logging
from pathlib import Path
from typing import Optional, Union

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from . import __version__
from .config import settings
from .core.exceptions import FiledropError, NotFoundError
from .core.lifespan import lifespan

from .api.routers import files
from .api.routers import tokens

logger = logging.getLogger(__name__)


async def filedrop_error_handler(_request: Request, exc: FiledropError):
    """Translate service errors into responses; not found is an empty 404."""
    if isinstance(exc, NotFoundError):
        return Response(status_code=exc.status_code)
    if exc.status_code >= 500:
        logger.error("Request failed: %s", exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app(
    database_url: Optional[str] = None,
    root_path: Optional[Union[str, Path]] = None,
    enable_scheduler: bool = True,
    cleanup_on_startup: Optional[bool] = None,
) -> FastAPI:
    """Build the application; settings are used for every argument left as None."""
    app = FastAPI(
        title="filedrop API",
        description="Single-use upload tokens with expiring downloads",
        version=__version__,
        lifespan=lifespan,
    )

    config = {"database_url": database_url, "root_path": root_path, "enable_scheduler": enable_scheduler}
    if cleanup_on_startup is not None:
        config["cleanup_on_startup"] = cleanup_on_startup
    app.state.config = config

    app.add_exception_handler(FiledropError, filedrop_error_handler)

    @app.get("/health")
    def health():
        """Health check endpoint."""
        return {"ok": True}

    app.include_router(tokens.router)
    app.include_router(files.router)
    return app


app = create_app()


def run():
    """Serve the application with uvicorn."""
    import uvicorn

    uvicorn.run("filedrop.main:app", host=settings.HOST, port=settings.PORT)
