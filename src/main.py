from fastapi import FastAPI
from pydantic_settings import BaseSettings
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
import logging

from routers.api import router as api_router
from schemas import AppHealthOK
from core.config_loader import config_loader
from core.workspace_manager import WorkspaceManager

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    app_name: str = "Greenhouse Sync API"
    debug: bool = True
    # Base URL of the backend that serves /api/filters
    api_base_url: str = "http://localhost:3000"
    request_timeout: float = 10.0
    # Where the local fallback store is written; in-memory only when unset
    storage_dir: Optional[Path] = None


settings = Settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the workspace manager on startup and close every workspace on shutdown."""
    logger.info("Starting workspace manager against %s", settings.api_base_url)
    if getattr(app.state, "workspace_manager", None) is None:
        app.state.workspace_manager = WorkspaceManager(
            settings.api_base_url,
            timeout=settings.request_timeout,
            storage_dir=settings.storage_dir,
            config=config_loader.get_config(),
        )

    try:
        yield
    finally:
        logger.info("Stopping workspaces")
        await app.state.workspace_manager.stop_all()
        app.state.workspace_manager = None


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)


@app.get("/", tags=["meta"])
async def read_root() -> dict[str, str]:
    return {"message": settings.app_name}


@app.get("/health", tags=["meta"], response_model=AppHealthOK)
async def healthcheck() -> AppHealthOK:
    return AppHealthOK(status="ok", app=settings.app_name)


# mount API router under /api
app.include_router(api_router, prefix="/api")
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
