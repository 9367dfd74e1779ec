"""Art Catalog: inventory of physical artworks, digital works and their sales."""

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from artcatalog.api.routes_artworks import router as artworks_router
from artcatalog.api.routes_backup import router as backup_router
from artcatalog.api.routes_digital_works import router as digital_works_router
from artcatalog.api.routes_exhibitions import router as exhibitions_router
from artcatalog.api.routes_gallery import router as gallery_router
from artcatalog.api.routes_migration import router as migration_router
from artcatalog.api.routes_sales import router as sales_router
from artcatalog.api.routes_series import router as series_router
from artcatalog.api.routes_tags import router as tags_router
from artcatalog.config import settings
from artcatalog.database import init_db
from artcatalog.services.entity_store import EntityStore
from artcatalog.services.migration import MigrationProgress
from artcatalog.services.object_store import ObjectStore

__version__ = "1.0.0"

logger = logging.getLogger("artcatalog")
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info("Starting Art Catalog %s", __version__)
    logger.info("Database: %s", settings.DATABASE_PATH)
    logger.info("Upload path: %s", settings.UPLOAD_PATH)

    # Ensure directories exist
    os.makedirs(settings.UPLOAD_PATH, exist_ok=True)

    # Initialize database
    await init_db(settings.DATABASE_PATH)
    app.state.db_path = str(settings.DATABASE_PATH)

    app.state.entity_store = EntityStore(app.state.db_path)
    app.state.object_store = ObjectStore(settings.UPLOAD_PATH, app.state.db_path)
    app.state.migration_progress = MigrationProgress()
    app.state.migration_result = None

    yield

    logger.info("Shutting down Art Catalog")


app = FastAPI(
    title="Art Catalog",
    description="Inventory of physical artworks, digital works, exhibitions and sales",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors like any other validation failure."""
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


app.include_router(artworks_router)
app.include_router(digital_works_router)
app.include_router(exhibitions_router)
app.include_router(series_router)
app.include_router(tags_router)
app.include_router(sales_router)
app.include_router(gallery_router)
app.include_router(backup_router)
app.include_router(migration_router)

# Serve uploaded images; file_path values in gallery_images point here.
# check_dir=False because the directory is created in the lifespan handler.
app.mount(
    "/uploads",
    StaticFiles(directory=str(settings.UPLOAD_PATH), check_dir=False),
    name="uploads",
)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok", "app": "artcatalog", "version": __version__}


def run() -> None:
    """Serve the app with uvicorn on ``ARTCAT_HOST``:``ARTCAT_PORT``."""
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
