from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.config import Settings, get_settings
from app.core.logging import setup_logging
from app.database import init_db
from app.dependencies import get_job_runner
from app.routers import health_router, products_router, uploads_router
from app.services.media_service import MediaLayout, ensure_dir

setup_logging()
settings: Settings = get_settings()

init_db()
media_layout = MediaLayout.from_settings(settings)
ensure_dir(media_layout.media_root)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    try:
        yield
    finally:
        get_job_runner().shutdown(timeout=30)


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.include_router(health_router)
app.include_router(uploads_router)
app.include_router(products_router)

# Mounted after the routers: the media prefix shares its first segment with /uploads routes.
app.mount(
    f"/{media_layout.sub_dir}",
    StaticFiles(directory=str(media_layout.media_root)),
    name="media",
)


__all__ = ["app"]
