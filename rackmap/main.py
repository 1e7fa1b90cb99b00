import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from . import auth, database, models
from .config import settings
from .errors import register_error_handlers
from .logging import configure_logging
from .templating import STATIC_DIR
from .web import routers

logger = logging.getLogger(__name__)


def init_db():
    models.Base.metadata.create_all(bind=database.engine)
    db = database.SessionLocal()
    try:
        auth.ensure_default_admin(db)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("RackMap started")
    yield


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="RackMap", lifespan=lifespan)

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
    app.mount(settings.upload_url_prefix.rstrip("/"), StaticFiles(directory=str(upload_dir)), name="uploads")

    for router in routers:
        app.include_router(router)
    register_error_handlers(app)
    return app


app = create_app()
