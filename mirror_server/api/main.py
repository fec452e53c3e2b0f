from fastapi import FastAPI

from composer_mirror import __version__
from composer_mirror.common.logger import setup_from_config
from mirror_server.api.deps import get_core_config
from mirror_server.api.routers import health, metadata
from mirror_server.core.config import get_settings


def create_app() -> FastAPI:
    settings = get_settings()
    setup_from_config(get_core_config().logging)

    app = FastAPI(
        title=settings.app_name,
        description="Private Composer repository metadata server",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.include_router(health.router)
    app.include_router(metadata.router)
    return app


app = create_app()
