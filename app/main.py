from typing import Optional

from fastapi import FastAPI

from app.api.routes import router as cms_router
from app.config.settings import Settings
from app.services.content_repository import ContentRepository


def create_app(repository: Optional[ContentRepository] = None) -> FastAPI:
    settings = Settings()
    app = FastAPI(title=settings.app_name)
    app.state.repository = repository if repository is not None else ContentRepository()
    app.include_router(cms_router)
    return app


app = create_app()
