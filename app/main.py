from typing import Optional

from app.core.config import Settings, get_settings
from app.core.deps import Services, build_services
from app.core.errors import install_error_handlers
from app.core.logging import configure_logging
from app.core.middleware import RequestIdMiddleware
from app.api.v1.router import v1_router

from fastapi import FastAPI


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.services = services or build_services(settings)

    # Middleware: Request ID
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    install_error_handlers(app)

    # API
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app
