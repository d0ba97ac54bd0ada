import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .api.routers import cajas, health, inventario, mesas
from .application.ports import StoragePort
from .config import Settings, settings as app_settings
from .dependencies import build_storage
from .infrastructure.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config: Optional[Settings] = None, storage: Optional[StoragePort] = None) -> FastAPI:
    """Arma la aplicación; el almacenamiento se elige una sola vez aquí."""
    config = config or app_settings
    setup_logging(config.log_dir, logging.DEBUG if config.debug else logging.INFO)

    app = FastAPI(
        title="Restobar - Back office",
        version="0.1.0",
        description="Inventario con kardex, cajas registradoras y mesas",
        docs_url="/docs" if config.environment != "production" else None,
        redoc_url="/redoc" if config.environment != "production" else None,
    )
    app.state.settings = config
    app.state.storage = storage or build_storage(config)

    # Configurar CORS dinámicamente
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Requested-With"],
    )

    # Middleware para agregar headers de seguridad HTTP
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if config.environment == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    app.include_router(health.router)
    app.include_router(inventario.router)
    app.include_router(cajas.router)
    app.include_router(mesas.router)

    logger.info("Aplicación iniciada (entorno=%s, almacenamiento=%s)", config.environment, config.storage_backend)
    return app


app = create_app()
