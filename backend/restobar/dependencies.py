"""
Composición de dependencias.

El adaptador de almacenamiento se construye una sola vez al crear la app y se
guarda en ``app.state.storage``; los servicios lo reciben por inyección.
"""
import logging
from typing import Optional

from fastapi import Depends, Request

from .application.ports import StoragePort
from .application.services_caja import CajaService
from .application.services_inventario import InventarioService
from .application.services_mesas import MesaService
from .config import Settings, settings as app_settings

logger = logging.getLogger(__name__)


def build_storage(config: Optional[Settings] = None) -> StoragePort:
    config = config or app_settings
    if config.use_memory_storage:
        from .infrastructure.memory_store import MemoryStorage
        logger.info("Almacenamiento en memoria (modo demo, un solo proceso)")
        return MemoryStorage()

    from .db import build_engine, build_session_factory, init_db
    from .infrastructure.unit_of_work import SqlStorage
    engine = build_engine(config.database_url)
    init_db(engine)
    logger.info("Almacenamiento relacional: %s", engine.url.render_as_string(hide_password=True))
    return SqlStorage(build_session_factory(engine))


def get_storage(request: Request) -> StoragePort:
    return request.app.state.storage


def get_inventario_service(storage: StoragePort = Depends(get_storage)) -> InventarioService:
    return InventarioService(storage)


def get_caja_service(request: Request, storage: StoragePort = Depends(get_storage)) -> CajaService:
    return CajaService(storage, local_currency=request.app.state.settings.local_currency)


def get_mesa_service(storage: StoragePort = Depends(get_storage)) -> MesaService:
    return MesaService(storage)
