"""
Configuración global de pytest.

Los servicios se prueban contra el almacenamiento en memoria; ``sql_storage``
levanta SQLite en memoria para cubrir el adaptador relacional.
"""
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Agregar el directorio raíz al path para imports
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))
sys.path.insert(0, str(Path(__file__).parent))

# Antes de importar la app: sin base en disco y logs fuera del repo
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "restobar-tests-logs"))

from restobar.application.services_caja import CajaService
from restobar.application.services_inventario import InventarioService
from restobar.application.services_mesas import MesaService
from restobar.db import build_engine, build_session_factory, init_db
from restobar.infrastructure.memory_store import MemoryStorage
from restobar.infrastructure.unit_of_work import SqlStorage

from factories import seed_catalog


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def sql_storage():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield SqlStorage(build_session_factory(engine))
    engine.dispose()


@pytest.fixture
def inventario(storage):
    return seed_catalog(InventarioService(storage))


@pytest.fixture
def inventario_sql(sql_storage):
    return seed_catalog(InventarioService(sql_storage))


@pytest.fixture
def caja(storage):
    return CajaService(storage, local_currency="MXN")


@pytest.fixture
def mesas(storage):
    return MesaService(storage)
