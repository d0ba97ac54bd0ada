from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from .config import settings

Base = declarative_base()


def build_engine(database_url: str = None) -> Engine:
    """Crea el engine; las bases SQLite en memoria comparten una sola conexión."""
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        if ":memory:" in url or url == "sqlite://":
            return create_engine(
                url,
                echo=False,
                future=True,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        _ensure_sqlite_dir(url)
        return create_engine(url, echo=False, future=True, connect_args={"check_same_thread": False})
    return create_engine(url, echo=False, future=True, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def _ensure_sqlite_dir(url: str) -> None:
    from pathlib import Path

    path = url.split("///", 1)[-1]
    if path:
        Path(path).parent.mkdir(parents=True, exist_ok=True)


def _import_all_models():
    """Importa todos los modelos para que Base.metadata los registre."""
    from .domain import models_inventario  # noqa: F401 - Article, KitComponent, Warehouse, InventoryTransaction, InventoryMovement
    from .domain import models_caja  # noqa: F401 - CashRegister, CashRegisterSession, pagos y conciliación
    from .domain import models_mesas  # noqa: F401 - RestaurantTable, TableState


def init_db(engine: Engine):
    """Crear tablas si no existen (arranque normal)."""
    _import_all_models()
    Base.metadata.create_all(bind=engine)
