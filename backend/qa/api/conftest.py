"""
Fixtures para tests de integración API.
Usa TestClient de FastAPI contra una app armada con almacenamiento en memoria.
"""
import pytest
import sys
from pathlib import Path

# Asegurar que el path permita imports de restobar
root_dir = Path(__file__).parent.parent.parent
sys.path.insert(0, str(root_dir))

from fastapi.testclient import TestClient

from restobar.config import Settings
from restobar.infrastructure.memory_store import MemoryStorage
from restobar.main import create_app

from factories import auth_headers


@pytest.fixture
def client(tmp_path):
    """Cliente HTTP sin autenticación; cada test tiene su propio almacenamiento."""
    config = Settings(storage_backend="memory", log_dir=str(tmp_path / "logs"))
    return TestClient(create_app(config, MemoryStorage()))


@pytest.fixture
def client_auth(client):
    """Cliente autenticado como el usuario 1."""
    client.headers.update(auth_headers(1))
    return client


@pytest.fixture
def catalogo(client_auth):
    """BODEGA y BARRA; COKE-600 (caja de 12) y el kit COMBO-1 = BURGER + FRIES."""
    for code, name in (("BODEGA", "Bodega principal"), ("BARRA", "Barra")):
        assert client_auth.post("/inventario/almacenes", json={"code": code, "name": name}).status_code == 200
    articles = [
        {"code": "COKE-600", "name": "Coca-Cola 600ml", "conversion_factor": "12", "storage_unit": "caja", "retail_unit": "botella"},
        {"code": "BURGER", "name": "Hamburguesa"},
        {"code": "FRIES", "name": "Papas", "conversion_factor": "10"},
        {"code": "COMBO-1", "name": "Combo hamburguesa", "article_type": "KIT"},
    ]
    for article in articles:
        assert client_auth.post("/inventario/articulos", json=article).status_code == 200
    r = client_auth.post("/inventario/kits/COMBO-1/componentes", json={"components": [
        {"component_code": "BURGER", "quantity_retail": "1"},
        {"component_code": "FRIES", "quantity_retail": "1"},
    ]})
    assert r.status_code == 200
    return client_auth
