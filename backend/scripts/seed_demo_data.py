#!/usr/bin/env python3
"""
Script para cargar datos de demostración en Restobar.

Uso:
  cd backend && python -m scripts.seed_demo_data
  cd backend && python scripts/seed_demo_data.py

Crea (si no existen):
- Almacenes BODEGA y BARRA
- Artículos COKE-600 (caja de 12), BURGER, FRIES (bolsa de 10) y el kit COMBO-1
- Compra inicial en BODEGA
- Caja CAJA-1 asignada al usuario 1
- Mesas M1 a M6

Al final imprime un token de desarrollo para el usuario 1.
"""
import sys
from pathlib import Path
from decimal import Decimal

# Agregar backend al path
backend_dir = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend_dir))

from restobar.application.dtos import (
    ArticleIn,
    CashRegisterIn,
    KitComponentIn,
    TableIn,
    TransactionHeaderIn,
    TransactionLineIn,
    WarehouseIn,
)
from restobar.application.services_caja import CajaService
from restobar.application.services_inventario import InventarioService
from restobar.application.services_mesas import MesaService
from restobar.config import settings
from restobar.dependencies import build_storage
from restobar.domain.enums import ArticleType, InventoryUnit
from restobar.domain.errors import RestobarError
from restobar.security.auth import create_access_token

DEMO_ADMIN_ID = 1

WAREHOUSES = [("BODEGA", "Bodega principal"), ("BARRA", "Barra")]

ARTICLES = [
    ArticleIn(code="COKE-600", name="Coca-Cola 600ml", conversion_factor=Decimal("12"), storage_unit="caja", retail_unit="botella"),
    ArticleIn(code="BURGER", name="Hamburguesa", storage_unit="pieza", retail_unit="pieza"),
    ArticleIn(code="FRIES", name="Papas a la francesa", conversion_factor=Decimal("10"), storage_unit="bolsa", retail_unit="porción"),
    ArticleIn(code="COMBO-1", name="Combo hamburguesa con papas", article_type=ArticleType.KIT),
]


def seed_inventario(service: InventarioService) -> int:
    count = 0
    for code, name in WAREHOUSES:
        try:
            service.crear_almacen(WarehouseIn(code=code, name=name))
            count += 1
        except RestobarError as e:
            print(f"   ⚠ Almacén {code}: {e}")

    for article in ARTICLES:
        try:
            service.crear_articulo(article)
            count += 1
        except RestobarError as e:
            print(f"   ⚠ Artículo {article.code}: {e}")

    service.definir_componentes_kit("COMBO-1", [
        KitComponentIn(component_code="BURGER", quantity_retail=Decimal("1")),
        KitComponentIn(component_code="FRIES", quantity_retail=Decimal("1")),
    ])
    print(f"   ✓ Catálogo listo ({count} registros nuevos)")

    if service.obtener_existencias(warehouse_codes=["BODEGA"]):
        print("   ⚠ BODEGA ya tiene existencias, saltando compra inicial")
        return count

    transaction, rows = service.registrar_compra(TransactionHeaderIn(
        warehouse_code="BODEGA",
        reference="DEMO-0001",
        counterparty_name="Proveedor Demo",
        notes="Compra inicial de demostración",
        lines=[
            TransactionLineIn(article_code="COKE-600", quantity=Decimal("4"), unit=InventoryUnit.STORAGE, cost_per_unit=Decimal("180")),
            TransactionLineIn(article_code="BURGER", quantity=Decimal("40"), unit=InventoryUnit.RETAIL, cost_per_unit=Decimal("35")),
            TransactionLineIn(article_code="FRIES", quantity=Decimal("5"), unit=InventoryUnit.STORAGE, cost_per_unit=Decimal("90")),
        ],
    ))
    print(f"   ✓ Compra {transaction.transaction_code}: {len(rows)} movimientos, total {transaction.total_amount}")
    return count + 1


def seed_caja(service: CajaService) -> int:
    try:
        service.crear_caja(CashRegisterIn(code="CAJA-1", name="Caja principal", warehouse_code="BARRA"))
    except RestobarError as e:
        print(f"   ⚠ Caja CAJA-1: {e}")
    service.asignar_caja(DEMO_ADMIN_ID, "CAJA-1")
    print(f"   ✓ CAJA-1 asignada al usuario {DEMO_ADMIN_ID}")
    return 1


def seed_mesas(service: MesaService) -> int:
    count = 0
    for i in range(1, 7):
        try:
            service.crear_mesa(TableIn(
                id=f"M{i}", label=f"Mesa {i}", zone="Terraza" if i > 4 else "Salón",
                capacity=2 if i % 2 else 4, sort_order=i,
            ))
            count += 1
        except RestobarError as e:
            print(f"   ⚠ Mesa M{i}: {e}")
    print(f"   ✓ {count} mesa(s) creada(s)")
    return count


def main():
    print("🌱 Restobar - Carga de datos de demostración")
    print("=" * 50)

    if settings.use_memory_storage:
        print("   ❌ STORAGE_BACKEND=memory: los datos se perderían al terminar. Usa STORAGE_BACKEND=sql")
        return 1

    storage = build_storage(settings)
    try:
        print("\n1. Inventario...")
        seed_inventario(InventarioService(storage))

        print("\n2. Cajas...")
        seed_caja(CajaService(storage, local_currency=settings.local_currency))

        print("\n3. Mesas...")
        seed_mesas(MesaService(storage))
    except RestobarError as e:
        print(f"\n❌ Error: {e}")
        return 1

    print("\n✅ Datos de demostración listos.")
    print(f"   Token de desarrollo (usuario {DEMO_ADMIN_ID}, válido solo con SECRET_KEY fijo en .env):")
    print(f"   {create_access_token({'sub': str(DEMO_ADMIN_ID)})}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
