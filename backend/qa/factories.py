"""Datos de prueba compartidos por los tests de servicios y de API."""
from datetime import datetime
from decimal import Decimal

from restobar.application.dtos import ArticleIn, KitComponentIn, TransactionHeaderIn, TransactionLineIn, WarehouseIn
from restobar.application.services_inventario import InventarioService
from restobar.domain.enums import ArticleType, InventoryUnit
from restobar.domain.records import OrderLine
from restobar.security.auth import create_access_token


def seed_catalog(service: InventarioService) -> InventarioService:
    """
    BODEGA y BARRA; COKE-600 (caja de 12 botellas), BURGER, FRIES (bolsa de
    10 porciones) y el kit COMBO-1 = BURGER x1 + FRIES x1.
    """
    service.crear_almacen(WarehouseIn(code="BODEGA", name="Bodega principal"))
    service.crear_almacen(WarehouseIn(code="BARRA", name="Barra"))
    service.crear_articulo(ArticleIn(
        code="COKE-600", name="Coca-Cola 600ml", conversion_factor=Decimal("12"),
        storage_unit="caja", retail_unit="botella",
    ))
    service.crear_articulo(ArticleIn(code="BURGER", name="Hamburguesa", conversion_factor=Decimal("1")))
    service.crear_articulo(ArticleIn(
        code="FRIES", name="Papas", conversion_factor=Decimal("10"), storage_unit="bolsa", retail_unit="porción",
    ))
    service.crear_articulo(ArticleIn(code="COMBO-1", name="Combo hamburguesa", article_type=ArticleType.KIT))
    service.definir_componentes_kit("COMBO-1", [
        KitComponentIn(component_code="BURGER", quantity_retail=Decimal("1")),
        KitComponentIn(component_code="FRIES", quantity_retail=Decimal("1")),
    ])
    return service


def header(warehouse="BODEGA", lines=(), occurred_at=None, **extra) -> TransactionHeaderIn:
    return TransactionHeaderIn(
        warehouse_code=warehouse,
        occurred_at=occurred_at,
        lines=[TransactionLineIn(**item) for item in lines],
        **extra,
    )


def line(article_code, quantity, unit=InventoryUnit.RETAIL, **extra) -> dict:
    return {"article_code": article_code, "quantity": Decimal(str(quantity)), "unit": unit, **extra}


def at(day, hour=12, minute=0) -> datetime:
    return datetime(2025, 3, day, hour, minute)


def order_line(code="COKE-600", quantity=2, price="25.00") -> OrderLine:
    return OrderLine(article_code=code, name=code.title(), unit_price=Decimal(price), quantity=Decimal(str(quantity)))


def auth_headers(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}
