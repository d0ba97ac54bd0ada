"""
Tests de agrupación del kardex
"""
from datetime import datetime, timedelta
from decimal import Decimal

from restobar.application.kardex import build_kardex, rebuild_balances, verify_chain
from restobar.domain.enums import MovementDirection, TransactionType
from restobar.domain.records import KardexRow

BASE = datetime(2025, 3, 1, 8, 0)


def row(id, article, warehouse, direction, quantity, balance, minutes, created_offset=0):
    occurred = BASE + timedelta(minutes=minutes)
    return KardexRow(
        id=id,
        transaction_id=id,
        transaction_type=TransactionType.ADJUSTMENT,
        transaction_code=f"AJU-{id:06d}",
        article_code=article,
        warehouse_code=warehouse,
        direction=direction,
        quantity_retail=Decimal(quantity),
        quantity_storage=Decimal(quantity),
        balance_retail=Decimal(balance),
        balance_storage=Decimal(balance),
        occurred_at=occurred,
        created_at=occurred + timedelta(seconds=created_offset),
    )


IN, OUT = MovementDirection.IN, MovementDirection.OUT


def test_agrupa_y_ordena_filas_desordenadas():
    rows = [
        row(3, "COKE-600", "BODEGA", OUT, "5", "15", 30),
        row(1, "COKE-600", "BODEGA", IN, "10", "20", 10),
        row(5, "BURGER", "BODEGA", IN, "2", "2", 5),
        row(2, "COKE-600", "BARRA", IN, "4", "4", 20),
    ]
    groups = build_kardex(rows)

    assert [(g.article_code, g.warehouse_code) for g in groups] == [
        ("BURGER", "BODEGA"), ("COKE-600", "BARRA"), ("COKE-600", "BODEGA"),
    ]
    coke = groups[2]
    assert [e.row.id for e in coke.entries] == [1, 3]
    assert [e.delta for e in coke.entries] == [Decimal("10"), Decimal("-5")]
    assert coke.initial_balance == Decimal("10")
    assert coke.final_balance == Decimal("15")
    assert coke.total_in == Decimal("10")
    assert coke.total_out == Decimal("5")


def test_empate_de_fecha_se_resuelve_por_creacion():
    rows = [
        row(8, "FRIES", "BODEGA", OUT, "1", "9", 0, created_offset=2),
        row(7, "FRIES", "BODEGA", IN, "10", "10", 0, created_offset=1),
    ]
    [group] = build_kardex(rows)
    assert [e.row.id for e in group.entries] == [7, 8]
    assert group.initial_balance == 0
    assert verify_chain(group)


def test_reconstruccion_de_la_cadena():
    rows = [
        row(1, "COKE-600", "BODEGA", IN, "24", "124", 0),
        row(2, "COKE-600", "BODEGA", OUT, "5", "119", 1),
        row(3, "COKE-600", "BODEGA", OUT, "0.416667", "118.583333", 2),
        row(4, "COKE-600", "BODEGA", IN, "12", "130.583333", 3),
    ]
    [group] = build_kardex(rows)
    assert group.initial_balance == Decimal("100")
    rebuilt = rebuild_balances(group.initial_balance, [e.delta for e in group.entries])
    assert rebuilt == [r.balance_retail for r in rows]
    assert verify_chain(group)


def test_cadena_rota_se_detecta():
    rows = [
        row(1, "BURGER", "BODEGA", IN, "5", "5", 0),
        row(2, "BURGER", "BODEGA", OUT, "1", "3", 1),
    ]
    [group] = build_kardex(rows)
    assert not verify_chain(group)


def test_sin_filas():
    assert build_kardex([]) == []
    assert rebuild_balances(Decimal("3"), []) == []
