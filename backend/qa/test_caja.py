"""
Tests de apertura, pagos y cierre de caja
"""
import pytest
from datetime import datetime
from decimal import Decimal

from restobar.application.dtos import (
    CashClosingIn,
    CashOpeningIn,
    CashRegisterIn,
    DenominationIn,
    InvoicePaymentIn,
    PaymentIn,
)
from restobar.application.services_caja import (
    CajaError,
    ExpectedPayment,
    ReportedPayment,
    SesionNoEncontradaError,
    build_closure_summary,
)
from restobar.domain.enums import CashSessionStatus
from restobar.domain.errors import NoEncontradoError, RegistroDuplicadoError, ReglaNegocioError, ValidacionError
from restobar.domain.records import CashSessionRecord, NewCashSession, PaymentReconciliationRecord
from restobar.infrastructure.memory_store import MemoryCashRegisterRepository

ADMIN = 1
OTRO_ADMIN = 2


def session_record(**extra):
    data = dict(
        id=10, cash_register_code="CAJA-1", admin_user_id=ADMIN,
        opening_amount=Decimal("500"), opening_at=datetime(2025, 3, 1, 8, 0),
    )
    data.update(extra)
    return CashSessionRecord(**data)


def pago(method, amount, count=None):
    return PaymentIn(method=method, amount=Decimal(str(amount)), transaction_count=count)


@pytest.fixture
def caja_lista(caja):
    caja.crear_caja(CashRegisterIn(code="caja-1", name="Caja principal"))
    caja.crear_caja(CashRegisterIn(code="CAJA-2", name="Caja terraza"))
    caja.asignar_caja(ADMIN, "CAJA-1")
    caja.asignar_caja(ADMIN, "CAJA-2")
    caja.asignar_caja(OTRO_ADMIN, "CAJA-2")
    return caja


def abrir(caja, admin=ADMIN, code="CAJA-1", amount="500", allow_unassigned=False, **extra):
    return caja.abrir_sesion(
        admin,
        CashOpeningIn(cash_register_code=code, opening_amount=Decimal(amount), **extra),
        allow_unassigned=allow_unassigned,
    )


def conciliacion(reported, difference, count, method="CASH", expected="100"):
    return PaymentReconciliationRecord(
        method=method, expected_amount=Decimal(expected), reported_amount=Decimal(reported),
        difference_amount=Decimal(difference), transaction_count=count,
    )


@pytest.fixture
def sesion_con_ventas(caja_lista):
    session = abrir(caja_lista)
    caja_lista.registrar_pago_factura(session.id, InvoicePaymentIn(
        invoice_number="F-0001", payments=[pago("cash", 100), pago("card", 50)],
    ))
    caja_lista.registrar_pago_factura(session.id, InvoicePaymentIn(
        invoice_number="F-0002", payments=[pago("CASH", 30)],
    ))
    return session


class TestBuildClosureSummary:

    def test_diferencias_por_metodo(self):
        summary = build_closure_summary(
            session=session_record(),
            closing_user_id=ADMIN,
            closing_amount=Decimal("630"),
            closing_at=datetime(2025, 3, 1, 22, 0),
            closing_notes=None,
            expected_payments=[
                ExpectedPayment(method="cash", amount=Decimal("130"), transaction_count=2),
                ExpectedPayment(method="CARD", amount=Decimal("50"), transaction_count=1),
            ],
            reported_payments=[
                ReportedPayment(method="Cash", amount=Decimal("100"), transaction_count=1),
                ReportedPayment(method=" cash ", amount=Decimal("25"), transaction_count=0),
                ReportedPayment(method="TRANSFER", amount=Decimal("20"), transaction_count=3),
            ],
            total_invoices=2,
        )

        assert [p.method for p in summary.payments] == ["CARD", "CASH", "TRANSFER"]
        card, cash, transfer = summary.payments
        assert (cash.expected_amount, cash.reported_amount, cash.difference_amount) == (
            Decimal("130.00"), Decimal("125.00"), Decimal("5.00"),
        )
        assert cash.transaction_count == 2
        assert (card.reported_amount, card.difference_amount) == (Decimal("0"), Decimal("50.00"))
        assert (transfer.expected_amount, transfer.difference_amount, transfer.transaction_count) == (
            Decimal("0"), Decimal("-20.00"), 3,
        )
        assert summary.expected_total_amount == Decimal("180.00")
        assert summary.reported_total_amount == Decimal("145.00")
        assert summary.difference_total_amount == Decimal("35.00")
        assert summary.total_invoices == 2

    @pytest.mark.parametrize("expected,reported", [
        ([("CASH", "10.10")], [("CASH", "10.05"), ("CARD", "3.333")]),
        ([("CASH", "0")], []),
        ([], [("OTHER", "99.99")]),
        ([("CASH", "1000"), ("CARD", "250.75"), ("QR", "12.40")], [("cash", "999.50"), ("card", "250.75")]),
    ])
    def test_suma_de_diferencias(self, expected, reported):
        summary = build_closure_summary(
            session=session_record(), closing_user_id=ADMIN, closing_amount=0,
            closing_at=datetime(2025, 3, 1, 22, 0), closing_notes=None,
            expected_payments=[ExpectedPayment(method=m, amount=Decimal(a)) for m, a in expected],
            reported_payments=[ReportedPayment(method=m, amount=Decimal(a)) for m, a in reported],
            total_invoices=0,
        )
        expected_sum = sum((p.expected_amount for p in summary.payments), Decimal("0"))
        reported_sum = sum((p.reported_amount for p in summary.payments), Decimal("0"))
        difference_sum = sum((p.difference_amount for p in summary.payments), Decimal("0"))
        assert expected_sum - reported_sum == difference_sum
        assert summary.difference_total_amount == difference_sum


class TestApertura:

    def test_abrir_sesion(self, caja_lista):
        session = abrir(caja_lista, opening_notes="  turno matutino  ")
        assert session.status == CashSessionStatus.OPEN
        assert session.cash_register_code == "CAJA-1"
        assert session.opening_amount == Decimal("500.00")
        assert session.opening_notes == "turno matutino"
        assert caja_lista.obtener_sesion_activa(ADMIN).id == session.id

    def test_monto_negativo(self, caja_lista):
        with pytest.raises(ValidacionError, match="positivo o cero"):
            abrir(caja_lista, amount="-1")

    def test_caja_no_asignada(self, caja_lista):
        with pytest.raises(CajaError, match="No tienes permisos para operar la caja CAJA-1"):
            abrir(caja_lista, admin=OTRO_ADMIN, code="CAJA-1")

    def test_caja_no_asignada_permitida(self, caja_lista):
        session = abrir(caja_lista, admin=OTRO_ADMIN, code="CAJA-1", allow_unassigned=True)
        assert session.admin_user_id == OTRO_ADMIN

    def test_caja_inexistente(self, caja_lista):
        with pytest.raises(NoEncontradoError):
            abrir(caja_lista, code="CAJA-9", allow_unassigned=True)

    def test_una_sesion_por_usuario(self, caja_lista):
        abrir(caja_lista)
        with pytest.raises(CajaError, match="Ya existe una apertura activa"):
            abrir(caja_lista, code="CAJA-2")

    def test_una_sesion_por_caja(self, caja_lista):
        abrir(caja_lista, code="CAJA-2")
        with pytest.raises(CajaError, match="Ya existe una apertura activa"):
            abrir(caja_lista, admin=OTRO_ADMIN, code="CAJA-2")

    def test_denominaciones(self, caja_lista):
        denominations = [
            DenominationIn(currency="mxn", value=Decimal("200"), quantity=2),
            DenominationIn(currency="MXN", value=Decimal("50"), quantity=2),
        ]
        session = abrir(caja_lista, denominations=denominations)
        assert session.opening_amount == Decimal("500.00")

    def test_denominaciones_en_otra_moneda(self, caja_lista):
        with pytest.raises(ValidacionError, match="deben ser en MXN"):
            abrir(caja_lista, denominations=[DenominationIn(currency="USD", value=Decimal("100"), quantity=5)])

    def test_denominaciones_no_cuadran(self, caja_lista):
        with pytest.raises(ValidacionError, match="no coincide"):
            abrir(caja_lista, denominations=[DenominationIn(currency="MXN", value=Decimal("100"), quantity=4)])


class TestCierre:

    def test_cierre_con_faltante(self, caja_lista, storage, sesion_con_ventas):
        summary = caja_lista.cerrar_sesion(ADMIN, CashClosingIn(
            closing_amount=Decimal("625"),
            payments=[pago("cash", 125), pago("Card", 50, 1)],
            closing_notes="faltan 5",
        ))
        assert summary.session_id == sesion_con_ventas.id
        assert summary.total_invoices == 2
        assert summary.expected_total_amount == Decimal("180.00")
        assert summary.reported_total_amount == Decimal("175.00")
        assert summary.difference_total_amount == Decimal("5.00")
        cash = next(p for p in summary.payments if p.method == "CASH")
        assert cash.transaction_count == 2
        assert cash.difference_amount == Decimal("5.00")

        assert caja_lista.obtener_sesion_activa(ADMIN) is None
        report = caja_lista.obtener_reporte_cierre(sesion_con_ventas.id)
        assert report == summary

        uow = storage.unit_of_work()
        rows = uow.cash.reconciliations(sesion_con_ventas.id)
        assert [(r.method, r.difference_amount) for r in rows] == [("CARD", Decimal("0.00")), ("CASH", Decimal("5.00"))]
        closed = uow.cash.get_session(sesion_con_ventas.id)
        assert closed.status == CashSessionStatus.CLOSED
        assert closed.closing_user_id == ADMIN

    def test_cerrar_dos_veces(self, caja_lista, sesion_con_ventas):
        caja_lista.cerrar_sesion(ADMIN, CashClosingIn(closing_amount=Decimal("0")))
        with pytest.raises(CajaError, match="ya fue cerrada"):
            caja_lista.cerrar_sesion(ADMIN, CashClosingIn(session_id=sesion_con_ventas.id, closing_amount=Decimal("0")))
        with pytest.raises(SesionNoEncontradaError, match="No se encontró una apertura de caja activa"):
            caja_lista.cerrar_sesion(ADMIN, CashClosingIn(closing_amount=Decimal("0")))

    def test_solo_quien_abrio_cierra(self, caja_lista, sesion_con_ventas):
        with pytest.raises(ReglaNegocioError, match="Solo el usuario que abrió la caja puede cerrarla"):
            caja_lista.cerrar_sesion(OTRO_ADMIN, CashClosingIn(
                session_id=sesion_con_ventas.id, closing_amount=Decimal("0"),
            ))
        assert caja_lista.obtener_sesion_activa(ADMIN) is not None

    def test_sin_sesion_abierta(self, caja_lista):
        with pytest.raises(SesionNoEncontradaError):
            caja_lista.cerrar_sesion(ADMIN, CashClosingIn(closing_amount=Decimal("0")))

    def test_montos_negativos(self, caja_lista, sesion_con_ventas):
        with pytest.raises(ValidacionError, match="El monto de cierre debe ser positivo o cero"):
            caja_lista.cerrar_sesion(ADMIN, CashClosingIn(closing_amount=Decimal("-1")))
        with pytest.raises(ValidacionError, match="Los montos reportados deben ser válidos y no negativos"):
            caja_lista.cerrar_sesion(ADMIN, CashClosingIn(closing_amount=Decimal("1"), payments=[pago("CASH", -1)]))

    def test_pago_en_sesion_cerrada(self, caja_lista, sesion_con_ventas):
        caja_lista.cerrar_sesion(ADMIN, CashClosingIn(closing_amount=Decimal("0")))
        with pytest.raises(CajaError, match="ya fue cerrada"):
            caja_lista.registrar_pago_factura(sesion_con_ventas.id, InvoicePaymentIn(
                invoice_number="F-0003", payments=[pago("CASH", 10)],
            ))

    def test_denominaciones_de_cierre(self, caja_lista, sesion_con_ventas):
        with pytest.raises(ValidacionError, match="no coincide con el monto de cierre"):
            caja_lista.cerrar_sesion(ADMIN, CashClosingIn(
                closing_amount=Decimal("130"),
                payments=[pago("CASH", 130)],
                denominations=[DenominationIn(currency="MXN", value=Decimal("100"), quantity=1)],
            ))

    def test_reporte_de_sesion_abierta(self, caja_lista, sesion_con_ventas):
        with pytest.raises(CajaError, match="aún no ha sido cerrada"):
            caja_lista.obtener_reporte_cierre(sesion_con_ventas.id)


class TestConcurrenciaMemoria:
    """El adaptador en memoria respeta las mismas garantías que la base."""

    def test_segunda_apertura_en_el_repositorio(self, caja_lista, storage):
        abrir(caja_lista, code="CAJA-2")
        with pytest.raises(RegistroDuplicadoError):
            with storage.unit_of_work().transaction() as uow:
                uow.cash.add_session(NewCashSession(
                    cash_register_code="CAJA-2", admin_user_id=OTRO_ADMIN,
                    opening_amount=Decimal("0"), opening_at=datetime(2025, 3, 1, 9, 0),
                ))
        assert caja_lista.obtener_sesion_activa(OTRO_ADMIN) is None

    def test_cierre_con_lectura_vieja(self, caja_lista, sesion_con_ventas, monkeypatch):
        caja_lista.cerrar_sesion(ADMIN, CashClosingIn(closing_amount=Decimal("0")))

        # otra transacción leyó la sesión cuando aún estaba abierta
        monkeypatch.setattr(MemoryCashRegisterRepository, "get_session", lambda self, session_id: sesion_con_ventas)
        with pytest.raises(CajaError, match="ya fue cerrada"):
            caja_lista.cerrar_sesion(ADMIN, CashClosingIn(session_id=sesion_con_ventas.id, closing_amount=Decimal("999")))
        monkeypatch.undo()

        report = caja_lista.obtener_reporte_cierre(sesion_con_ventas.id)
        assert report.closing_amount == Decimal("0.00")

    def test_conciliacion_se_reescribe(self, storage, sesion_con_ventas):
        session_id = sesion_con_ventas.id
        with storage.unit_of_work().transaction() as uow:
            uow.cash.upsert_reconciliation(session_id, conciliacion("90", "10", 1))
            uow.cash.upsert_reconciliation(session_id, conciliacion("100", "0", 2))
            rows = uow.cash.reconciliations(session_id)
        assert [(r.method, r.reported_amount, r.difference_amount, r.transaction_count) for r in rows] == [
            ("CASH", Decimal("100"), Decimal("0"), 2),
        ]
