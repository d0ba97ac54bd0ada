"""
Servicios de Caja
=================

Apertura y cierre de sesiones de caja registradora con conciliación por
método de pago.

- Una sola sesión ABIERTA por usuario y por caja
- Los pagos de facturas registrados durante la sesión forman lo "esperado"
- Al cerrar, el cajero reporta lo contado por método; la diferencia por
  método es esperado − reportado
- La sesión pasa a CERRADA una sola vez y guarda un resumen inmutable
"""
from collections import defaultdict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel

from ..domain.enums import CashSessionStatus
from ..domain.errors import NoEncontradoError, RegistroDuplicadoError, ReglaNegocioError, ValidacionError
from ..domain.records import (
    CashRegisterRecord,
    CashSessionRecord,
    InvoicePaymentRecord,
    NewCashSession,
    PaymentReconciliationRecord,
)
from .dtos import CashClosingIn, CashOpeningIn, CashRegisterIn, DenominationIn, InvoicePaymentIn, PaymentIn
from .ports import StoragePort
import logging

logger = logging.getLogger(__name__)

CASH_METHODS = ("CASH", "EFECTIVO")
NOTES_MAX_LENGTH = 400


class CajaError(ReglaNegocioError):
    """Excepción base para reglas de negocio del módulo de caja"""
    pass


class CajaValidacionError(ValidacionError):
    """Montos o denominaciones inválidos"""
    pass


class SesionNoEncontradaError(NoEncontradoError):
    """No hay sesión abierta, o la sesión indicada no existe"""
    pass


def round_currency(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _notes(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value[:NOTES_MAX_LENGTH] or None


class ExpectedPayment(BaseModel):
    method: str
    amount: Decimal
    transaction_count: int = 0


class ReportedPayment(BaseModel):
    method: str
    amount: Decimal
    transaction_count: int = 0


class PaymentBreakdown(BaseModel):
    method: str
    expected_amount: Decimal
    reported_amount: Decimal
    difference_amount: Decimal
    transaction_count: int


class ClosureSummary(BaseModel):
    session_id: int
    cash_register_code: str
    opened_by_admin_id: int
    opening_amount: Decimal
    opening_at: datetime
    closing_by_admin_id: int
    closing_amount: Decimal
    closing_at: datetime
    closing_notes: Optional[str] = None
    expected_total_amount: Decimal
    reported_total_amount: Decimal
    difference_total_amount: Decimal
    total_invoices: int
    payments: List[PaymentBreakdown]


def build_closure_summary(
    session: CashSessionRecord,
    closing_user_id: int,
    closing_amount,
    closing_at: datetime,
    closing_notes: Optional[str],
    expected_payments: Sequence[ExpectedPayment],
    reported_payments: Sequence[ReportedPayment],
    total_invoices: int,
) -> ClosureSummary:
    """
    Resumen de cierre por método de pago.

    Los métodos se normalizan a mayúsculas y se fusionan; el desglose queda
    ordenado por método. El número de transacciones es el mayor entre lo
    esperado y lo reportado.
    """
    expected: Dict[str, List] = defaultdict(lambda: [Decimal("0"), 0])
    for payment in expected_payments:
        slot = expected[payment.method.strip().upper()]
        slot[0] = round_currency(slot[0] + payment.amount)
        slot[1] += payment.transaction_count

    reported: Dict[str, List] = defaultdict(lambda: [Decimal("0"), 0])
    for payment in reported_payments:
        slot = reported[payment.method.strip().upper()]
        slot[0] = round_currency(slot[0] + payment.amount)
        slot[1] += payment.transaction_count

    breakdown = []
    for method in sorted(set(expected) | set(reported)):
        exp_amount, exp_count = expected.get(method, (Decimal("0"), 0))
        rep_amount, rep_count = reported.get(method, (Decimal("0"), 0))
        breakdown.append(PaymentBreakdown(
            method=method,
            expected_amount=round_currency(exp_amount),
            reported_amount=round_currency(rep_amount),
            difference_amount=round_currency(exp_amount - rep_amount),
            transaction_count=max(exp_count, rep_count),
        ))

    expected_total = sum((b.expected_amount for b in breakdown), Decimal("0"))
    reported_total = sum((b.reported_amount for b in breakdown), Decimal("0"))

    return ClosureSummary(
        session_id=session.id,
        cash_register_code=session.cash_register_code,
        opened_by_admin_id=session.admin_user_id,
        opening_amount=round_currency(session.opening_amount),
        opening_at=session.opening_at,
        closing_by_admin_id=closing_user_id,
        closing_amount=round_currency(closing_amount),
        closing_at=closing_at,
        closing_notes=closing_notes,
        expected_total_amount=round_currency(expected_total),
        reported_total_amount=round_currency(reported_total),
        difference_total_amount=round_currency(expected_total - reported_total),
        total_invoices=total_invoices,
        payments=breakdown,
    )


def expected_from_invoices(payments: Sequence[InvoicePaymentRecord]) -> List[ExpectedPayment]:
    """Agrupa los pagos de facturas por método (un pago = una transacción)."""
    totals: Dict[str, List] = defaultdict(lambda: [Decimal("0"), 0])
    for payment in payments:
        slot = totals[payment.method.strip().upper()]
        slot[0] += payment.amount
        slot[1] += 1
    return [
        ExpectedPayment(method=method, amount=round_currency(amount), transaction_count=count)
        for method, (amount, count) in totals.items()
    ]


class CajaService:
    """Ciclo de vida de las sesiones de caja."""

    def __init__(self, storage: StoragePort, local_currency: str = "MXN"):
        self.storage = storage
        self.local_currency = local_currency.strip().upper()

    def _validar_denominaciones(self, denominations: Sequence[DenominationIn], amount: Decimal, contexto: str) -> None:
        currencies = {d.currency.strip().upper() for d in denominations}
        if currencies != {self.local_currency}:
            raise CajaValidacionError(f"Las denominaciones de {contexto} deben ser en {self.local_currency}")
        total = sum((d.value * d.quantity for d in denominations), Decimal("0"))
        if round_currency(total) != round_currency(amount):
            raise CajaValidacionError(f"La suma de denominaciones no coincide con el monto de {contexto}")

    # ----- cajas -----

    def crear_caja(self, payload: CashRegisterIn) -> CashRegisterRecord:
        with self.storage.unit_of_work().transaction() as uow:
            if uow.cash.get_register(payload.code):
                raise CajaError("Ya existe una caja con ese código")
            if payload.warehouse_code:
                warehouse = uow.warehouses.get(payload.warehouse_code)
                if not warehouse or not warehouse.is_active:
                    raise CajaValidacionError(
                        f"El almacén {payload.warehouse_code.strip().upper()} no existe o está inactivo"
                    )
            register = uow.cash.add_register(CashRegisterRecord(
                code=payload.code,
                name=payload.name,
                warehouse_code=payload.warehouse_code.strip().upper() if payload.warehouse_code else None,
            ))
            logger.info(f"Caja {register.code} creada")
            return register

    def asignar_caja(self, admin_user_id: int, cash_register_code: str) -> None:
        with self.storage.unit_of_work().transaction() as uow:
            register = uow.cash.get_register(cash_register_code)
            if not register or not register.is_active:
                raise NoEncontradoError(f"La caja {cash_register_code} no existe o está inactiva")
            uow.cash.assign(admin_user_id, register.code)
            logger.info(f"Caja {register.code} asignada al usuario {admin_user_id}")

    # ----- sesiones -----

    def abrir_sesion(self, admin_user_id: int, payload: CashOpeningIn, allow_unassigned: bool = False) -> CashSessionRecord:
        """
        Abre una sesión para el usuario. ``allow_unassigned`` omite la
        verificación de asignación; solo para uso interno, nunca desde la API.
        """
        if payload.opening_amount < 0:
            raise CajaValidacionError("El monto de apertura debe ser positivo o cero")
        if payload.denominations:
            self._validar_denominaciones(payload.denominations, payload.opening_amount, "apertura")

        with self.storage.unit_of_work().transaction() as uow:
            register = uow.cash.get_register(payload.cash_register_code)
            if not register or not register.is_active:
                raise NoEncontradoError(f"La caja {payload.cash_register_code} no existe o está inactiva")
            if not allow_unassigned and not uow.cash.is_assigned(admin_user_id, register.code):
                raise CajaError(f"No tienes permisos para operar la caja {payload.cash_register_code}")
            if uow.cash.find_open_session(admin_user_id=admin_user_id, cash_register_code=register.code):
                raise CajaError("Ya existe una apertura activa para el usuario o la caja seleccionada")

            # El índice único parcial atrapa la apertura concurrente que pasó la verificación anterior
            try:
                session = uow.cash.add_session(NewCashSession(
                    cash_register_code=register.code,
                    admin_user_id=admin_user_id,
                    opening_amount=round_currency(payload.opening_amount),
                    opening_at=datetime.now(),
                    opening_notes=_notes(payload.opening_notes),
                ))
            except RegistroDuplicadoError as e:
                raise CajaError(str(e)) from e
            logger.info(
                f"Sesión {session.id} abierta en caja {register.code} por usuario {admin_user_id} "
                f"con {session.opening_amount}"
            )
            return session

    def registrar_pago_factura(self, session_id: int, payload: InvoicePaymentIn) -> List[InvoicePaymentRecord]:
        """Registra los pagos de una factura cobrada durante la sesión."""
        if not payload.payments:
            raise CajaValidacionError("Debes indicar al menos un pago")
        for payment in payload.payments:
            if payment.amount <= 0:
                raise CajaValidacionError("Los montos de pago deben ser mayores a cero")

        with self.storage.unit_of_work().transaction() as uow:
            session = uow.cash.get_session(session_id)
            if not session:
                raise SesionNoEncontradaError("No se encontró la sesión de caja")
            if session.status != CashSessionStatus.OPEN:
                raise CajaError("La sesión indicada ya fue cerrada")
            stored = [
                uow.cash.add_invoice_payment(InvoicePaymentRecord(
                    session_id=session.id,
                    invoice_number=payload.invoice_number,
                    method=payment.method.strip().upper(),
                    amount=round_currency(payment.amount),
                ))
                for payment in payload.payments
            ]
            logger.info(f"Factura {payload.invoice_number}: {len(stored)} pagos en sesión {session.id}")
            return stored

    def cerrar_sesion(self, admin_user_id: int, payload: CashClosingIn) -> ClosureSummary:
        """
        Cierra la sesión abierta del usuario (o la indicada) y guarda el resumen.

        El cambio de estado, el resumen y las filas de conciliación se escriben
        en una sola unidad de trabajo.
        """
        if payload.closing_amount < 0:
            raise CajaValidacionError("El monto de cierre debe ser positivo o cero")
        reported: List[ReportedPayment] = []
        for payment in payload.payments:
            if payment.amount < 0 or (payment.transaction_count or 0) < 0:
                raise CajaValidacionError("Los montos reportados deben ser válidos y no negativos")
            reported.append(ReportedPayment(
                method=payment.method.strip().upper(),
                amount=payment.amount,
                transaction_count=payment.transaction_count or 0,
            ))
        if payload.denominations:
            cash_reported = sum((p.amount for p in reported if p.method in CASH_METHODS), Decimal("0"))
            self._validar_denominaciones(payload.denominations, cash_reported, "cierre")

        with self.storage.unit_of_work().transaction() as uow:
            if payload.session_id is not None:
                session = uow.cash.get_session(payload.session_id)
            else:
                session = uow.cash.find_open_session(admin_user_id=admin_user_id)
            if not session:
                raise SesionNoEncontradaError("No se encontró una apertura de caja activa")
            if session.status != CashSessionStatus.OPEN:
                raise CajaError("La sesión indicada ya fue cerrada")
            if session.admin_user_id != admin_user_id:
                raise CajaError("Solo el usuario que abrió la caja puede cerrarla")

            invoice_payments = uow.cash.invoice_payments(session.id)
            closing_at = datetime.now()
            summary = build_closure_summary(
                session=session,
                closing_user_id=admin_user_id,
                closing_amount=payload.closing_amount,
                closing_at=closing_at,
                closing_notes=_notes(payload.closing_notes),
                expected_payments=expected_from_invoices(invoice_payments),
                reported_payments=reported,
                total_invoices=len({p.invoice_number for p in invoice_payments}),
            )

            closed = uow.cash.close_session(session.model_copy(update={
                "status": CashSessionStatus.CLOSED,
                "closing_amount": summary.closing_amount,
                "closing_at": closing_at,
                "closing_notes": summary.closing_notes,
                "closing_user_id": admin_user_id,
                "totals_snapshot": summary.model_dump(mode="json"),
            }))
            if closed is None:
                raise CajaError("La sesión indicada ya fue cerrada")
            for item in summary.payments:
                uow.cash.upsert_reconciliation(session.id, PaymentReconciliationRecord(
                    method=item.method,
                    expected_amount=item.expected_amount,
                    reported_amount=item.reported_amount,
                    difference_amount=item.difference_amount,
                    transaction_count=item.transaction_count,
                ))

            logger.info(
                f"Sesión {session.id} cerrada por usuario {admin_user_id}: esperado {summary.expected_total_amount}, "
                f"reportado {summary.reported_total_amount}, diferencia {summary.difference_total_amount}"
            )
            return summary

    def obtener_sesion_activa(self, admin_user_id: int) -> Optional[CashSessionRecord]:
        with self.storage.unit_of_work().transaction() as uow:
            return uow.cash.find_open_session(admin_user_id=admin_user_id)

    def obtener_reporte_cierre(self, session_id: int) -> ClosureSummary:
        """Resumen guardado al cerrar la sesión."""
        with self.storage.unit_of_work().transaction() as uow:
            session = uow.cash.get_session(session_id)
        if not session:
            raise SesionNoEncontradaError("No se encontró la sesión de caja")
        if session.status != CashSessionStatus.CLOSED or not session.totals_snapshot:
            raise CajaError("La sesión aún no ha sido cerrada")
        return ClosureSummary.model_validate(session.totals_snapshot)
