"""
API de Cajas
============

Apertura, pagos de facturas, cierre con conciliación y reporte de cierre.
El usuario que opera es el ``sub`` del token.
"""
from fastapi import APIRouter, Depends

from ...application.dtos import CashAssignmentIn, CashClosingIn, CashOpeningIn, CashRegisterIn, InvoicePaymentIn
from ...application.services_caja import CajaService
from ...dependencies import get_caja_service
from ...security.auth import get_current_user_id
from ..errors import http_error

router = APIRouter(prefix="/cajas", tags=["cajas"])


@router.post("")
def create_cash_register(
    payload: CashRegisterIn,
    service: CajaService = Depends(get_caja_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return service.crear_caja(payload).model_dump()
    except Exception as e:
        raise http_error(e, "crear la caja")


@router.post("/asignaciones")
def assign_cash_register(
    payload: CashAssignmentIn,
    service: CajaService = Depends(get_caja_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        service.asignar_caja(payload.admin_user_id, payload.cash_register_code)
        return {"admin_user_id": payload.admin_user_id, "cash_register_code": payload.cash_register_code.upper()}
    except Exception as e:
        raise http_error(e, "asignar la caja")


@router.post("/aperturas")
def open_session(
    payload: CashOpeningIn,
    service: CajaService = Depends(get_caja_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return service.abrir_sesion(user_id, payload).model_dump()
    except Exception as e:
        raise http_error(e, "abrir la caja")


@router.post("/aperturas/{session_id}/pagos")
def register_invoice_payment(
    session_id: int,
    payload: InvoicePaymentIn,
    service: CajaService = Depends(get_caja_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        payments = service.registrar_pago_factura(session_id, payload)
        return {"session_id": session_id, "payments": [p.model_dump() for p in payments]}
    except Exception as e:
        raise http_error(e, "registrar el pago")


@router.post("/cierres")
def close_session(
    payload: CashClosingIn,
    service: CajaService = Depends(get_caja_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return service.cerrar_sesion(user_id, payload).model_dump()
    except Exception as e:
        raise http_error(e, "cerrar la caja")


@router.get("/sesion-activa")
def get_active_session(
    service: CajaService = Depends(get_caja_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        session = service.obtener_sesion_activa(user_id)
    except Exception as e:
        raise http_error(e, "consultar la sesión activa")
    return {"session": session.model_dump() if session else None}


@router.get("/cierres/{session_id}/reporte")
def get_closure_report(
    session_id: int,
    service: CajaService = Depends(get_caja_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return service.obtener_reporte_cierre(session_id).model_dump()
    except Exception as e:
        raise http_error(e, "consultar el reporte de cierre")
