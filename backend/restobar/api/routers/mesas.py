"""
API de Mesas (meseros)
======================

El mesero que opera es el ``sub`` del token.
"""
from fastapi import APIRouter, Depends

from ...application.dtos import ClaimTableIn, ReservationIn, TableIn, TableOrderIn, TableStatusIn
from ...application.services_mesas import MesaService
from ...dependencies import get_mesa_service
from ...security.auth import get_current_user_id
from ..errors import http_error

router = APIRouter(prefix="/meseros/mesas", tags=["mesas"])


@router.post("")
def create_table(
    payload: TableIn,
    service: MesaService = Depends(get_mesa_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return service.crear_mesa(payload).model_dump()
    except Exception as e:
        raise http_error(e, "crear la mesa")


@router.get("/disponibles")
def list_available_tables(
    service: MesaService = Depends(get_mesa_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return {"items": [t.model_dump() for t in service.listar_disponibles()]}
    except Exception as e:
        raise http_error(e, "listar mesas disponibles")


@router.get("/{table_id}")
def get_table_state(
    table_id: str,
    service: MesaService = Depends(get_mesa_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return service.obtener_estado(table_id).model_dump()
    except Exception as e:
        raise http_error(e, "consultar la mesa")


@router.post("/{table_id}/tomar")
def claim_table(
    table_id: str,
    payload: ClaimTableIn,
    service: MesaService = Depends(get_mesa_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return service.tomar_mesa(table_id, user_id, payload.waiter_name).model_dump()
    except Exception as e:
        raise http_error(e, "tomar la mesa")


@router.put("/{table_id}/pedido")
def store_order(
    table_id: str,
    payload: TableOrderIn,
    service: MesaService = Depends(get_mesa_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return service.guardar_pedido(table_id, user_id, payload.waiter_name, payload.lines).model_dump()
    except Exception as e:
        raise http_error(e, "guardar el pedido")


@router.post("/{table_id}/enviar")
def send_order(
    table_id: str,
    service: MesaService = Depends(get_mesa_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return service.enviar_pedido(table_id, user_id).model_dump()
    except Exception as e:
        raise http_error(e, "enviar el pedido")


@router.post("/{table_id}/estado")
def change_status(
    table_id: str,
    payload: TableStatusIn,
    service: MesaService = Depends(get_mesa_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return service.cambiar_estado(table_id, payload.status).model_dump()
    except Exception as e:
        raise http_error(e, "cambiar el estado de la mesa")


@router.post("/{table_id}/reservacion")
def reserve_table(
    table_id: str,
    payload: ReservationIn,
    service: MesaService = Depends(get_mesa_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return service.reservar_mesa(table_id, payload).model_dump()
    except Exception as e:
        raise http_error(e, "reservar la mesa")


@router.delete("/{table_id}/reservacion")
def cancel_reservation(
    table_id: str,
    service: MesaService = Depends(get_mesa_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return service.cancelar_reservacion(table_id).model_dump()
    except Exception as e:
        raise http_error(e, "cancelar la reservación")


@router.post("/{table_id}/liberar")
def release_table(
    table_id: str,
    service: MesaService = Depends(get_mesa_service),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return service.liberar_mesa(table_id).model_dump()
    except Exception as e:
        raise http_error(e, "liberar la mesa")
