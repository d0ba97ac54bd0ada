"""
Servicios de Mesas
==================

Estado de la comanda por mesa: mesero asignado, líneas pendientes y enviadas,
estado (normal / facturado / anulado) y reservación.
"""
from datetime import datetime
from typing import List, Optional, Sequence

from ..domain.enums import ReservationStatus, TableOrderStatus
from ..domain.errors import NoEncontradoError, ReglaNegocioError, ValidacionError
from ..domain.records import OrderLine, TableRecord, TableReservation, TableStateRecord
from .dtos import ReservationIn, TableIn
from .ports import StoragePort, UnitOfWorkPort
import logging

logger = logging.getLogger(__name__)


class MesaError(ReglaNegocioError):
    """Excepción base para reglas de negocio del módulo de mesas"""
    pass


class MesaNoEncontradaError(NoEncontradoError):
    pass


def empty_state(table_id: str, status: TableOrderStatus = TableOrderStatus.NORMAL) -> TableStateRecord:
    return TableStateRecord(table_id=table_id, status=status, updated_at=datetime.now())


def is_table_state_available(state: Optional[TableStateRecord]) -> bool:
    """Libre: sin reservación, sin mesero, sin pendientes y sin enviados mientras está en normal."""
    if state is None:
        return True
    if state.reservation is not None:
        return False
    if state.assigned_waiter_id is not None:
        return False
    if state.pending_items:
        return False
    if state.status == TableOrderStatus.NORMAL and state.sent_items:
        return False
    return True


def _restart_status(state: Optional[TableStateRecord]) -> TableOrderStatus:
    if state is None or state.status in (TableOrderStatus.FACTURADO, TableOrderStatus.ANULADO):
        return TableOrderStatus.NORMAL
    return state.status


class MesaService:
    def __init__(self, storage: StoragePort):
        self.storage = storage

    def _mesa_activa(self, uow: UnitOfWorkPort, table_id: str) -> TableRecord:
        table = uow.tables.get_table(table_id)
        if not table:
            raise MesaNoEncontradaError("Mesa no encontrada")
        if not table.is_active:
            raise MesaError("La mesa está inactiva")
        return table

    def _validar_mesero(self, state: Optional[TableStateRecord], waiter_id: int) -> None:
        if (
            state is not None
            and state.assigned_waiter_id is not None
            and state.assigned_waiter_id != waiter_id
            and state.status == TableOrderStatus.NORMAL
        ):
            raise MesaError("La mesa está asignada a otro mesero")

    def crear_mesa(self, payload: TableIn) -> TableRecord:
        with self.storage.unit_of_work().transaction() as uow:
            if uow.tables.get_table(payload.id):
                raise MesaError("Ya existe una mesa con ese código")
            table = uow.tables.add_table(TableRecord(**payload.model_dump()))
            logger.info(f"Mesa {table.id} creada")
            return table

    def obtener_estado(self, table_id: str) -> TableStateRecord:
        with self.storage.unit_of_work().transaction() as uow:
            table = uow.tables.get_table(table_id)
            if not table:
                raise MesaNoEncontradaError("Mesa no encontrada")
            return uow.tables.get_state(table.id) or empty_state(table.id)

    def tomar_mesa(self, table_id: str, waiter_id: int, waiter_name: str) -> TableStateRecord:
        """
        El mesero toma la mesa. Una comanda facturada o anulada reinicia en
        normal y una reservación en espera pasa a sentada.
        """
        with self.storage.unit_of_work().transaction() as uow:
            table = self._mesa_activa(uow, table_id)
            current = uow.tables.get_state(table.id)
            self._validar_mesero(current, waiter_id)

            now = datetime.now()
            reservation = None
            if current and current.reservation:
                reservation = current.reservation.model_copy(update={"status": ReservationStatus.SEATED, "updated_at": now})
            state = uow.tables.save_state(TableStateRecord(
                table_id=table.id,
                assigned_waiter_id=waiter_id,
                assigned_waiter_name=waiter_name,
                status=_restart_status(current),
                pending_items=list(current.pending_items) if current else [],
                sent_items=list(current.sent_items) if current else [],
                reservation=reservation,
                updated_at=now,
            ))
            logger.info(f"Mesa {table.id} tomada por mesero {waiter_id}")
            return state

    def guardar_pedido(self, table_id: str, waiter_id: int, waiter_name: str, lines: Sequence[OrderLine]) -> TableStateRecord:
        """Reemplaza las líneas pendientes de la comanda."""
        with self.storage.unit_of_work().transaction() as uow:
            table = self._mesa_activa(uow, table_id)
            current = uow.tables.get_state(table.id)
            self._validar_mesero(current, waiter_id)
            status = _restart_status(current)
            state = uow.tables.save_state(TableStateRecord(
                table_id=table.id,
                assigned_waiter_id=waiter_id,
                assigned_waiter_name=waiter_name,
                status=status,
                pending_items=list(lines),
                sent_items=list(current.sent_items) if current and current.status == status else [],
                reservation=current.reservation if current else None,
                updated_at=datetime.now(),
            ))
            logger.info(f"Mesa {table.id}: {len(lines)} líneas pendientes")
            return state

    def enviar_pedido(self, table_id: str, waiter_id: int) -> TableStateRecord:
        """Pasa las líneas pendientes a enviadas (cocina/barra)."""
        with self.storage.unit_of_work().transaction() as uow:
            table = self._mesa_activa(uow, table_id)
            current = uow.tables.get_state(table.id)
            self._validar_mesero(current, waiter_id)
            if not current or not current.pending_items:
                raise ValidacionError("No hay productos pendientes por enviar")
            state = uow.tables.save_state(current.model_copy(update={
                "pending_items": [],
                "sent_items": list(current.sent_items) + list(current.pending_items),
                "updated_at": datetime.now(),
            }))
            logger.info(f"Mesa {table.id}: {len(current.pending_items)} líneas enviadas")
            return state

    def cambiar_estado(self, table_id: str, status: TableOrderStatus) -> TableStateRecord:
        """Salir de normal (facturar o anular) limpia mesero, líneas y reservación."""
        status = TableOrderStatus(status)
        with self.storage.unit_of_work().transaction() as uow:
            table = uow.tables.get_table(table_id)
            if not table:
                raise MesaNoEncontradaError("Mesa no encontrada")
            current = uow.tables.get_state(table.id) or empty_state(table.id)
            if status == TableOrderStatus.NORMAL:
                state = current.model_copy(update={"status": status, "updated_at": datetime.now()})
            else:
                state = empty_state(table.id, status)
            state = uow.tables.save_state(state)
            logger.info(f"Mesa {table.id}: estado {status.value}")
            return state

    def reservar_mesa(self, table_id: str, payload: ReservationIn) -> TableStateRecord:
        reserved_by = (payload.reserved_by or "").strip()
        if not reserved_by:
            raise ValidacionError("Debes indicar quién realiza la reservación")
        with self.storage.unit_of_work().transaction() as uow:
            table = self._mesa_activa(uow, table_id)
            current = uow.tables.get_state(table.id)
            if current and current.reservation:
                if current.reservation.status == ReservationStatus.HOLDING:
                    raise MesaError("La mesa ya está reservada")
                raise MesaError("La mesa está ocupada")
            if current and (current.assigned_waiter_id is not None or current.pending_items or current.sent_items):
                raise MesaError("La mesa está ocupada")

            now = datetime.now()
            reservation = TableReservation(
                status=ReservationStatus.HOLDING,
                reserved_by=reserved_by,
                contact_name=payload.contact_name,
                contact_phone=payload.contact_phone,
                party_size=payload.party_size,
                notes=payload.notes,
                scheduled_for=payload.scheduled_for,
                created_at=now,
                updated_at=now,
            )
            state = uow.tables.save_state(TableStateRecord(
                table_id=table.id,
                status=_restart_status(current),
                reservation=reservation,
                updated_at=now,
            ))
            logger.info(f"Mesa {table.id} reservada por {reserved_by}")
            return state

    def cancelar_reservacion(self, table_id: str) -> TableStateRecord:
        """Quita la reservación sin tocar la comanda."""
        with self.storage.unit_of_work().transaction() as uow:
            table = uow.tables.get_table(table_id)
            if not table:
                raise MesaNoEncontradaError("Mesa no encontrada")
            current = uow.tables.get_state(table.id) or empty_state(table.id)
            state = uow.tables.save_state(current.model_copy(update={"reservation": None, "updated_at": datetime.now()}))
            logger.info(f"Mesa {table.id}: reservación cancelada")
            return state

    def liberar_mesa(self, table_id: str) -> TableStateRecord:
        with self.storage.unit_of_work().transaction() as uow:
            table = uow.tables.get_table(table_id)
            if not table:
                raise MesaNoEncontradaError("Mesa no encontrada")
            state = uow.tables.save_state(empty_state(table.id))
            logger.info(f"Mesa {table.id} liberada")
            return state

    def listar_disponibles(self) -> List[TableRecord]:
        with self.storage.unit_of_work().transaction() as uow:
            return [
                table for table in uow.tables.list_tables()
                if is_table_state_available(uow.tables.get_state(table.id))
            ]
