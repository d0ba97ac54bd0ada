"""
Modelos de Mesas
================

Definición de la mesa y su estado de comanda (mesero asignado, renglones
pendientes/enviados, estado y reservación).
"""
from sqlalchemy import String, Boolean, ForeignKey, DateTime, Integer, JSON
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from ..db import Base


class RestaurantTable(Base):
    __tablename__ = "restaurant_tables"

    id: Mapped[str] = mapped_column(String(30), primary_key=True)
    label: Mapped[str] = mapped_column(String(80))
    zone: Mapped[str | None] = mapped_column(String(80), nullable=True)
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)


class TableState(Base):
    __tablename__ = "table_state"

    table_id: Mapped[str] = mapped_column(ForeignKey("restaurant_tables.id"), primary_key=True)
    assigned_waiter_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    assigned_waiter_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    status: Mapped[str] = mapped_column(String(12), default="normal")
    pending_items: Mapped[list] = mapped_column(JSON, default=list)
    sent_items: Mapped[list] = mapped_column(JSON, default=list)
    reservation: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
