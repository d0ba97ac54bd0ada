"""
Modelos del Dominio de Inventario
==================================

- Artículo (con factor de conversión almacenamiento → menudeo)
- Componente de kit
- Almacén
- Transacción de inventario (compra, consumo, ajuste, traspaso)
- Movimiento de inventario (renglón del kardex, solo se agrega)
"""
from sqlalchemy import String, Boolean, ForeignKey, Numeric, DateTime, Integer, UniqueConstraint, Index
from sqlalchemy.orm import relationship, Mapped, mapped_column
from datetime import datetime
from decimal import Decimal
from ..db import Base

QUANTITY_TYPE = Numeric(18, 6)


class Article(Base):
    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(60), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200))
    article_type: Mapped[str] = mapped_column(String(10), default="SIMPLE")
    conversion_factor: Mapped[Decimal] = mapped_column(QUANTITY_TYPE, default=Decimal("1"))
    storage_unit: Mapped[str | None] = mapped_column(String(40), nullable=True)
    retail_unit: Mapped[str | None] = mapped_column(String(40), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    components = relationship(
        "KitComponent",
        back_populates="kit",
        foreign_keys="KitComponent.kit_article_id",
        cascade="all, delete-orphan",
    )


class KitComponent(Base):
    """
    Componente de un kit: cantidad (en unidades de menudeo) que se mueve
    por cada unidad del kit.
    """
    __tablename__ = "kit_components"
    __table_args__ = (
        UniqueConstraint("kit_article_id", "component_article_id", name="uq_kit_component"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    kit_article_id: Mapped[int] = mapped_column(ForeignKey("articles.id"), index=True)
    component_article_id: Mapped[int] = mapped_column(ForeignKey("articles.id"))
    quantity_retail: Mapped[Decimal] = mapped_column(QUANTITY_TYPE)

    kit = relationship("Article", foreign_keys=[kit_article_id], back_populates="components")
    component = relationship("Article", foreign_keys=[component_article_id])


class Warehouse(Base):
    __tablename__ = "warehouses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)


class InventoryTransaction(Base):
    """Encabezado de una compra, consumo, ajuste o traspaso"""
    __tablename__ = "inventory_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    transaction_code: Mapped[str] = mapped_column(String(30), unique=True, index=True)
    transaction_type: Mapped[str] = mapped_column(String(20), index=True)
    warehouse_code: Mapped[str] = mapped_column(String(50))
    occurred_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    reference: Mapped[str | None] = mapped_column(String(120), nullable=True)
    counterparty_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    reason: Mapped[str | None] = mapped_column(String(200), nullable=True)
    authorized_by: Mapped[str | None] = mapped_column(String(120), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(400), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    movements = relationship("InventoryMovement", back_populates="transaction")


class InventoryMovement(Base):
    """
    Renglón del kardex. Nunca se modifica después de insertarse; el saldo
    encadena sobre el renglón anterior del mismo artículo y almacén.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        Index("ix_movements_article_warehouse_time", "article_code", "warehouse_code", "occurred_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("inventory_transactions.id"), index=True)
    transaction_type: Mapped[str] = mapped_column(String(20))
    transaction_code: Mapped[str] = mapped_column(String(30))
    article_code: Mapped[str] = mapped_column(String(60))
    warehouse_code: Mapped[str] = mapped_column(String(50))
    direction: Mapped[str] = mapped_column(String(3))
    quantity_retail: Mapped[Decimal] = mapped_column(QUANTITY_TYPE)
    quantity_storage: Mapped[Decimal] = mapped_column(QUANTITY_TYPE)
    balance_retail: Mapped[Decimal] = mapped_column(QUANTITY_TYPE)
    balance_storage: Mapped[Decimal] = mapped_column(QUANTITY_TYPE)
    occurred_at: Mapped[datetime] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    reference: Mapped[str | None] = mapped_column(String(120), nullable=True)
    counterparty_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    source_kit_code: Mapped[str | None] = mapped_column(String(60), nullable=True)

    transaction = relationship("InventoryTransaction", back_populates="movements")
