"""
Modelos de Cajas
================

Caja registradora, asignación a usuarios administradores, sesiones de
apertura/cierre, pagos de facturas de la sesión y conciliación por método.
"""
from sqlalchemy import String, Boolean, ForeignKey, Numeric, DateTime, Integer, JSON, UniqueConstraint, Index, text
from sqlalchemy.orm import relationship, Mapped, mapped_column
from datetime import datetime
from decimal import Decimal
from ..db import Base


class CashRegister(Base):
    __tablename__ = "cash_registers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(30), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(120))
    warehouse_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)


class CashRegisterAssignment(Base):
    __tablename__ = "cash_register_assignments"
    __table_args__ = (
        UniqueConstraint("admin_user_id", "cash_register_code", name="uq_cash_register_assignment"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    admin_user_id: Mapped[int] = mapped_column(Integer, index=True)
    cash_register_code: Mapped[str] = mapped_column(ForeignKey("cash_registers.code"))


OPEN_ONLY = text("status = 'OPEN'")


class CashRegisterSession(Base):
    """Apertura de caja; a lo más una ABIERTA por caja y por usuario"""
    __tablename__ = "cash_register_sessions"
    __table_args__ = (
        Index(
            "uq_cash_register_sessions_open_by_register", "cash_register_code",
            unique=True, sqlite_where=OPEN_ONLY, postgresql_where=OPEN_ONLY,
        ),
        Index(
            "uq_cash_register_sessions_open_by_user", "admin_user_id",
            unique=True, sqlite_where=OPEN_ONLY, postgresql_where=OPEN_ONLY,
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    cash_register_code: Mapped[str] = mapped_column(ForeignKey("cash_registers.code"), index=True)
    admin_user_id: Mapped[int] = mapped_column(Integer, index=True)
    status: Mapped[str] = mapped_column(String(10), default="OPEN", index=True)
    opening_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    opening_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    opening_notes: Mapped[str | None] = mapped_column(String(400), nullable=True)
    closing_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    closing_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    closing_notes: Mapped[str | None] = mapped_column(String(400), nullable=True)
    closing_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    totals_snapshot: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    invoice_payments = relationship("SessionInvoicePayment", back_populates="session")
    reconciliations = relationship("SessionPaymentReconciliation", back_populates="session")


class SessionInvoicePayment(Base):
    """Pago de una factura cobrada durante la sesión"""
    __tablename__ = "cash_register_session_invoice_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_id: Mapped[int] = mapped_column(ForeignKey("cash_register_sessions.id"), index=True)
    invoice_number: Mapped[str] = mapped_column(String(40))
    method: Mapped[str] = mapped_column(String(30))
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    session = relationship("CashRegisterSession", back_populates="invoice_payments")


class SessionPaymentReconciliation(Base):
    """Esperado vs. reportado por método de pago; una fila por sesión y método"""
    __tablename__ = "cash_register_session_payments"
    __table_args__ = (
        UniqueConstraint("session_id", "method", name="uq_session_payment_method"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_id: Mapped[int] = mapped_column(ForeignKey("cash_register_sessions.id"), index=True)
    method: Mapped[str] = mapped_column(String(30))
    expected_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    reported_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    difference_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    transaction_count: Mapped[int] = mapped_column(Integer, default=0)

    session = relationship("CashRegisterSession", back_populates="reconciliations")
