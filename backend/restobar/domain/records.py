"""
Registros tipados que cruzan el puerto de almacenamiento.

Los adaptadores (SQLAlchemy o memoria) siempre devuelven estos modelos,
validados con pydantic al salir del almacenamiento; los servicios nunca
reciben filas del ORM.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import ArticleType, CashSessionStatus, MovementDirection, ReservationStatus, TableOrderStatus, TransactionType


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)


def _upper_code(v: str) -> str:
    return v.strip().upper() if isinstance(v, str) else v


# ===== INVENTARIO =====

class ArticleRecord(_Record):
    code: str
    name: str
    article_type: ArticleType = ArticleType.SIMPLE
    conversion_factor: Decimal = Field(gt=0)
    storage_unit: Optional[str] = None
    retail_unit: Optional[str] = None
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return _upper_code(v)

    @property
    def is_kit(self) -> bool:
        return self.article_type == ArticleType.KIT


class KitComponentRecord(_Record):
    kit_code: str
    component_code: str
    quantity_retail: Decimal = Field(gt=0)

    @field_validator("kit_code", "component_code")
    @classmethod
    def normalize_codes(cls, v: str) -> str:
        return _upper_code(v)


class WarehouseRecord(_Record):
    code: str
    name: str
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return _upper_code(v)


class NewTransaction(_Record):
    transaction_code: str
    transaction_type: TransactionType
    warehouse_code: str
    occurred_at: datetime
    reference: Optional[str] = None
    counterparty_name: Optional[str] = None
    reason: Optional[str] = None
    authorized_by: Optional[str] = None
    notes: Optional[str] = None


class TransactionRecord(NewTransaction):
    id: int
    total_amount: Decimal = Decimal("0")
    created_at: datetime


class NewMovement(_Record):
    transaction_id: int
    transaction_type: TransactionType
    transaction_code: str
    article_code: str
    warehouse_code: str
    direction: MovementDirection
    quantity_retail: Decimal
    quantity_storage: Decimal
    balance_retail: Decimal
    balance_storage: Decimal
    occurred_at: datetime
    reference: Optional[str] = None
    counterparty_name: Optional[str] = None
    source_kit_code: Optional[str] = None


class KardexRow(NewMovement):
    """Renglón persistido del kardex"""
    id: int
    created_at: datetime

    @property
    def delta_retail(self) -> Decimal:
        return self.quantity_retail if self.direction == MovementDirection.IN else -self.quantity_retail


# ===== CAJAS =====

class CashRegisterRecord(_Record):
    code: str
    name: str
    warehouse_code: Optional[str] = None
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return _upper_code(v)


class NewCashSession(_Record):
    cash_register_code: str
    admin_user_id: int
    opening_amount: Decimal
    opening_at: datetime
    opening_notes: Optional[str] = None


class CashSessionRecord(NewCashSession):
    id: int
    status: CashSessionStatus = CashSessionStatus.OPEN
    closing_amount: Optional[Decimal] = None
    closing_at: Optional[datetime] = None
    closing_notes: Optional[str] = None
    closing_user_id: Optional[int] = None
    totals_snapshot: Optional[dict] = None


class InvoicePaymentRecord(_Record):
    session_id: int
    invoice_number: str
    method: str
    amount: Decimal


class PaymentReconciliationRecord(_Record):
    method: str
    expected_amount: Decimal
    reported_amount: Decimal
    difference_amount: Decimal
    transaction_count: int


# ===== MESAS =====

class OrderLine(_Record):
    article_code: str
    name: str
    unit_price: Decimal = Field(ge=0)
    quantity: Decimal = Field(gt=0)
    notes: Optional[str] = None


class TableReservation(_Record):
    status: ReservationStatus = ReservationStatus.HOLDING
    reserved_by: str
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    party_size: Optional[int] = None
    notes: Optional[str] = None
    scheduled_for: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TableRecord(_Record):
    id: str
    label: str
    zone: Optional[str] = None
    capacity: Optional[int] = None
    is_active: bool = True
    sort_order: int = 0

    @field_validator("id")
    @classmethod
    def normalize_id(cls, v: str) -> str:
        return _upper_code(v)


class TableStateRecord(_Record):
    table_id: str
    assigned_waiter_id: Optional[int] = None
    assigned_waiter_name: Optional[str] = None
    status: TableOrderStatus = TableOrderStatus.NORMAL
    pending_items: List[OrderLine] = Field(default_factory=list)
    sent_items: List[OrderLine] = Field(default_factory=list)
    reservation: Optional[TableReservation] = None
    updated_at: Optional[datetime] = None
