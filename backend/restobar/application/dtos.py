from pydantic import BaseModel, Field, constr
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from ..domain.enums import ArticleType, InventoryUnit, TableOrderStatus
from ..domain.records import OrderLine

# ===== INVENTARIO =====

class ArticleIn(BaseModel):
    code: constr(strip_whitespace=True, min_length=1)
    name: constr(strip_whitespace=True, min_length=1)
    article_type: ArticleType = ArticleType.SIMPLE
    conversion_factor: Decimal = Field(Decimal("1"), gt=0)  # unidades de detalle por unidad de almacén
    storage_unit: Optional[str] = None  # ej: "caja"
    retail_unit: Optional[str] = None  # ej: "botella"

class WarehouseIn(BaseModel):
    code: constr(strip_whitespace=True, min_length=1)
    name: constr(strip_whitespace=True, min_length=1)

class KitComponentIn(BaseModel):
    component_code: constr(strip_whitespace=True, min_length=1)
    quantity_retail: Decimal = Field(..., gt=0)

class KitComponentsIn(BaseModel):
    components: List[KitComponentIn]

class TransactionLineIn(BaseModel):
    article_code: constr(strip_whitespace=True, min_length=1)
    quantity: Decimal  # en ajustes puede ser negativa
    unit: InventoryUnit
    cost_per_unit: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None

class TransactionHeaderIn(BaseModel):
    occurred_at: Optional[datetime] = None  # por defecto: ahora
    warehouse_code: constr(strip_whitespace=True, min_length=1)
    reference: Optional[str] = None
    counterparty_name: Optional[str] = None  # proveedor en compras
    reason: Optional[str] = None
    authorized_by: Optional[str] = None
    notes: Optional[str] = None
    lines: List[TransactionLineIn] = []

class TransferIn(BaseModel):
    occurred_at: Optional[datetime] = None
    from_warehouse_code: constr(strip_whitespace=True, min_length=1)
    to_warehouse_code: constr(strip_whitespace=True, min_length=1)
    reference: Optional[str] = None
    authorized_by: Optional[str] = None
    requested_by: Optional[str] = None
    notes: Optional[str] = None
    lines: List[TransactionLineIn] = []

# ===== CAJAS =====

class CashRegisterIn(BaseModel):
    code: constr(strip_whitespace=True, min_length=1)
    name: constr(strip_whitespace=True, min_length=1)
    warehouse_code: Optional[str] = None

class CashAssignmentIn(BaseModel):
    admin_user_id: int
    cash_register_code: constr(strip_whitespace=True, min_length=1)

class DenominationIn(BaseModel):
    currency: str
    value: Decimal = Field(..., gt=0)
    quantity: int = Field(..., ge=0)

class CashOpeningIn(BaseModel):
    cash_register_code: constr(strip_whitespace=True, min_length=1)
    opening_amount: Decimal
    opening_notes: Optional[str] = None
    denominations: Optional[List[DenominationIn]] = None

class PaymentIn(BaseModel):
    method: constr(strip_whitespace=True, min_length=1)  # CASH, CARD, TRANSFER, OTHER
    amount: Decimal
    transaction_count: Optional[int] = None

class InvoicePaymentIn(BaseModel):
    invoice_number: constr(strip_whitespace=True, min_length=1)
    payments: List[PaymentIn]

class CashClosingIn(BaseModel):
    session_id: Optional[int] = None
    closing_amount: Decimal
    payments: List[PaymentIn] = []
    closing_notes: Optional[str] = None
    denominations: Optional[List[DenominationIn]] = None  # efectivo contado al cierre

# ===== MESAS =====

class TableIn(BaseModel):
    id: constr(strip_whitespace=True, min_length=1)
    label: constr(strip_whitespace=True, min_length=1)
    zone: Optional[str] = None
    capacity: Optional[int] = Field(None, gt=0)
    sort_order: int = 0

class ClaimTableIn(BaseModel):
    waiter_name: constr(strip_whitespace=True, min_length=1)

class TableOrderIn(BaseModel):
    waiter_name: constr(strip_whitespace=True, min_length=1)
    lines: List[OrderLine]

class TableStatusIn(BaseModel):
    status: TableOrderStatus

class ReservationIn(BaseModel):
    reserved_by: str
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    party_size: Optional[int] = Field(None, gt=0)
    notes: Optional[str] = None
    scheduled_for: Optional[datetime] = None
