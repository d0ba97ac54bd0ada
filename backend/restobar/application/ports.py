"""
Puerto de almacenamiento
========================

Los servicios dependen de estas interfaces, NO de implementaciones concretas.
Hay dos adaptadores:

- ``infrastructure.unit_of_work.SqlStorage``: SQLAlchemy sobre la base relacional
- ``infrastructure.memory_store.MemoryStorage``: mapas en memoria (modo demo,
  un solo proceso, no apto para escritores concurrentes)

El adaptador se elige una sola vez al arrancar (``dependencies.build_storage``).
"""
from contextlib import AbstractContextManager
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol, Sequence

from ..domain.enums import TransactionType
from ..domain.records import (
    ArticleRecord,
    CashRegisterRecord,
    CashSessionRecord,
    InvoicePaymentRecord,
    KardexRow,
    KitComponentRecord,
    NewCashSession,
    NewMovement,
    NewTransaction,
    PaymentReconciliationRecord,
    TableRecord,
    TableStateRecord,
    TransactionRecord,
    WarehouseRecord,
)


class ArticleRepositoryPort(Protocol):
    def get(self, code: str) -> Optional[ArticleRecord]: ...
    def add(self, article: ArticleRecord) -> ArticleRecord: ...
    def list(self, include_inactive: bool = False, search: Optional[str] = None) -> List[ArticleRecord]: ...


class KitRepositoryPort(Protocol):
    def components(self, kit_code: str) -> List[KitComponentRecord]: ...
    def replace(self, kit_code: str, components: Sequence[KitComponentRecord]) -> List[KitComponentRecord]: ...


class WarehouseRepositoryPort(Protocol):
    def get(self, code: str) -> Optional[WarehouseRecord]: ...
    def add(self, warehouse: WarehouseRecord) -> WarehouseRecord: ...
    def list(self, include_inactive: bool = False) -> List[WarehouseRecord]: ...


class TransactionRepositoryPort(Protocol):
    def next_code(self, transaction_type: TransactionType) -> str: ...
    def add(self, transaction: NewTransaction) -> TransactionRecord: ...
    def set_total(self, transaction_id: int, total_amount: Decimal) -> None: ...
    def get_by_code(self, transaction_code: str) -> Optional[TransactionRecord]: ...
    def list(
        self,
        transaction_types: Iterable[TransactionType] = (),
        warehouse_codes: Iterable[str] = (),
        search: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 50,
    ) -> List[TransactionRecord]: ...


class MovementRepositoryPort(Protocol):
    def add(self, movement: NewMovement) -> KardexRow: ...
    def latest(self, article_code: str, warehouse_code: str) -> Optional[KardexRow]: ...
    def for_transactions(self, transaction_ids: Iterable[int]) -> List[KardexRow]: ...
    def list(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        article_codes: Iterable[str] = (),
        warehouse_codes: Iterable[str] = (),
    ) -> List[KardexRow]: ...
    def latest_per_pair(self, article_codes: Iterable[str] = (), warehouse_codes: Iterable[str] = ()) -> List[KardexRow]: ...


class CashRegisterRepositoryPort(Protocol):
    def get_register(self, code: str) -> Optional[CashRegisterRecord]: ...
    def add_register(self, register: CashRegisterRecord) -> CashRegisterRecord: ...
    def is_assigned(self, admin_user_id: int, code: str) -> bool: ...
    def assign(self, admin_user_id: int, code: str) -> None: ...
    def get_session(self, session_id: int) -> Optional[CashSessionRecord]: ...
    def find_open_session(self, admin_user_id: Optional[int] = None, cash_register_code: Optional[str] = None) -> Optional[CashSessionRecord]: ...
    def add_session(self, session: NewCashSession) -> CashSessionRecord: ...
    def close_session(self, session: CashSessionRecord) -> Optional[CashSessionRecord]: ...
    def add_invoice_payment(self, payment: InvoicePaymentRecord) -> InvoicePaymentRecord: ...
    def invoice_payments(self, session_id: int) -> List[InvoicePaymentRecord]: ...
    def upsert_reconciliation(self, session_id: int, row: PaymentReconciliationRecord) -> None: ...
    def reconciliations(self, session_id: int) -> List[PaymentReconciliationRecord]: ...


class TableRepositoryPort(Protocol):
    def get_table(self, table_id: str) -> Optional[TableRecord]: ...
    def add_table(self, table: TableRecord) -> TableRecord: ...
    def list_tables(self, include_inactive: bool = False) -> List[TableRecord]: ...
    def get_state(self, table_id: str) -> Optional[TableStateRecord]: ...
    def save_state(self, state: TableStateRecord) -> TableStateRecord: ...


class UnitOfWorkPort(Protocol):
    articles: ArticleRepositoryPort
    kits: KitRepositoryPort
    warehouses: WarehouseRepositoryPort
    transactions: TransactionRepositoryPort
    movements: MovementRepositoryPort
    cash: CashRegisterRepositoryPort
    tables: TableRepositoryPort

    def commit(self) -> None: ...
    def rollback(self) -> None: ...
    def close(self) -> None: ...
    def transaction(self) -> AbstractContextManager["UnitOfWorkPort"]: ...


class StoragePort(Protocol):
    def unit_of_work(self) -> UnitOfWorkPort: ...
