"""
Adaptador de almacenamiento en memoria (modo demo).

Implementa el mismo puerto que el adaptador relacional. El estado vive en un
``MemoryState`` creado explícitamente y compartido por las unidades de trabajo
del mismo ``MemoryStorage``. Solo para un proceso: no hay bloqueo entre
escritores concurrentes.
"""
import copy
import itertools
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..domain.enums import CashSessionStatus, TRANSACTION_CODE_PREFIXES, TransactionType
from ..domain.errors import RegistroDuplicadoError
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


def _key(code: str) -> str:
    return code.strip().upper()


def _codes(values: Iterable[str]) -> set:
    return {_key(v) for v in values if v and v.strip()}


def _chronological(row: KardexRow):
    return (row.occurred_at, row.created_at, row.id)


@dataclass
class MemoryState:
    articles: Dict[str, ArticleRecord] = field(default_factory=dict)
    kit_components: Dict[str, List[KitComponentRecord]] = field(default_factory=dict)
    warehouses: Dict[str, WarehouseRecord] = field(default_factory=dict)
    transactions: Dict[int, TransactionRecord] = field(default_factory=dict)
    movements: List[KardexRow] = field(default_factory=list)
    registers: Dict[str, CashRegisterRecord] = field(default_factory=dict)
    assignments: set = field(default_factory=set)
    sessions: Dict[int, CashSessionRecord] = field(default_factory=dict)
    invoice_payments: List[InvoicePaymentRecord] = field(default_factory=list)
    reconciliations: Dict[Tuple[int, str], PaymentReconciliationRecord] = field(default_factory=dict)
    tables: Dict[str, TableRecord] = field(default_factory=dict)
    table_states: Dict[str, TableStateRecord] = field(default_factory=dict)
    sequence: itertools.count = field(default_factory=lambda: itertools.count(1))

    def next_id(self) -> int:
        return next(self.sequence)


class MemoryArticleRepository:
    def __init__(self, state: MemoryState): self.state = state

    def get(self, code: str) -> Optional[ArticleRecord]:
        return self.state.articles.get(_key(code))

    def add(self, article: ArticleRecord) -> ArticleRecord:
        self.state.articles[article.code] = article
        return article

    def list(self, include_inactive: bool = False, search: Optional[str] = None) -> List[ArticleRecord]:
        needle = (search or "").strip().lower()
        return [
            a for _, a in sorted(self.state.articles.items())
            if (include_inactive or a.is_active) and (not needle or needle in a.code.lower() or needle in a.name.lower())
        ]


class MemoryKitRepository:
    def __init__(self, state: MemoryState): self.state = state

    def components(self, kit_code: str) -> List[KitComponentRecord]:
        return list(self.state.kit_components.get(_key(kit_code), []))

    def replace(self, kit_code: str, components: Sequence[KitComponentRecord]) -> List[KitComponentRecord]:
        self.state.kit_components[_key(kit_code)] = list(components)
        return self.components(kit_code)


class MemoryWarehouseRepository:
    def __init__(self, state: MemoryState): self.state = state

    def get(self, code: str) -> Optional[WarehouseRecord]:
        return self.state.warehouses.get(_key(code))

    def add(self, warehouse: WarehouseRecord) -> WarehouseRecord:
        self.state.warehouses[warehouse.code] = warehouse
        return warehouse

    def list(self, include_inactive: bool = False) -> List[WarehouseRecord]:
        return [w for _, w in sorted(self.state.warehouses.items()) if include_inactive or w.is_active]


class MemoryTransactionRepository:
    def __init__(self, state: MemoryState): self.state = state

    def next_code(self, transaction_type: TransactionType) -> str:
        count = sum(1 for t in self.state.transactions.values() if t.transaction_type == transaction_type)
        return f"{TRANSACTION_CODE_PREFIXES[transaction_type]}-{count + 1:06d}"

    def add(self, transaction: NewTransaction) -> TransactionRecord:
        record = TransactionRecord(
            **transaction.model_dump(),
            id=self.state.next_id(),
            created_at=datetime.now(),
        )
        self.state.transactions[record.id] = record
        return record

    def set_total(self, transaction_id: int, total_amount: Decimal) -> None:
        current = self.state.transactions[transaction_id]
        self.state.transactions[transaction_id] = current.model_copy(update={"total_amount": total_amount})

    def get_by_code(self, transaction_code: str) -> Optional[TransactionRecord]:
        code = _key(transaction_code)
        return next((t for t in self.state.transactions.values() if t.transaction_code == code), None)

    def list(
        self,
        transaction_types: Iterable[TransactionType] = (),
        warehouse_codes: Iterable[str] = (),
        search: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 50,
    ) -> List[TransactionRecord]:
        types = {TransactionType(t) for t in transaction_types}
        warehouses = _codes(warehouse_codes)
        needle = (search or "").strip().lower()

        def matches(t: TransactionRecord) -> bool:
            if types and t.transaction_type not in types:
                return False
            if warehouses and t.warehouse_code not in warehouses:
                return False
            if needle and not any(needle in (v or "").lower() for v in (t.transaction_code, t.reference, t.counterparty_name)):
                return False
            return (date_from is None or t.occurred_at >= date_from) and (date_to is None or t.occurred_at <= date_to)

        rows = sorted(
            (t for t in self.state.transactions.values() if matches(t)),
            key=lambda t: (t.occurred_at, t.id),
            reverse=True,
        )
        return rows[:limit]


class MemoryMovementRepository:
    def __init__(self, state: MemoryState): self.state = state

    def _filtered(self, article_codes: Iterable[str], warehouse_codes: Iterable[str]) -> List[KardexRow]:
        articles = _codes(article_codes)
        warehouses = _codes(warehouse_codes)
        rows = [
            r for r in self.state.movements
            if (not articles or r.article_code in articles) and (not warehouses or r.warehouse_code in warehouses)
        ]
        return sorted(rows, key=_chronological)

    def add(self, movement: NewMovement) -> KardexRow:
        row = KardexRow(**movement.model_dump(), id=self.state.next_id(), created_at=datetime.now())
        self.state.movements.append(row)
        return row

    def latest(self, article_code: str, warehouse_code: str) -> Optional[KardexRow]:
        rows = self._filtered([article_code], [warehouse_code])
        return rows[-1] if rows else None

    def for_transactions(self, transaction_ids: Iterable[int]) -> List[KardexRow]:
        ids = set(transaction_ids)
        return sorted((r for r in self.state.movements if r.transaction_id in ids), key=lambda r: r.id)

    def list(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        article_codes: Iterable[str] = (),
        warehouse_codes: Iterable[str] = (),
    ) -> List[KardexRow]:
        return [
            r for r in self._filtered(article_codes, warehouse_codes)
            if (date_from is None or r.occurred_at >= date_from) and (date_to is None or r.occurred_at <= date_to)
        ]

    def latest_per_pair(self, article_codes: Iterable[str] = (), warehouse_codes: Iterable[str] = ()) -> List[KardexRow]:
        latest = {}
        for row in self._filtered(article_codes, warehouse_codes):
            latest[(row.article_code, row.warehouse_code)] = row
        return [row for _, row in sorted(latest.items())]


class MemoryCashRegisterRepository:
    def __init__(self, state: MemoryState): self.state = state

    def get_register(self, code: str) -> Optional[CashRegisterRecord]:
        return self.state.registers.get(_key(code))

    def add_register(self, register: CashRegisterRecord) -> CashRegisterRecord:
        self.state.registers[register.code] = register
        return register

    def is_assigned(self, admin_user_id: int, code: str) -> bool:
        return (admin_user_id, _key(code)) in self.state.assignments

    def assign(self, admin_user_id: int, code: str) -> None:
        self.state.assignments.add((admin_user_id, _key(code)))

    def get_session(self, session_id: int) -> Optional[CashSessionRecord]:
        return self.state.sessions.get(session_id)

    def find_open_session(self, admin_user_id: Optional[int] = None, cash_register_code: Optional[str] = None) -> Optional[CashSessionRecord]:
        code = _key(cash_register_code) if cash_register_code else None
        for session in sorted(self.state.sessions.values(), key=lambda s: s.id, reverse=True):
            if session.status != CashSessionStatus.OPEN:
                continue
            if admin_user_id is None and code is None:
                return session
            if admin_user_id is not None and session.admin_user_id == admin_user_id:
                return session
            if code is not None and session.cash_register_code == code:
                return session
        return None

    def add_session(self, session: NewCashSession) -> CashSessionRecord:
        if self.find_open_session(admin_user_id=session.admin_user_id, cash_register_code=session.cash_register_code):
            raise RegistroDuplicadoError("Ya existe una apertura activa para el usuario o la caja seleccionada")
        record = CashSessionRecord(**session.model_dump(), id=self.state.next_id())
        self.state.sessions[record.id] = record
        return record

    def close_session(self, session: CashSessionRecord) -> Optional[CashSessionRecord]:
        current = self.state.sessions.get(session.id)
        if current is None or current.status != CashSessionStatus.OPEN:
            return None
        closed = current.model_copy(update={
            "status": CashSessionStatus.CLOSED,
            "closing_amount": session.closing_amount,
            "closing_at": session.closing_at,
            "closing_notes": session.closing_notes,
            "closing_user_id": session.closing_user_id,
            "totals_snapshot": session.totals_snapshot,
        })
        self.state.sessions[session.id] = closed
        return closed

    def add_invoice_payment(self, payment: InvoicePaymentRecord) -> InvoicePaymentRecord:
        self.state.invoice_payments.append(payment)
        return payment

    def invoice_payments(self, session_id: int) -> List[InvoicePaymentRecord]:
        return [p for p in self.state.invoice_payments if p.session_id == session_id]

    def upsert_reconciliation(self, session_id: int, row: PaymentReconciliationRecord) -> None:
        self.state.reconciliations[(session_id, row.method)] = row

    def reconciliations(self, session_id: int) -> List[PaymentReconciliationRecord]:
        return [row for (sid, _), row in sorted(self.state.reconciliations.items()) if sid == session_id]


class MemoryTableRepository:
    def __init__(self, state: MemoryState): self.state = state

    def get_table(self, table_id: str) -> Optional[TableRecord]:
        return self.state.tables.get(_key(table_id))

    def add_table(self, table: TableRecord) -> TableRecord:
        self.state.tables[table.id] = table
        return table

    def list_tables(self, include_inactive: bool = False) -> List[TableRecord]:
        tables = [t for t in self.state.tables.values() if include_inactive or t.is_active]
        return sorted(tables, key=lambda t: (t.sort_order, t.label))

    def get_state(self, table_id: str) -> Optional[TableStateRecord]:
        return self.state.table_states.get(_key(table_id))

    def save_state(self, state: TableStateRecord) -> TableStateRecord:
        self.state.table_states[state.table_id] = state
        return state


class MemoryUnitOfWork:
    def __init__(self, state: MemoryState):
        self.state = state
        self._snapshot: Optional[dict] = None
        self.articles = MemoryArticleRepository(state)
        self.kits = MemoryKitRepository(state)
        self.warehouses = MemoryWarehouseRepository(state)
        self.transactions = MemoryTransactionRepository(state)
        self.movements = MemoryMovementRepository(state)
        self.cash = MemoryCashRegisterRepository(state)
        self.tables = MemoryTableRepository(state)

    def _take_snapshot(self) -> None:
        self._snapshot = {k: copy.deepcopy(v) for k, v in vars(self.state).items() if k != "sequence"}

    def commit(self):
        self._snapshot = None

    def rollback(self):
        if self._snapshot is not None:
            for name, value in self._snapshot.items():
                setattr(self.state, name, value)
            self._snapshot = None

    def close(self):
        self._snapshot = None

    @contextmanager
    def transaction(self):
        self._take_snapshot()
        try:
            yield self
            self.commit()
        except Exception:
            self.rollback()
            raise
        finally:
            self.close()


class MemoryStorage:
    """Adaptador en memoria; cada instancia tiene su propio estado."""

    def __init__(self, state: Optional[MemoryState] = None):
        self.state = state or MemoryState()

    def unit_of_work(self) -> MemoryUnitOfWork:
        return MemoryUnitOfWork(self.state)
