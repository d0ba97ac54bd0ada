from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain.enums import CashSessionStatus, TRANSACTION_CODE_PREFIXES, TransactionType
from ..domain.errors import RegistroDuplicadoError
from ..domain.models_caja import (
    CashRegister,
    CashRegisterAssignment,
    CashRegisterSession,
    SessionInvoicePayment,
    SessionPaymentReconciliation,
)
from ..domain.models_inventario import Article, InventoryMovement, InventoryTransaction, KitComponent, Warehouse
from ..domain.models_mesas import RestaurantTable, TableState
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


def _codes(values: Iterable[str]) -> List[str]:
    return sorted({v.strip().upper() for v in values if v and v.strip()})


class ArticleRepository:
    def __init__(self, db: Session): self.db = db

    def _by_code(self, code: str) -> Optional[Article]:
        return self.db.query(Article).filter(Article.code == code.strip().upper()).first()

    def get(self, code: str) -> Optional[ArticleRecord]:
        row = self._by_code(code)
        return ArticleRecord.model_validate(row) if row else None

    def add(self, article: ArticleRecord) -> ArticleRecord:
        data = article.model_dump()
        data["article_type"] = article.article_type.value
        row = Article(**data)
        self.db.add(row); self.db.flush()
        return ArticleRecord.model_validate(row)

    def list(self, include_inactive: bool = False, search: Optional[str] = None) -> List[ArticleRecord]:
        query = self.db.query(Article)
        if not include_inactive:
            query = query.filter(Article.is_active == True)  # noqa: E712
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Article.code.ilike(pattern), Article.name.ilike(pattern)))
        return [ArticleRecord.model_validate(r) for r in query.order_by(Article.code).all()]


class KitRepository:
    def __init__(self, db: Session): self.db = db

    def components(self, kit_code: str) -> List[KitComponentRecord]:
        kit = self.db.query(Article).filter(Article.code == kit_code.strip().upper()).first()
        if not kit:
            return []
        return [
            KitComponentRecord(kit_code=kit.code, component_code=c.component.code, quantity_retail=c.quantity_retail)
            for c in sorted(kit.components, key=lambda c: c.id)
        ]

    def replace(self, kit_code: str, components: Sequence[KitComponentRecord]) -> List[KitComponentRecord]:
        kit = self.db.query(Article).filter(Article.code == kit_code.strip().upper()).one()
        kit.components.clear()
        self.db.flush()
        for comp in components:
            article = self.db.query(Article).filter(Article.code == comp.component_code).one()
            kit.components.append(KitComponent(component_article_id=article.id, quantity_retail=comp.quantity_retail))
        self.db.flush()
        return self.components(kit.code)


class WarehouseRepository:
    def __init__(self, db: Session): self.db = db

    def get(self, code: str) -> Optional[WarehouseRecord]:
        row = self.db.query(Warehouse).filter(Warehouse.code == code.strip().upper()).first()
        return WarehouseRecord.model_validate(row) if row else None

    def add(self, warehouse: WarehouseRecord) -> WarehouseRecord:
        row = Warehouse(**warehouse.model_dump())
        self.db.add(row); self.db.flush()
        return WarehouseRecord.model_validate(row)

    def list(self, include_inactive: bool = False) -> List[WarehouseRecord]:
        query = self.db.query(Warehouse)
        if not include_inactive:
            query = query.filter(Warehouse.is_active == True)  # noqa: E712
        return [WarehouseRecord.model_validate(r) for r in query.order_by(Warehouse.code).all()]


class InventoryTransactionRepository:
    def __init__(self, db: Session): self.db = db

    def next_code(self, transaction_type: TransactionType) -> str:
        count = self.db.query(InventoryTransaction).filter(
            InventoryTransaction.transaction_type == transaction_type.value
        ).count()
        return f"{TRANSACTION_CODE_PREFIXES[transaction_type]}-{count + 1:06d}"

    def add(self, transaction: NewTransaction) -> TransactionRecord:
        data = transaction.model_dump()
        data["transaction_type"] = transaction.transaction_type.value
        row = InventoryTransaction(**data, total_amount=Decimal("0"), created_at=datetime.now())
        self.db.add(row); self.db.flush()
        return TransactionRecord.model_validate(row)

    def set_total(self, transaction_id: int, total_amount: Decimal) -> None:
        row = self.db.get(InventoryTransaction, transaction_id)
        row.total_amount = total_amount
        self.db.flush()

    def get_by_code(self, transaction_code: str) -> Optional[TransactionRecord]:
        row = self.db.query(InventoryTransaction).filter(
            InventoryTransaction.transaction_code == transaction_code.strip().upper()
        ).first()
        return TransactionRecord.model_validate(row) if row else None

    def list(
        self,
        transaction_types: Iterable[TransactionType] = (),
        warehouse_codes: Iterable[str] = (),
        search: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 50,
    ) -> List[TransactionRecord]:
        """Encabezados del más reciente al más antiguo."""
        query = self.db.query(InventoryTransaction)
        types = sorted({TransactionType(t).value for t in transaction_types})
        warehouses = _codes(warehouse_codes)
        if types:
            query = query.filter(InventoryTransaction.transaction_type.in_(types))
        if warehouses:
            query = query.filter(InventoryTransaction.warehouse_code.in_(warehouses))
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                InventoryTransaction.transaction_code.ilike(pattern),
                InventoryTransaction.reference.ilike(pattern),
                InventoryTransaction.counterparty_name.ilike(pattern),
            ))
        if date_from:
            query = query.filter(InventoryTransaction.occurred_at >= date_from)
        if date_to:
            query = query.filter(InventoryTransaction.occurred_at <= date_to)
        rows = query.order_by(InventoryTransaction.occurred_at.desc(), InventoryTransaction.id.desc()).limit(limit).all()
        return [TransactionRecord.model_validate(r) for r in rows]


class MovementRepository:
    def __init__(self, db: Session): self.db = db

    def _ordered(self, query):
        return query.order_by(
            InventoryMovement.occurred_at.asc(),
            InventoryMovement.created_at.asc(),
            InventoryMovement.id.asc(),
        )

    def _filtered(self, article_codes: Iterable[str], warehouse_codes: Iterable[str]):
        query = self.db.query(InventoryMovement)
        articles = _codes(article_codes)
        warehouses = _codes(warehouse_codes)
        if articles:
            query = query.filter(InventoryMovement.article_code.in_(articles))
        if warehouses:
            query = query.filter(InventoryMovement.warehouse_code.in_(warehouses))
        return query

    def add(self, movement: NewMovement) -> KardexRow:
        data = movement.model_dump()
        data["transaction_type"] = movement.transaction_type.value
        data["direction"] = movement.direction.value
        row = InventoryMovement(**data, created_at=datetime.now())
        self.db.add(row); self.db.flush()
        return KardexRow.model_validate(row)

    def latest(self, article_code: str, warehouse_code: str) -> Optional[KardexRow]:
        row = self.db.query(InventoryMovement).filter(
            InventoryMovement.article_code == article_code,
            InventoryMovement.warehouse_code == warehouse_code,
        ).order_by(
            InventoryMovement.occurred_at.desc(),
            InventoryMovement.created_at.desc(),
            InventoryMovement.id.desc(),
        ).first()
        return KardexRow.model_validate(row) if row else None

    def for_transactions(self, transaction_ids: Iterable[int]) -> List[KardexRow]:
        ids = sorted(set(transaction_ids))
        if not ids:
            return []
        rows = self.db.query(InventoryMovement).filter(
            InventoryMovement.transaction_id.in_(ids)
        ).order_by(InventoryMovement.id).all()
        return [KardexRow.model_validate(r) for r in rows]

    def list(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        article_codes: Iterable[str] = (),
        warehouse_codes: Iterable[str] = (),
    ) -> List[KardexRow]:
        query = self._filtered(article_codes, warehouse_codes)
        if date_from:
            query = query.filter(InventoryMovement.occurred_at >= date_from)
        if date_to:
            query = query.filter(InventoryMovement.occurred_at <= date_to)
        return [KardexRow.model_validate(r) for r in self._ordered(query).all()]

    def latest_per_pair(self, article_codes: Iterable[str] = (), warehouse_codes: Iterable[str] = ()) -> List[KardexRow]:
        ranked = self._filtered(article_codes, warehouse_codes).with_entities(
            InventoryMovement.id.label("id"),
            func.row_number().over(
                partition_by=[InventoryMovement.article_code, InventoryMovement.warehouse_code],
                order_by=[
                    InventoryMovement.occurred_at.desc(),
                    InventoryMovement.created_at.desc(),
                    InventoryMovement.id.desc(),
                ],
            ).label("position"),
        ).subquery()
        rows = (
            self.db.query(InventoryMovement)
            .join(ranked, ranked.c.id == InventoryMovement.id)
            .filter(ranked.c.position == 1)
            .order_by(InventoryMovement.article_code, InventoryMovement.warehouse_code)
            .all()
        )
        return [KardexRow.model_validate(r) for r in rows]


class CashRegisterRepository:
    def __init__(self, db: Session): self.db = db

    def get_register(self, code: str) -> Optional[CashRegisterRecord]:
        row = self.db.query(CashRegister).filter(CashRegister.code == code.strip().upper()).first()
        return CashRegisterRecord.model_validate(row) if row else None

    def add_register(self, register: CashRegisterRecord) -> CashRegisterRecord:
        row = CashRegister(**register.model_dump())
        self.db.add(row); self.db.flush()
        return CashRegisterRecord.model_validate(row)

    def is_assigned(self, admin_user_id: int, code: str) -> bool:
        return self.db.query(CashRegisterAssignment).filter_by(
            admin_user_id=admin_user_id, cash_register_code=code.strip().upper()
        ).first() is not None

    def assign(self, admin_user_id: int, code: str) -> None:
        if not self.is_assigned(admin_user_id, code):
            self.db.add(CashRegisterAssignment(admin_user_id=admin_user_id, cash_register_code=code.strip().upper()))
            self.db.flush()

    def get_session(self, session_id: int) -> Optional[CashSessionRecord]:
        row = self.db.get(CashRegisterSession, session_id)
        return CashSessionRecord.model_validate(row) if row else None

    def find_open_session(self, admin_user_id: Optional[int] = None, cash_register_code: Optional[str] = None) -> Optional[CashSessionRecord]:
        query = self.db.query(CashRegisterSession).filter(CashRegisterSession.status == CashSessionStatus.OPEN.value)
        if admin_user_id is not None and cash_register_code:
            query = query.filter(
                (CashRegisterSession.admin_user_id == admin_user_id)
                | (CashRegisterSession.cash_register_code == cash_register_code.strip().upper())
            )
        elif admin_user_id is not None:
            query = query.filter(CashRegisterSession.admin_user_id == admin_user_id)
        elif cash_register_code:
            query = query.filter(CashRegisterSession.cash_register_code == cash_register_code.strip().upper())
        row = query.order_by(CashRegisterSession.id.desc()).first()
        return CashSessionRecord.model_validate(row) if row else None

    def add_session(self, session: NewCashSession) -> CashSessionRecord:
        row = CashRegisterSession(**session.model_dump(), status=CashSessionStatus.OPEN.value)
        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError as e:
            raise RegistroDuplicadoError("Ya existe una apertura activa para el usuario o la caja seleccionada") from e
        return CashSessionRecord.model_validate(row)

    def close_session(self, session: CashSessionRecord) -> Optional[CashSessionRecord]:
        """UPDATE condicionado a status OPEN; None si otra transacción ya la cerró."""
        result = self.db.execute(
            update(CashRegisterSession)
            .where(
                CashRegisterSession.id == session.id,
                CashRegisterSession.status == CashSessionStatus.OPEN.value,
            )
            .values(
                status=CashSessionStatus.CLOSED.value,
                closing_amount=session.closing_amount,
                closing_at=session.closing_at,
                closing_notes=session.closing_notes,
                closing_user_id=session.closing_user_id,
                totals_snapshot=session.totals_snapshot,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return None
        row = self.db.get(CashRegisterSession, session.id)
        self.db.refresh(row)
        return CashSessionRecord.model_validate(row)

    def add_invoice_payment(self, payment: InvoicePaymentRecord) -> InvoicePaymentRecord:
        row = SessionInvoicePayment(**payment.model_dump())
        self.db.add(row); self.db.flush()
        return InvoicePaymentRecord.model_validate(row)

    def invoice_payments(self, session_id: int) -> List[InvoicePaymentRecord]:
        rows = self.db.query(SessionInvoicePayment).filter_by(session_id=session_id).order_by(SessionInvoicePayment.id).all()
        return [InvoicePaymentRecord.model_validate(r) for r in rows]

    def upsert_reconciliation(self, session_id: int, row: PaymentReconciliationRecord) -> None:
        current = self.db.query(SessionPaymentReconciliation).filter_by(session_id=session_id, method=row.method).first()
        if current is None:
            current = SessionPaymentReconciliation(session_id=session_id, method=row.method)
            self.db.add(current)
        current.expected_amount = row.expected_amount
        current.reported_amount = row.reported_amount
        current.difference_amount = row.difference_amount
        current.transaction_count = row.transaction_count
        self.db.flush()

    def reconciliations(self, session_id: int) -> List[PaymentReconciliationRecord]:
        rows = self.db.query(SessionPaymentReconciliation).filter_by(session_id=session_id).order_by(SessionPaymentReconciliation.method).all()
        return [PaymentReconciliationRecord.model_validate(r) for r in rows]


class TableRepository:
    def __init__(self, db: Session): self.db = db

    def get_table(self, table_id: str) -> Optional[TableRecord]:
        row = self.db.get(RestaurantTable, table_id.strip().upper())
        return TableRecord.model_validate(row) if row else None

    def add_table(self, table: TableRecord) -> TableRecord:
        row = RestaurantTable(**table.model_dump())
        self.db.add(row); self.db.flush()
        return TableRecord.model_validate(row)

    def list_tables(self, include_inactive: bool = False) -> List[TableRecord]:
        query = self.db.query(RestaurantTable)
        if not include_inactive:
            query = query.filter(RestaurantTable.is_active == True)  # noqa: E712
        rows = query.order_by(RestaurantTable.sort_order, RestaurantTable.label).all()
        return [TableRecord.model_validate(r) for r in rows]

    def get_state(self, table_id: str) -> Optional[TableStateRecord]:
        row = self.db.get(TableState, table_id.strip().upper())
        return TableStateRecord.model_validate(row) if row else None

    def save_state(self, state: TableStateRecord) -> TableStateRecord:
        data = state.model_dump(mode="json")
        row = self.db.get(TableState, state.table_id)
        if row is None:
            row = TableState(table_id=state.table_id)
            self.db.add(row)
        row.assigned_waiter_id = state.assigned_waiter_id
        row.assigned_waiter_name = state.assigned_waiter_name
        row.status = state.status.value
        row.pending_items = data["pending_items"]
        row.sent_items = data["sent_items"]
        row.reservation = data["reservation"]
        row.updated_at = state.updated_at
        self.db.flush()
        return TableStateRecord.model_validate(row)
