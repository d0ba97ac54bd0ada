from contextlib import contextmanager
from sqlalchemy.orm import Session, sessionmaker
from .repositories import (
    ArticleRepository,
    CashRegisterRepository,
    InventoryTransactionRepository,
    KitRepository,
    MovementRepository,
    TableRepository,
    WarehouseRepository,
)


class UnitOfWork:
    def __init__(self, db: Session):
        self.db: Session = db
        self.articles = ArticleRepository(self.db)
        self.kits = KitRepository(self.db)
        self.warehouses = WarehouseRepository(self.db)
        self.transactions = InventoryTransactionRepository(self.db)
        self.movements = MovementRepository(self.db)
        self.cash = CashRegisterRepository(self.db)
        self.tables = TableRepository(self.db)

    def commit(self): self.db.commit()
    def rollback(self): self.db.rollback()
    def close(self): self.db.close()

    @contextmanager
    def transaction(self):
        try:
            yield self
            self.commit()
        except Exception:
            self.rollback()
            raise
        finally:
            self.close()


class SqlStorage:
    """Adaptador relacional: una sesión SQLAlchemy por unidad de trabajo."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def unit_of_work(self) -> UnitOfWork:
        return UnitOfWork(self.session_factory())
