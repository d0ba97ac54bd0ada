from enum import Enum


class TransactionType(str, Enum):
    PURCHASE = "PURCHASE"
    CONSUMPTION = "CONSUMPTION"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER = "TRANSFER"


class MovementDirection(str, Enum):
    IN = "IN"
    OUT = "OUT"


class InventoryUnit(str, Enum):
    STORAGE = "STORAGE"
    RETAIL = "RETAIL"


class ArticleType(str, Enum):
    SIMPLE = "SIMPLE"
    KIT = "KIT"


class CashSessionStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class TableOrderStatus(str, Enum):
    NORMAL = "normal"
    FACTURADO = "facturado"
    ANULADO = "anulado"


class ReservationStatus(str, Enum):
    HOLDING = "holding"
    SEATED = "seated"


TRANSACTION_TYPE_LABELS = {
    TransactionType.PURCHASE: "Compra",
    TransactionType.CONSUMPTION: "Consumo",
    TransactionType.ADJUSTMENT: "Ajuste",
    TransactionType.TRANSFER: "Traspaso",
}

TRANSACTION_CODE_PREFIXES = {
    TransactionType.PURCHASE: "COM",
    TransactionType.CONSUMPTION: "CON",
    TransactionType.ADJUSTMENT: "AJU",
    TransactionType.TRANSFER: "TRA",
}

MOVEMENT_DIRECTION_LABELS = {
    MovementDirection.IN: "Entrada",
    MovementDirection.OUT: "Salida",
}
