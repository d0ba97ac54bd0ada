"""
Servicios de Inventario
=======================

Cálculo de movimientos y registro en el kardex:
- Conversión entre unidad de almacén y unidad de detalle (factor por artículo)
- Dirección del movimiento (ENTRADA / SALIDA) según tipo de transacción y signo
- Expansión de kits en los movimientos de sus componentes
- Registro de compras, consumos, ajustes y traspasos con saldo acumulado

El kardex es de solo inserción: cada renglón guarda su saldo calculado a partir
del renglón anterior del mismo (artículo, almacén).
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from pydantic import BaseModel

from ..domain.enums import ArticleType, InventoryUnit, MovementDirection, TransactionType
from ..domain.errors import NoEncontradoError, ReglaNegocioError, ValidacionError
from ..domain.records import (
    ArticleRecord,
    KardexRow,
    KitComponentRecord,
    NewMovement,
    NewTransaction,
    TransactionRecord,
    WarehouseRecord,
)
from .dtos import ArticleIn, KitComponentIn, TransactionHeaderIn, TransactionLineIn, TransferIn, WarehouseIn
from .kardex import KardexGroup, build_kardex
from .ports import StoragePort, UnitOfWorkPort
import logging

logger = logging.getLogger(__name__)

EPSILON = Decimal("0.000001")
QUANTITY_QUANTUM = Decimal("0.000001")
AMOUNT_QUANTUM = Decimal("0.01")
DOCUMENT_LIMIT_DEFAULT = 50
DOCUMENT_LIMIT_MAX = 200

_LINE_CONTEXT = {
    TransactionType.PURCHASE: "la compra",
    TransactionType.CONSUMPTION: "el consumo",
    TransactionType.ADJUSTMENT: "el ajuste",
    TransactionType.TRANSFER: "el traspaso",
}


class InventarioError(ValidacionError):
    """Excepción base para errores de validación del módulo de inventario"""
    pass


class ArticuloNoEncontradoError(NoEncontradoError):
    """Error cuando el artículo o componente no existe"""
    pass


class AlmacenNoEncontradoError(NoEncontradoError):
    """Error cuando el almacén no existe"""
    pass


class ExistenciasInsuficientesError(ReglaNegocioError):
    """Error cuando una salida deja el saldo en negativo"""
    pass


class DocumentoNoEncontradoError(NoEncontradoError):
    """Error cuando no existe un documento con el folio indicado"""
    pass


# ===== CÁLCULOS PUROS =====

def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def normalize_quantity(value, epsilon: Decimal = EPSILON) -> Decimal:
    """Devuelve exactamente 0 cuando |value| < epsilon (evita residuos en saldos)."""
    value = _to_decimal(value)
    if abs(value) < epsilon:
        return Decimal("0")
    return value


def quantize_quantity(value) -> Decimal:
    return normalize_quantity(_to_decimal(value).quantize(QUANTITY_QUANTUM, rounding=ROUND_HALF_UP))


class CalculatedQuantities(NamedTuple):
    quantity_retail: Decimal
    quantity_storage: Decimal


def calculate_quantities(quantity, unit: InventoryUnit, conversion_factor) -> CalculatedQuantities:
    """
    Convierte una cantidad a unidades de detalle y de almacén.

    - STORAGE: detalle = cantidad × factor, almacén = cantidad
    - RETAIL: detalle = cantidad, almacén = cantidad / factor

    Ambos resultados pasan por ``normalize_quantity``.

    Un factor <= 0 se sustituye por 1 para no dividir entre cero; se registra
    una advertencia porque indica un artículo mal configurado.
    """
    quantity = _to_decimal(quantity)
    factor = _to_decimal(conversion_factor)
    if factor <= 0:
        logger.warning(f"Factor de conversión inválido ({factor}); se usa 1")
        factor = Decimal("1")

    if InventoryUnit(unit) == InventoryUnit.STORAGE:
        return CalculatedQuantities(normalize_quantity(quantity * factor), normalize_quantity(quantity))
    return CalculatedQuantities(normalize_quantity(quantity), normalize_quantity(quantity / factor))


def resolve_movement_direction(transaction_type: TransactionType, quantity) -> MovementDirection:
    """PURCHASE → IN, CONSUMPTION → OUT; ajustes y traspasos según el signo (0 → IN)."""
    transaction_type = TransactionType(transaction_type)
    if transaction_type == TransactionType.PURCHASE:
        return MovementDirection.IN
    if transaction_type == TransactionType.CONSUMPTION:
        return MovementDirection.OUT
    return MovementDirection.IN if _to_decimal(quantity) >= 0 else MovementDirection.OUT


@dataclass
class ComponentMovement:
    article_code: str
    quantity_retail: Decimal
    quantity_storage: Decimal
    conversion_factor: Decimal
    source_kit_code: Optional[str] = None


@dataclass
class MovementComputation:
    article: ArticleRecord
    transaction_type: TransactionType
    direction: MovementDirection
    quantity_entered: Decimal
    entered_unit: InventoryUnit
    quantity_retail: Decimal
    quantity_storage: Decimal
    kit_multiplier: Optional[Decimal] = None
    components: List[ComponentMovement] = field(default_factory=list)


ArticleLookup = Callable[[str], Optional[ArticleRecord]]
ComponentsLookup = Callable[[str], Sequence[KitComponentRecord]]


def expand_kit(
    kit_code: str,
    kit_quantity,
    components: Sequence[KitComponentRecord],
    get_article: ArticleLookup,
) -> List[ComponentMovement]:
    """
    Expande un kit en un movimiento por componente.

    La cantidad de cada componente es (cantidad por unidad de kit × cantidad de
    kits) en unidades de detalle; la cantidad en almacén usa el factor propio del
    componente. Solo se admite un nivel: un componente que es kit es un error.
    """
    kit_code = kit_code.strip().upper()
    kit_quantity = _to_decimal(kit_quantity)
    if not components:
        logger.warning(f"El kit {kit_code} no tiene componentes registrados; no se generan movimientos")
        return []

    expanded: List[ComponentMovement] = []
    for component in components:
        article = get_article(component.component_code)
        if not article:
            raise ArticuloNoEncontradoError(f"Componente {component.component_code} no encontrado")
        if article.is_kit:
            raise InventarioError(
                f"El componente {article.code} del kit {kit_code} también es un kit; no se admiten kits anidados"
            )
        retail, storage = calculate_quantities(
            component.quantity_retail * kit_quantity, InventoryUnit.RETAIL, article.conversion_factor
        )
        expanded.append(ComponentMovement(
            article_code=article.code,
            quantity_retail=retail,
            quantity_storage=storage,
            conversion_factor=article.conversion_factor,
            source_kit_code=kit_code,
        ))
    return expanded


def compute_movement(
    article: ArticleRecord,
    transaction_type: TransactionType,
    quantity,
    unit: InventoryUnit,
    get_components: ComponentsLookup,
    get_article: ArticleLookup,
) -> MovementComputation:
    """
    Calcula el movimiento de una línea de transacción.

    La cantidad puede venir con signo (ajustes); se usa su magnitud y el signo
    solo decide la dirección. Un artículo simple produce un único componente
    igual a sí mismo.
    """
    quantity = _to_decimal(quantity)
    if article.conversion_factor <= 0:
        raise InventarioError(f"El artículo {article.code} tiene un factor de conversión inválido")
    magnitude = abs(quantity)
    if magnitude <= 0:
        raise InventarioError(f"La cantidad para {article.code} debe ser mayor a cero")

    direction = resolve_movement_direction(transaction_type, quantity)
    retail, storage = calculate_quantities(magnitude, unit, article.conversion_factor)

    computation = MovementComputation(
        article=article,
        transaction_type=TransactionType(transaction_type),
        direction=direction,
        quantity_entered=magnitude,
        entered_unit=InventoryUnit(unit),
        quantity_retail=retail,
        quantity_storage=storage,
    )
    if article.article_type == ArticleType.KIT:
        computation.kit_multiplier = retail
        computation.components = expand_kit(article.code, retail, get_components(article.code), get_article)
    else:
        computation.components = [ComponentMovement(
            article_code=article.code,
            quantity_retail=retail,
            quantity_storage=storage,
            conversion_factor=article.conversion_factor,
        )]
    return computation


def _naive(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.now()
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def day_bounds(date_from: Optional[date], date_to: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Convierte un rango de fechas a [inicio del día, fin del día]."""
    start = datetime.combine(date_from, time.min) if date_from else None
    end = datetime.combine(date_to, time.max) if date_to else None
    if start and end and start > end:
        raise InventarioError("La fecha inicial no puede ser posterior a la fecha final")
    return start, end


# ===== DOCUMENTOS =====

class InventoryDocumentHeader(BaseModel):
    transaction_code: str
    transaction_type: TransactionType
    occurred_at: datetime
    warehouse_code: str
    warehouse_name: Optional[str] = None
    reference: Optional[str] = None
    counterparty_name: Optional[str] = None
    reason: Optional[str] = None
    authorized_by: Optional[str] = None
    notes: Optional[str] = None
    total_amount: Decimal
    entries_count: int
    entries_in: int
    entries_out: int

    @classmethod
    def build(cls, transaction: TransactionRecord, warehouse_name: Optional[str], entries: Sequence[KardexRow]):
        entries_in = sum(1 for e in entries if e.direction == MovementDirection.IN)
        return cls(
            **transaction.model_dump(include=set(cls.model_fields) & set(TransactionRecord.model_fields)),
            warehouse_name=warehouse_name,
            entries_count=len(entries),
            entries_in=entries_in,
            entries_out=len(entries) - entries_in,
        )


class InventoryDocument(InventoryDocumentHeader):
    created_at: datetime
    entries: List[KardexRow]


# ===== SERVICIO =====

class InventarioService:
    """
    Servicio principal del módulo de inventario.

    Cada operación abre su propia unidad de trabajo: todo se confirma o todo se
    revierte.
    """

    def __init__(self, storage: StoragePort):
        self.storage = storage

    # ----- catálogo -----

    def crear_articulo(self, payload: ArticleIn) -> ArticleRecord:
        with self.storage.unit_of_work().transaction() as uow:
            if uow.articles.get(payload.code):
                raise InventarioError(f"Ya existe un artículo con el código {payload.code.upper()}")
            article = uow.articles.add(ArticleRecord(**payload.model_dump()))
            logger.info(f"Artículo {article.code} creado ({article.article_type.value}, factor {article.conversion_factor})")
            return article

    def crear_almacen(self, payload: WarehouseIn) -> WarehouseRecord:
        with self.storage.unit_of_work().transaction() as uow:
            if uow.warehouses.get(payload.code):
                raise InventarioError(f"Ya existe un almacén con el código {payload.code.upper()}")
            warehouse = uow.warehouses.add(WarehouseRecord(**payload.model_dump()))
            logger.info(f"Almacén {warehouse.code} creado")
            return warehouse

    def definir_componentes_kit(self, kit_code: str, components: Sequence[KitComponentIn]) -> List[KitComponentRecord]:
        """Reemplaza los componentes de un kit. Los movimientos ya registrados no cambian."""
        with self.storage.unit_of_work().transaction() as uow:
            kit = uow.articles.get(kit_code)
            if not kit:
                raise ArticuloNoEncontradoError(f"Artículo no encontrado: {kit_code}")
            if not kit.is_kit:
                raise InventarioError(f"El artículo {kit.code} no es un kit")
            records = []
            seen = set()
            for comp in components:
                article = uow.articles.get(comp.component_code)
                if not article:
                    raise ArticuloNoEncontradoError(f"Componente {comp.component_code} no encontrado")
                if article.is_kit:
                    raise InventarioError(f"El componente {article.code} también es un kit; no se admiten kits anidados")
                if article.code in seen:
                    raise InventarioError(f"El componente {article.code} está repetido")
                seen.add(article.code)
                records.append(KitComponentRecord(
                    kit_code=kit.code, component_code=article.code, quantity_retail=comp.quantity_retail
                ))
            result = uow.kits.replace(kit.code, records)
            logger.info(f"Kit {kit.code}: {len(result)} componentes definidos")
            return result

    def listar_articulos(self, search: Optional[str] = None, include_inactive: bool = False) -> List[ArticleRecord]:
        with self.storage.unit_of_work().transaction() as uow:
            return uow.articles.list(include_inactive=include_inactive, search=search)

    def listar_almacenes(self, include_inactive: bool = False) -> List[WarehouseRecord]:
        with self.storage.unit_of_work().transaction() as uow:
            return uow.warehouses.list(include_inactive=include_inactive)

    def obtener_componentes_kit(self, kit_code: str) -> List[KitComponentRecord]:
        with self.storage.unit_of_work().transaction() as uow:
            kit = uow.articles.get(kit_code)
            if not kit:
                raise ArticuloNoEncontradoError(f"Artículo no encontrado: {kit_code.strip().upper()}")
            if not kit.is_kit:
                raise InventarioError(f"El artículo {kit.code} no es un kit")
            return uow.kits.components(kit.code)

    # ----- validaciones -----

    def _validar_almacen(self, uow: UnitOfWorkPort, code: str) -> WarehouseRecord:
        warehouse = uow.warehouses.get(code)
        if not warehouse:
            raise AlmacenNoEncontradoError(f"Almacén no encontrado: {code.strip().upper()}")
        if not warehouse.is_active:
            raise InventarioError(f"El almacén {warehouse.code} está inactivo")
        return warehouse

    def _validar_articulo(self, uow: UnitOfWorkPort, code: str) -> ArticleRecord:
        article = uow.articles.get(code)
        if not article:
            raise ArticuloNoEncontradoError(f"Artículo no encontrado: {code.strip().upper()}")
        if not article.is_active:
            raise InventarioError(f"El artículo {article.code} está inactivo")
        return article

    def _validar_lineas(self, transaction_type: TransactionType, lines: Sequence[TransactionLineIn]) -> None:
        if not lines:
            raise InventarioError(f"Debes incluir al menos una línea en {_LINE_CONTEXT[transaction_type]}")
        for line in lines:
            if transaction_type == TransactionType.ADJUSTMENT:
                if line.quantity == 0:
                    raise InventarioError(f"La cantidad del ajuste para {line.article_code.upper()} no puede ser cero")
            elif line.quantity <= 0:
                raise InventarioError(f"La cantidad para {line.article_code.upper()} debe ser mayor a cero")

    def _computar(self, uow: UnitOfWorkPort, transaction_type: TransactionType, line: TransactionLineIn) -> MovementComputation:
        article = self._validar_articulo(uow, line.article_code)
        return compute_movement(
            article, transaction_type, line.quantity, line.unit, uow.kits.components, uow.articles.get
        )

    # ----- registro en kardex -----

    def _registrar_renglon(
        self,
        uow: UnitOfWorkPort,
        transaction: TransactionRecord,
        component: ComponentMovement,
        warehouse_code: str,
        direction: MovementDirection,
    ) -> KardexRow:
        quantity_retail = quantize_quantity(component.quantity_retail)
        quantity_storage = quantize_quantity(component.quantity_storage)
        previous = uow.movements.latest(component.article_code, warehouse_code)

        if previous and transaction.occurred_at < previous.occurred_at:
            raise InventarioError(
                f"La fecha del movimiento es anterior al último registro del kardex para "
                f"{component.article_code} en la bodega {warehouse_code}"
            )

        previous_balance = previous.balance_retail if previous else Decimal("0")
        delta = quantity_retail if direction == MovementDirection.IN else -quantity_retail
        balance_retail = normalize_quantity(previous_balance + delta)
        if direction == MovementDirection.OUT and balance_retail < 0:
            raise ExistenciasInsuficientesError(
                f"Existencias insuficientes para {component.article_code} en la bodega {warehouse_code}."
            )

        factor = component.conversion_factor if component.conversion_factor > 0 else Decimal("1")
        return uow.movements.add(NewMovement(
            transaction_id=transaction.id,
            transaction_type=transaction.transaction_type,
            transaction_code=transaction.transaction_code,
            article_code=component.article_code,
            warehouse_code=warehouse_code,
            direction=direction,
            quantity_retail=quantity_retail,
            quantity_storage=quantity_storage,
            balance_retail=balance_retail,
            balance_storage=quantize_quantity(balance_retail / factor),
            occurred_at=transaction.occurred_at,
            reference=transaction.reference,
            counterparty_name=transaction.counterparty_name,
            source_kit_code=component.source_kit_code,
        ))

    def _abrir_transaccion(
        self,
        uow: UnitOfWorkPort,
        transaction_type: TransactionType,
        warehouse_code: str,
        occurred_at: Optional[datetime],
        **extra,
    ) -> TransactionRecord:
        return uow.transactions.add(NewTransaction(
            transaction_code=uow.transactions.next_code(transaction_type),
            transaction_type=transaction_type,
            warehouse_code=warehouse_code,
            occurred_at=_naive(occurred_at),
            **extra,
        ))

    def _registrar_simple(
        self, transaction_type: TransactionType, header: TransactionHeaderIn
    ) -> Tuple[TransactionRecord, List[KardexRow]]:
        self._validar_lineas(transaction_type, header.lines)
        with self.storage.unit_of_work().transaction() as uow:
            warehouse = self._validar_almacen(uow, header.warehouse_code)
            transaction = self._abrir_transaccion(
                uow, transaction_type, warehouse.code, header.occurred_at,
                reference=header.reference,
                counterparty_name=header.counterparty_name,
                reason=header.reason,
                authorized_by=header.authorized_by,
                notes=header.notes,
            )
            rows: List[KardexRow] = []
            total = Decimal("0")
            for line in header.lines:
                computation = self._computar(uow, transaction_type, line)
                for component in computation.components:
                    rows.append(self._registrar_renglon(uow, transaction, component, warehouse.code, computation.direction))
                if line.cost_per_unit is not None:
                    total += computation.quantity_entered * line.cost_per_unit
            if total:
                total = total.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)
                uow.transactions.set_total(transaction.id, total)
                transaction = transaction.model_copy(update={"total_amount": total})

            logger.info(
                f"{transaction.transaction_code} registrada en {warehouse.code}: "
                f"{len(header.lines)} líneas, {len(rows)} movimientos"
            )
            return transaction, rows

    def registrar_compra(self, header: TransactionHeaderIn) -> Tuple[TransactionRecord, List[KardexRow]]:
        """Compra: todas las líneas entran al almacén del encabezado."""
        return self._registrar_simple(TransactionType.PURCHASE, header)

    def registrar_consumo(self, header: TransactionHeaderIn) -> Tuple[TransactionRecord, List[KardexRow]]:
        """Consumo (merma, uso interno): requiere motivo y quién autoriza."""
        if not (header.reason or "").strip() or not (header.authorized_by or "").strip():
            raise InventarioError("El consumo requiere motivo y persona que autoriza")
        return self._registrar_simple(TransactionType.CONSUMPTION, header)

    def registrar_ajuste(self, header: TransactionHeaderIn) -> Tuple[TransactionRecord, List[KardexRow]]:
        """Ajuste: cantidad positiva para sobrante, negativa para faltante."""
        return self._registrar_simple(TransactionType.ADJUSTMENT, header)

    def registrar_traspaso(self, payload: TransferIn) -> Tuple[TransactionRecord, List[KardexRow]]:
        """
        Traspaso entre almacenes: por cada componente, una SALIDA en el origen y
        una ENTRADA en el destino dentro de la misma transacción.
        """
        self._validar_lineas(TransactionType.TRANSFER, payload.lines)
        if payload.from_warehouse_code.strip().upper() == payload.to_warehouse_code.strip().upper():
            raise InventarioError("El traspaso requiere almacenes distintos")

        with self.storage.unit_of_work().transaction() as uow:
            origin = self._validar_almacen(uow, payload.from_warehouse_code)
            target = self._validar_almacen(uow, payload.to_warehouse_code)
            notes = " | ".join(filter(None, [
                (payload.notes or "").strip(),
                f"Solicitado por: {payload.requested_by.strip()}" if (payload.requested_by or "").strip() else "",
            ])) or None
            transaction = self._abrir_transaccion(
                uow, TransactionType.TRANSFER, origin.code, payload.occurred_at,
                reference=payload.reference,
                counterparty_name=target.name,
                authorized_by=payload.authorized_by,
                notes=notes,
            )
            rows: List[KardexRow] = []
            for line in payload.lines:
                computation = self._computar(uow, TransactionType.TRANSFER, line)
                for component in computation.components:
                    rows.append(self._registrar_renglon(uow, transaction, component, origin.code, MovementDirection.OUT))
                    rows.append(self._registrar_renglon(uow, transaction, component, target.code, MovementDirection.IN))

            logger.info(f"{transaction.transaction_code}: traspaso {origin.code} → {target.code}, {len(rows)} movimientos")
            return transaction, rows

    # ----- consultas -----

    def obtener_kardex(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        article_codes: Iterable[str] = (),
        warehouse_codes: Iterable[str] = (),
    ) -> Tuple[List[KardexRow], List[KardexGroup]]:
        """Renglones del rango (fechas inclusivas) y sus grupos por (artículo, almacén)."""
        start, end = day_bounds(date_from, date_to)
        with self.storage.unit_of_work().transaction() as uow:
            rows = uow.movements.list(start, end, article_codes, warehouse_codes)
        return rows, build_kardex(rows)

    def obtener_existencias(
        self, article_codes: Iterable[str] = (), warehouse_codes: Iterable[str] = ()
    ) -> List[KardexRow]:
        """Último saldo registrado por (artículo, almacén)."""
        with self.storage.unit_of_work().transaction() as uow:
            return uow.movements.latest_per_pair(article_codes, warehouse_codes)

    # ----- documentos -----

    def listar_documentos(
        self,
        transaction_types: Iterable[str] = (),
        warehouse_codes: Iterable[str] = (),
        search: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[InventoryDocumentHeader]:
        """
        Encabezados de compras, consumos, ajustes y traspasos, del más reciente
        al más antiguo.

        Los tipos desconocidos se ignoran. El límite por omisión es 50 y se
        acota a [1, 200].
        """
        types = []
        for value in transaction_types:
            try:
                types.append(TransactionType(value.strip().upper()))
            except ValueError:
                logger.debug(f"Tipo de documento ignorado: {value}")
        limit = min(max(limit or DOCUMENT_LIMIT_DEFAULT, 1), DOCUMENT_LIMIT_MAX)
        start, end = day_bounds(date_from, date_to)

        with self.storage.unit_of_work().transaction() as uow:
            transactions = uow.transactions.list(types, warehouse_codes, search, start, end, limit)
            movements = uow.movements.for_transactions(t.id for t in transactions)
            names = {w.code: w.name for w in uow.warehouses.list(include_inactive=True)}

        by_transaction = {}
        for row in movements:
            by_transaction.setdefault(row.transaction_id, []).append(row)
        return [
            InventoryDocumentHeader.build(t, names.get(t.warehouse_code), by_transaction.get(t.id, []))
            for t in transactions
        ]

    def obtener_documento(self, transaction_code: str) -> InventoryDocument:
        """Encabezado y renglones de un documento por su folio."""
        code = (transaction_code or "").strip()
        if not code:
            raise InventarioError("Debes indicar un folio de inventario")
        with self.storage.unit_of_work().transaction() as uow:
            transaction = uow.transactions.get_by_code(code)
            if not transaction:
                raise DocumentoNoEncontradoError(f"Documento no encontrado: {code.upper()}")
            entries = uow.movements.for_transactions([transaction.id])
            warehouse = uow.warehouses.get(transaction.warehouse_code)
        header = InventoryDocumentHeader.build(transaction, warehouse.name if warehouse else None, entries)
        return InventoryDocument(**header.model_dump(), created_at=transaction.created_at, entries=entries)
