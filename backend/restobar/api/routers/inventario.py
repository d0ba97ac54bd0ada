"""
API de Inventario
=================

Catálogo, compras, consumos, ajustes y traspasos; consulta de documentos,
kardex y existencias.
"""
from datetime import date
from html import escape
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse

from ...application.dtos import ArticleIn, KitComponentsIn, TransactionHeaderIn, TransferIn, WarehouseIn
from ...application.kardex import KardexGroup
from ...application.services_inventario import InventarioService, InventoryDocument
from ...dependencies import get_inventario_service
from ...domain.enums import MOVEMENT_DIRECTION_LABELS, TRANSACTION_TYPE_LABELS
from ...security.auth import get_current_user_id
from ..errors import http_error

router = APIRouter(prefix="/inventario", tags=["inventario"], dependencies=[Depends(get_current_user_id)])


def _posting_out(result) -> dict:
    transaction, rows = result
    return {
        "transaction": transaction.model_dump(),
        "movements": [r.model_dump() for r in rows],
    }


def _group_out(group: KardexGroup) -> dict:
    return {
        "article_code": group.article_code,
        "warehouse_code": group.warehouse_code,
        "initial_balance": group.initial_balance,
        "final_balance": group.final_balance,
        "total_in": group.total_in,
        "total_out": group.total_out,
        "movements": [{**e.row.model_dump(), "delta": e.delta} for e in group.entries],
    }


def render_kardex_html(groups: List[KardexGroup], date_from: Optional[date], date_to: Optional[date]) -> str:
    """Versión imprimible del kardex."""
    periodo = f"{date_from.isoformat() if date_from else 'inicio'} a {date_to.isoformat() if date_to else 'hoy'}"
    parts = [
        "<!DOCTYPE html><html lang=\"es\"><head><meta charset=\"utf-8\"><title>Kardex</title>",
        "<style>body{font-family:sans-serif;font-size:12px}table{border-collapse:collapse;width:100%;margin-bottom:16px}"
        "th,td{border:1px solid #999;padding:2px 6px}td.num{text-align:right}</style></head><body>",
        f"<h1>Kardex</h1><p>Periodo: {escape(periodo)}</p>",
    ]
    if not groups:
        parts.append("<p>Sin movimientos en el periodo.</p>")
    for group in groups:
        parts.append(
            f"<h2>{escape(group.article_code)} - {escape(group.warehouse_code)}</h2>"
            f"<p>Saldo inicial: {group.initial_balance.normalize():f}</p>"
            "<table><thead><tr><th>Fecha</th><th>Documento</th><th>Tipo</th><th>Movimiento</th>"
            "<th>Cantidad</th><th>Saldo</th><th>Referencia</th><th>Kit</th></tr></thead><tbody>"
        )
        for entry in group.entries:
            row = entry.row
            parts.append(
                "<tr>"
                f"<td>{row.occurred_at.strftime('%Y-%m-%d %H:%M')}</td>"
                f"<td>{escape(row.transaction_code)}</td>"
                f"<td>{escape(TRANSACTION_TYPE_LABELS[row.transaction_type])}</td>"
                f"<td>{escape(MOVEMENT_DIRECTION_LABELS[row.direction])}</td>"
                f"<td class=\"num\">{entry.delta.normalize():f}</td>"
                f"<td class=\"num\">{row.balance_retail.normalize():f}</td>"
                f"<td>{escape(row.reference or '')}</td>"
                f"<td>{escape(row.source_kit_code or '')}</td>"
                "</tr>"
            )
        parts.append(f"</tbody></table><p>Saldo final: {group.final_balance.normalize():f}</p>")
    parts.append("</body></html>")
    return "".join(parts)


def _multi(values: List[str]) -> List[str]:
    """Acepta parámetros repetidos o separados por comas."""
    result = []
    for value in values:
        for chunk in (value or "").split(","):
            chunk = chunk.strip()
            if chunk and chunk not in result:
                result.append(chunk)
    return result


def render_document_html(document: InventoryDocument) -> str:
    """Versión imprimible de un documento de inventario."""
    almacen = document.warehouse_code + (f" - {document.warehouse_name}" if document.warehouse_name else "")
    parts = [
        "<!DOCTYPE html><html lang=\"es\"><head><meta charset=\"utf-8\">",
        f"<title>{escape(document.transaction_code)}</title>",
        "<style>body{font-family:sans-serif;font-size:12px}table{border-collapse:collapse;width:100%}"
        "th,td{border:1px solid #999;padding:2px 6px}td.num{text-align:right}</style></head><body>",
        f"<h1>{escape(TRANSACTION_TYPE_LABELS[document.transaction_type])} {escape(document.transaction_code)}</h1>",
        f"<p>Fecha: {document.occurred_at.strftime('%Y-%m-%d %H:%M')}</p>",
        f"<p>Almacén: {escape(almacen)}</p>",
    ]
    for label, value in (
        ("Referencia", document.reference),
        ("Proveedor", document.counterparty_name),
        ("Motivo", document.reason),
        ("Autorizó", document.authorized_by),
        ("Notas", document.notes),
    ):
        if value:
            parts.append(f"<p>{label}: {escape(value)}</p>")
    parts.append(
        "<table><thead><tr><th>Artículo</th><th>Almacén</th><th>Movimiento</th><th>Cantidad</th>"
        "<th>Cantidad almacén</th><th>Saldo</th><th>Kit</th></tr></thead><tbody>"
    )
    for row in document.entries:
        parts.append(
            "<tr>"
            f"<td>{escape(row.article_code)}</td>"
            f"<td>{escape(row.warehouse_code)}</td>"
            f"<td>{escape(MOVEMENT_DIRECTION_LABELS[row.direction])}</td>"
            f"<td class=\"num\">{row.quantity_retail.normalize():f}</td>"
            f"<td class=\"num\">{row.quantity_storage.normalize():f}</td>"
            f"<td class=\"num\">{row.balance_retail.normalize():f}</td>"
            f"<td>{escape(row.source_kit_code or '')}</td>"
            "</tr>"
        )
    parts.append(f"</tbody></table><p>Total: {document.total_amount:.2f}</p></body></html>")
    return "".join(parts)


# ===== CATÁLOGO =====

@router.post("/articulos")
def create_article(payload: ArticleIn, service: InventarioService = Depends(get_inventario_service)):
    try:
        return service.crear_articulo(payload).model_dump()
    except Exception as e:
        raise http_error(e, "crear el artículo")


@router.post("/almacenes")
def create_warehouse(payload: WarehouseIn, service: InventarioService = Depends(get_inventario_service)):
    try:
        return service.crear_almacen(payload).model_dump()
    except Exception as e:
        raise http_error(e, "crear el almacén")


@router.post("/kits/{kit_code}/componentes")
def set_kit_components(
    kit_code: str,
    payload: KitComponentsIn,
    service: InventarioService = Depends(get_inventario_service),
):
    try:
        components = service.definir_componentes_kit(kit_code, payload.components)
        return {"kit_code": kit_code.strip().upper(), "components": [c.model_dump() for c in components]}
    except Exception as e:
        raise http_error(e, "definir los componentes del kit")


@router.get("/articulos")
def list_articles(
    search: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    service: InventarioService = Depends(get_inventario_service),
):
    try:
        articles = service.listar_articulos(search, include_inactive)
    except Exception as e:
        raise http_error(e, "consultar los artículos")
    return {"items": [a.model_dump() for a in articles]}


@router.get("/almacenes")
def list_warehouses(
    include_inactive: bool = Query(False),
    service: InventarioService = Depends(get_inventario_service),
):
    try:
        warehouses = service.listar_almacenes(include_inactive)
    except Exception as e:
        raise http_error(e, "consultar los almacenes")
    return {"items": [w.model_dump() for w in warehouses]}


@router.get("/kits/{kit_code}/componentes")
def get_kit_components(kit_code: str, service: InventarioService = Depends(get_inventario_service)):
    try:
        components = service.obtener_componentes_kit(kit_code)
    except Exception as e:
        raise http_error(e, "consultar los componentes del kit")
    return {"kit_code": kit_code.strip().upper(), "components": [c.model_dump() for c in components]}


# ===== TRANSACCIONES =====

@router.post("/compras")
def register_purchase(payload: TransactionHeaderIn, service: InventarioService = Depends(get_inventario_service)):
    try:
        return _posting_out(service.registrar_compra(payload))
    except Exception as e:
        raise http_error(e, "registrar la compra")


@router.post("/consumos")
def register_consumption(payload: TransactionHeaderIn, service: InventarioService = Depends(get_inventario_service)):
    try:
        return _posting_out(service.registrar_consumo(payload))
    except Exception as e:
        raise http_error(e, "registrar el consumo")


@router.post("/ajustes")
def register_adjustment(payload: TransactionHeaderIn, service: InventarioService = Depends(get_inventario_service)):
    try:
        return _posting_out(service.registrar_ajuste(payload))
    except Exception as e:
        raise http_error(e, "registrar el ajuste")


@router.post("/traspasos")
def register_transfer(payload: TransferIn, service: InventarioService = Depends(get_inventario_service)):
    try:
        return _posting_out(service.registrar_traspaso(payload))
    except Exception as e:
        raise http_error(e, "registrar el traspaso")


# ===== CONSULTAS =====

@router.get("/kardex")
def get_kardex(
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    article: List[str] = Query(default=[]),
    warehouse_code: List[str] = Query(default=[]),
    format: Optional[str] = Query(None, description="html para versión imprimible"),
    service: InventarioService = Depends(get_inventario_service),
):
    if format and format.lower() not in ("html", "json"):
        raise HTTPException(status_code=400, detail="Formato no soportado. Usa html o json")
    try:
        rows, groups = service.obtener_kardex(date_from, date_to, article, warehouse_code)
    except Exception as e:
        raise http_error(e, "consultar el kardex")

    if format and format.lower() == "html":
        return HTMLResponse(content=render_kardex_html(groups, date_from, date_to))
    return {
        "items": [r.model_dump() for r in rows],
        "groups": [_group_out(g) for g in groups],
    }


@router.get("/existencias")
def get_stock(
    article: List[str] = Query(default=[]),
    warehouse_code: List[str] = Query(default=[]),
    service: InventarioService = Depends(get_inventario_service),
):
    try:
        rows = service.obtener_existencias(article, warehouse_code)
    except Exception as e:
        raise http_error(e, "consultar existencias")
    return {
        "items": [
            {
                "article_code": r.article_code,
                "warehouse_code": r.warehouse_code,
                "balance_retail": r.balance_retail,
                "balance_storage": r.balance_storage,
                "last_movement_at": r.occurred_at,
            }
            for r in rows
        ]
    }


@router.get("/documentos")
def list_documents(
    type: List[str] = Query(default=[]),
    warehouse_code: List[str] = Query(default=[]),
    search: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    limit: Optional[int] = Query(None),
    service: InventarioService = Depends(get_inventario_service),
):
    try:
        headers = service.listar_documentos(_multi(type), _multi(warehouse_code), search, date_from, date_to, limit)
    except Exception as e:
        raise http_error(e, "consultar los documentos")
    return {"items": [h.model_dump() for h in headers]}


@router.get("/documentos/{transaction_code}")
def get_document(
    transaction_code: str,
    format: Optional[str] = Query(None, description="html para versión imprimible"),
    service: InventarioService = Depends(get_inventario_service),
):
    if format and format.lower() not in ("html", "json"):
        raise HTTPException(status_code=400, detail="Formato no soportado. Usa html o json")
    try:
        document = service.obtener_documento(transaction_code)
    except Exception as e:
        raise http_error(e, "consultar el documento")

    if format and format.lower() == "html":
        return HTMLResponse(content=render_document_html(document))
    return {"document": document.model_dump()}
