"""
Tests de API - Inventario y kardex
"""


def compra(client, lines, occurred_at="2025-03-01T10:00:00", warehouse="BODEGA", **extra):
    return client.post("/inventario/compras", json={
        "warehouse_code": warehouse, "occurred_at": occurred_at, "lines": lines, **extra,
    })


def consumo(client, lines, occurred_at="2025-03-02T10:00:00", warehouse="BODEGA"):
    return client.post("/inventario/consumos", json={
        "warehouse_code": warehouse, "occurred_at": occurred_at, "lines": lines,
        "reason": "Venta", "authorized_by": "Gerente",
    })


class TestMovimientosAPI:

    def test_compra_en_cajas(self, catalogo):
        r = compra(catalogo, [{"article_code": "COKE-600", "quantity": "2", "unit": "STORAGE", "cost_per_unit": "180"}],
                   counterparty_name="Refresquera del Norte")
        assert r.status_code == 200
        body = r.json()
        assert body["transaction"]["transaction_code"] == "COM-000001"
        assert body["transaction"]["total_amount"] == 360
        [movement] = body["movements"]
        assert movement["direction"] == "IN"
        assert movement["quantity_retail"] == 24
        assert movement["balance_storage"] == 2

    def test_consumo_de_combo(self, catalogo):
        compra(catalogo, [
            {"article_code": "BURGER", "quantity": "10", "unit": "RETAIL"},
            {"article_code": "FRIES", "quantity": "2", "unit": "STORAGE"},
        ])
        r = consumo(catalogo, [{"article_code": "COMBO-1", "quantity": "3", "unit": "RETAIL"}])
        assert r.status_code == 200
        movements = r.json()["movements"]
        assert [(m["article_code"], m["balance_retail"], m["source_kit_code"]) for m in movements] == [
            ("BURGER", 7, "COMBO-1"), ("FRIES", 17, "COMBO-1"),
        ]

    def test_existencias_insuficientes_retorna_409(self, catalogo):
        r = consumo(catalogo, [{"article_code": "BURGER", "quantity": "1", "unit": "RETAIL"}])
        assert r.status_code == 409
        assert "Existencias insuficientes para BURGER" in r.json()["detail"]

    def test_articulo_inexistente_retorna_404(self, catalogo):
        r = compra(catalogo, [{"article_code": "NOPE", "quantity": "1", "unit": "RETAIL"}])
        assert r.status_code == 404

    def test_consumo_sin_motivo_retorna_400(self, catalogo):
        r = catalogo.post("/inventario/consumos", json={
            "warehouse_code": "BODEGA",
            "lines": [{"article_code": "BURGER", "quantity": "1", "unit": "RETAIL"}],
        })
        assert r.status_code == 400

    def test_unidad_invalida_retorna_422(self, catalogo):
        r = compra(catalogo, [{"article_code": "BURGER", "quantity": "1", "unit": "PIEZA"}])
        assert r.status_code == 422

    def test_articulo_duplicado(self, catalogo):
        r = catalogo.post("/inventario/articulos", json={"code": "burger", "name": "Otra"})
        assert r.status_code == 400

    def test_traspaso(self, catalogo):
        compra(catalogo, [{"article_code": "COKE-600", "quantity": "1", "unit": "STORAGE"}])
        r = catalogo.post("/inventario/traspasos", json={
            "from_warehouse_code": "BODEGA", "to_warehouse_code": "BARRA", "occurred_at": "2025-03-02T09:00:00",
            "lines": [{"article_code": "COKE-600", "quantity": "6", "unit": "RETAIL"}],
        })
        assert r.status_code == 200
        assert r.json()["transaction"]["transaction_code"] == "TRA-000001"

        items = catalogo.get("/inventario/existencias", params={"article": "COKE-600"}).json()["items"]
        assert [(i["warehouse_code"], i["balance_retail"]) for i in items] == [("BARRA", 6), ("BODEGA", 6)]


class TestKardexAPI:

    def _movimientos(self, client):
        compra(client, [{"article_code": "COKE-600", "quantity": "2", "unit": "STORAGE"}], occurred_at="2025-03-01T10:00:00")
        consumo(client, [{"article_code": "COKE-600", "quantity": "5", "unit": "RETAIL"}], occurred_at="2025-03-05T10:00:00")
        client.post("/inventario/ajustes", json={
            "warehouse_code": "BODEGA", "occurred_at": "2025-03-08T10:00:00", "reason": "Conteo",
            "lines": [{"article_code": "COKE-600", "quantity": "-1", "unit": "RETAIL"}],
        })

    def test_kardex_json(self, catalogo):
        self._movimientos(catalogo)
        r = catalogo.get("/inventario/kardex")
        assert r.status_code == 200
        body = r.json()
        assert len(body["items"]) == 3
        [group] = body["groups"]
        assert group["initial_balance"] == 0
        assert group["final_balance"] == 18
        assert group["total_in"] == 24
        assert group["total_out"] == 6
        assert [m["delta"] for m in group["movements"]] == [24, -5, -1]

    def test_kardex_con_rango(self, catalogo):
        self._movimientos(catalogo)
        r = catalogo.get("/inventario/kardex", params={"from": "2025-03-05", "to": "2025-03-05", "article": ["coke-600"]})
        [group] = r.json()["groups"]
        assert group["initial_balance"] == 24
        assert group["final_balance"] == 19

    def test_kardex_rango_invertido(self, catalogo):
        r = catalogo.get("/inventario/kardex", params={"from": "2025-03-09", "to": "2025-03-01"})
        assert r.status_code == 400

    def test_kardex_html(self, catalogo):
        self._movimientos(catalogo)
        r = catalogo.get("/inventario/kardex", params={"format": "html"})
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/html")
        assert "COKE-600 - BODEGA" in r.text
        assert "COM-000001" in r.text
        assert "Saldo final: 18" in r.text

    def test_kardex_html_escapa_texto(self, catalogo):
        compra(catalogo, [{"article_code": "BURGER", "quantity": "1", "unit": "RETAIL"}], reference="<script>")
        r = catalogo.get("/inventario/kardex", params={"format": "html"})
        assert "<script>" not in r.text
        assert "&lt;script&gt;" in r.text

    def test_formato_no_soportado(self, catalogo):
        r = catalogo.get("/inventario/kardex", params={"format": "pdf"})
        assert r.status_code == 400


class TestDocumentosAPI:

    def test_lista_y_detalle(self, catalogo):
        compra(catalogo, [{"article_code": "BURGER", "quantity": "10", "unit": "RETAIL", "cost_per_unit": "35"}],
               reference="FAC-1")
        consumo(catalogo, [{"article_code": "BURGER", "quantity": "2", "unit": "RETAIL"}])

        r = catalogo.get("/inventario/documentos")
        assert r.status_code == 200
        assert [d["transaction_code"] for d in r.json()["items"]] == ["CON-000001", "COM-000001"]

        r = catalogo.get("/inventario/documentos", params={"type": "purchase,adjustment", "search": "fac"})
        [item] = r.json()["items"]
        assert item["transaction_code"] == "COM-000001"
        assert item["entries_in"] == 1

        r = catalogo.get("/inventario/documentos/com-000001")
        assert r.status_code == 200
        document = r.json()["document"]
        assert document["total_amount"] == 350
        assert [e["article_code"] for e in document["entries"]] == ["BURGER"]

    def test_detalle_html(self, catalogo):
        compra(catalogo, [{"article_code": "BURGER", "quantity": "1", "unit": "RETAIL"}], reference="<b>FAC</b>")
        r = catalogo.get("/inventario/documentos/COM-000001", params={"format": "html"})
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/html")
        assert "COM-000001" in r.text
        assert "&lt;b&gt;FAC&lt;/b&gt;" in r.text

    def test_folio_inexistente_retorna_404(self, catalogo):
        r = catalogo.get("/inventario/documentos/COM-000099")
        assert r.status_code == 404

    def test_rango_invertido_retorna_400(self, catalogo):
        r = catalogo.get("/inventario/documentos", params={"from": "2025-03-05", "to": "2025-03-01"})
        assert r.status_code == 400


class TestCatalogoAPI:

    def test_articulos_almacenes_y_kit(self, catalogo):
        r = catalogo.get("/inventario/articulos", params={"search": "burg"})
        assert r.status_code == 200
        assert [a["code"] for a in r.json()["items"]] == ["BURGER"]

        r = catalogo.get("/inventario/almacenes")
        assert [w["code"] for w in r.json()["items"]] == ["BARRA", "BODEGA"]

        r = catalogo.get("/inventario/kits/combo-1/componentes")
        assert r.status_code == 200
        assert r.json()["kit_code"] == "COMBO-1"
        assert [c["component_code"] for c in r.json()["components"]] == ["BURGER", "FRIES"]

    def test_componentes_de_articulo_simple_retorna_400(self, catalogo):
        assert catalogo.get("/inventario/kits/BURGER/componentes").status_code == 400
        assert catalogo.get("/inventario/kits/NOPE/componentes").status_code == 404
