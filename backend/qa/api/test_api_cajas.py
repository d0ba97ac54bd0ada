"""
Tests de API - Apertura y cierre de caja
"""
from factories import auth_headers


def preparar_caja(client, code="CAJA-1", user_id=1):
    assert client.post("/cajas", json={"code": code, "name": "Caja principal"}).status_code == 200
    r = client.post("/cajas/asignaciones", json={"admin_user_id": user_id, "cash_register_code": code})
    assert r.status_code == 200


class TestCajasAPI:

    def test_ciclo_de_caja(self, client_auth):
        preparar_caja(client_auth)
        r = client_auth.post("/cajas/aperturas", json={"cash_register_code": "CAJA-1", "opening_amount": "500"})
        assert r.status_code == 200
        session_id = r.json()["id"]
        assert r.json()["status"] == "OPEN"

        active = client_auth.get("/cajas/sesion-activa").json()["session"]
        assert active["id"] == session_id

        r = client_auth.post(f"/cajas/aperturas/{session_id}/pagos", json={
            "invoice_number": "F-0001",
            "payments": [{"method": "cash", "amount": "100"}, {"method": "card", "amount": "50"}],
        })
        assert r.status_code == 200
        assert len(r.json()["payments"]) == 2

        r = client_auth.post("/cajas/cierres", json={
            "closing_amount": "595",
            "payments": [{"method": "CASH", "amount": "95"}, {"method": "CARD", "amount": "50"}],
            "closing_notes": "faltante en efectivo",
        })
        assert r.status_code == 200
        summary = r.json()
        assert summary["expected_total_amount"] == 150
        assert summary["reported_total_amount"] == 145
        assert summary["difference_total_amount"] == 5
        assert summary["total_invoices"] == 1
        assert [p["method"] for p in summary["payments"]] == ["CARD", "CASH"]

        assert client_auth.get("/cajas/sesion-activa").json() == {"session": None}
        report = client_auth.get(f"/cajas/cierres/{session_id}/reporte")
        assert report.status_code == 200
        assert report.json()["difference_total_amount"] == 5

    def test_caja_no_asignada_retorna_409(self, client_auth):
        assert client_auth.post("/cajas", json={"code": "CAJA-2", "name": "Terraza"}).status_code == 200
        r = client_auth.post("/cajas/aperturas", json={"cash_register_code": "CAJA-2", "opening_amount": "0"})
        assert r.status_code == 409

    def test_body_no_puede_omitir_la_asignacion(self, client_auth):
        assert client_auth.post("/cajas", json={"code": "CAJA-9", "name": "Terraza"}).status_code == 200
        r = client_auth.post("/cajas/aperturas", json={
            "cash_register_code": "CAJA-9", "opening_amount": "0", "allow_unassigned": True,
        })
        assert r.status_code == 409
        assert "No tienes permisos" in r.json()["detail"]
        assert client_auth.get("/cajas/sesion-activa").json() == {"session": None}

    def test_otro_usuario_no_cierra(self, client_auth):
        preparar_caja(client_auth)
        session_id = client_auth.post(
            "/cajas/aperturas", json={"cash_register_code": "CAJA-1", "opening_amount": "0"}
        ).json()["id"]
        r = client_auth.post(
            "/cajas/cierres", json={"session_id": session_id, "closing_amount": "0"}, headers=auth_headers(2),
        )
        assert r.status_code == 409
        assert r.json()["detail"] == "Solo el usuario que abrió la caja puede cerrarla"

    def test_cierre_sin_sesion_retorna_404(self, client_auth):
        r = client_auth.post("/cajas/cierres", json={"closing_amount": "0"})
        assert r.status_code == 404

    def test_monto_negativo_retorna_400(self, client_auth):
        preparar_caja(client_auth)
        r = client_auth.post("/cajas/aperturas", json={"cash_register_code": "CAJA-1", "opening_amount": "-10"})
        assert r.status_code == 400

    def test_reporte_de_sesion_abierta_retorna_409(self, client_auth):
        preparar_caja(client_auth)
        session_id = client_auth.post(
            "/cajas/aperturas", json={"cash_register_code": "CAJA-1", "opening_amount": "0"}
        ).json()["id"]
        r = client_auth.get(f"/cajas/cierres/{session_id}/reporte")
        assert r.status_code == 409
