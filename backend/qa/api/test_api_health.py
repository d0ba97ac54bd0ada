"""
Tests de API - Health y disponibilidad
"""


class TestHealthAPI:
    """Tests de endpoints de health"""

    def test_health_ready_returns_200(self, client):
        """GET /health/ready debe retornar 200 sin autenticación"""
        r = client.get("/health/ready")
        assert r.status_code == 200

    def test_health_ready_response_body(self, client):
        """GET /health/ready debe retornar status ok y el almacenamiento activo"""
        r = client.get("/health/ready")
        assert r.json() == {"status": "ok", "storage": "memory"}

    def test_security_headers(self, client):
        r = client.get("/health/ready")
        assert r.headers["X-Content-Type-Options"] == "nosniff"
        assert r.headers["X-Frame-Options"] == "DENY"
