"""
Tests for the HTTP gateway routes, using FastAPI's TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from call_tracer.gateway.app import app
from call_tracer.gateway.routes import analysis


@pytest.fixture
def client():
    analysis._settings = None
    with TestClient(app) as test_client:
        yield test_client
    analysis._settings = None


def _body(root, func="handle", **extra):
    return {"project": str(root), "file": "shop/service.py", "func": func, **extra}


# ─── Service endpoints ───────────────────────────────────────


class TestServiceEndpoints:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["endpoints"]["report"] == "/api/analysis/report"

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# ─── Analysis endpoints ──────────────────────────────────────


class TestAnalysisEndpoints:
    """Tests for the analysis routes and their error mapping."""

    def test_text_report(self, client, shop_root):
        response = client.post("/api/analysis/report", json=_body(shop_root, depth=0))
        assert response.status_code == 200
        assert response.json()["report"].startswith("Analysis for Function: handle (depth=0)\n")

    def test_json_report(self, client, shop_root):
        response = client.post(
            "/api/analysis/report", json=_body(shop_root, depth=1, format="json"),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["qualified_name"] == "shop.service.handle"
        assert data["called_funcs"] == ["shop.service.load_order", "shop.models.Receipt.render"]

    def test_called_funcs(self, client, shop_root):
        response = client.post("/api/analysis/called-funcs", json=_body(shop_root, depth=0))
        assert response.status_code == 200
        assert response.json() == {
            "target": "shop.service.handle",
            "depth": 0,
            "names": ["shop.service.load_order", "shop.models.Receipt.render"],
        }

    def test_ref_types_default_depth(self, client, shop_root):
        response = client.post("/api/analysis/ref-types", json=_body(shop_root))
        assert response.status_code == 200
        assert response.json()["depth"] == 3
        assert response.json()["names"] == ["shop.models.Receipt", "shop.models.Order"]

    def test_snippet_verbatim(self, client, shop_root):
        body = {
            "project": str(shop_root),
            "file": "shop/models.py",
            "func": "Receipt.render",
            "style": "verbatim",
        }
        response = client.post("/api/analysis/snippet", json=body)
        assert response.status_code == 200
        data = response.json()
        assert data["file"] == "shop/models.py"
        assert "# two decimals" in data["snippet"]

    def test_missing_field_is_422(self, client, shop_root):
        response = client.post("/api/analysis/called-funcs", json={"project": str(shop_root)})
        assert response.status_code == 422

    def test_empty_func_is_422(self, client, shop_root):
        response = client.post("/api/analysis/called-funcs", json=_body(shop_root, func=""))
        assert response.status_code == 422
        assert response.json()["detail"] == 'required argument "func" not found'

    def test_bad_project_is_400(self, client, tmp_path):
        response = client.post("/api/analysis/called-funcs", json=_body(tmp_path / "missing"))
        assert response.status_code == 400

    def test_unknown_function_is_404(self, client, shop_root):
        response = client.post("/api/analysis/ref-types", json=_body(shop_root, func="nope"))
        assert response.status_code == 404
        assert "function 'nope' not found" in response.json()["detail"]

    def test_negative_depth_is_422(self, client, shop_root):
        response = client.post("/api/analysis/report", json=_body(shop_root, depth=-1))
        assert response.status_code == 422

    def test_unknown_style_is_422(self, client, shop_root):
        response = client.post("/api/analysis/snippet", json=_body(shop_root, style="pretty"))
        assert response.status_code == 422

    def test_negative_depth_checked_before_loading(self, client, tmp_path):
        response = client.post(
            "/api/analysis/called-funcs", json=_body(tmp_path / "missing", depth=-1),
        )
        assert response.status_code == 422
        assert response.json()["detail"] == "depth must be >= 0, got -1"

    def test_unknown_style_checked_before_loading(self, client, tmp_path):
        response = client.post(
            "/api/analysis/snippet", json=_body(tmp_path / "missing", style="pretty"),
        )
        assert response.status_code == 422
        assert response.json()["detail"].startswith("unknown snippet style 'pretty'")
