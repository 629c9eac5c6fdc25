"""
Tests for the HTTP tool server (FastAPI TestClient).
"""

import pytest
from fastapi.testclient import TestClient

from perfscope import __version__
from perfscope.server import ALLOWED_ORIGINS, app, parse_origins

from tests.fixtures.profiles import interval, profile_dict, thread_dict, write_profile


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def profile_path(tmp_path):
    doc = profile_dict([thread_dict("GeckoMain", stacks=[("main",)] * 3, is_main=True)])
    return str(write_profile(tmp_path / "p.json.gz", doc, compress=True))


class TestHealth:

    @pytest.mark.parametrize("url", ["/", "/api"])
    def test_health(self, client, url):
        response = client.get(url)
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "perfscope", "version": __version__}


class TestTools:

    def test_list(self, client):
        tools = client.get("/api/tools").json()['tools']
        assert len(tools) == 18
        assert {'name', 'description', 'fields'} <= set(tools[0])

    def test_run_tool(self, client, profile_path):
        response = client.post("/api/tools/get_summary", json={'path': profile_path})
        assert response.status_code == 200
        body = response.json()
        assert body['success'] is True
        assert body['browser_type'] == "firefox"
        assert body['total_samples'] == 3

    def test_unknown_tool(self, client):
        response = client.post("/api/tools/does_not_exist", json={})
        assert response.status_code == 404

    def test_body_not_json(self, client):
        response = client.post(
            "/api/tools/get_summary",
            content=b"not json",
            headers={'Content-Type': "application/json"},
        )
        assert response.status_code == 400

    def test_body_not_object(self, client):
        response = client.post("/api/tools/get_summary", json=["a"])
        assert response.status_code == 400
        assert response.json()['detail'] == "Request body must be a JSON object"

    def test_missing_field(self, client):
        response = client.post("/api/tools/get_summary", json={})
        assert response.status_code == 400
        assert response.json()['detail'] == "Missing 'path' field"

    def test_unloadable_profile(self, client, tmp_path):
        response = client.post("/api/tools/get_summary", json={'path': str(tmp_path / "missing.json")})
        assert response.status_code == 422

    def test_measurement_error_is_bad_request(self, client, profile_path):
        response = client.post("/api/tools/measure_operation", json={
            'path': profile_path, 'start_pattern': "DOMEvent", 'end_pattern': "Paint",
        })
        assert response.status_code == 400
        assert response.json()['detail'] == "no delimiter markers found in profile"

    def test_batch_error_is_unprocessable(self, client):
        response = client.post("/api/tools/batch_analyze", json={'profiles': [{'label': "no path"}]})
        assert response.status_code == 422

    def test_bottlenecks(self, client, tmp_path):
        path = tmp_path / "lt.json"
        markers = [interval("MainThreadLongTask", "Other", 100.0 + i * 500.0, d) for i, d in enumerate((60.0, 80.0, 150.0))]
        write_profile(path, profile_dict([thread_dict("GeckoMain", markers=markers, is_main=True)]))
        body = client.post("/api/tools/get_bottlenecks", json={'path': str(path)}).json()
        assert body['score'] == 90


class TestCors:

    @pytest.mark.parametrize("value,expected", [
        ("", []),
        (" , ", []),
        ("*", ["*"]),
        ("http://a.test, http://b.test", ["http://a.test", "http://b.test"]),
    ])
    def test_parse_origins(self, value, expected):
        assert parse_origins(value) == expected

    @pytest.mark.skipif(bool(ALLOWED_ORIGINS), reason="PERFSCOPE_ALLOWED_ORIGINS set in the environment")
    def test_no_cross_origin_by_default(self, client):
        response = client.get("/api/tools", headers={'Origin': "http://localhost:5173"})
        assert response.status_code == 200
        assert "access-control-allow-origin" not in response.headers
