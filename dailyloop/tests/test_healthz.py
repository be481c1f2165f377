from fastapi.testclient import TestClient

import dailyloop.api.health as health_api
from dailyloop.features.progress.store_sql import SqlProgressStore
from dailyloop.main import app

client = TestClient(app)


def _use_sql_store(monkeypatch):
    monkeypatch.setattr(health_api, "get_store", lambda: SqlProgressStore())


def test_healthz_always_ok():
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json().get("status") == "ok"


def test_readyz_ok_with_memory_store():
    resp = client.get("/readyz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "store": "memory"}


def test_readyz_ok_with_mocked_db(monkeypatch):
    class FakeConn:
        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return False

        def exec_driver_sql(self, query):
            return None

    class FakeEngine:
        def connect(self):
            return FakeConn()

    class FakeInspector:
        def __init__(self, tables):
            self.tables = set(tables)

        def has_table(self, name):
            return name in self.tables

    _use_sql_store(monkeypatch)
    monkeypatch.setattr(health_api, "get_engine", lambda: FakeEngine())
    monkeypatch.setattr(health_api, "inspect", lambda engine: FakeInspector(["progress_records"]))

    resp = client.get("/readyz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "store": "sql"}


def test_readyz_reports_missing_table(monkeypatch):
    class FakeConn:
        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return False

        def exec_driver_sql(self, query):
            return None

    class FakeEngine:
        def connect(self):
            return FakeConn()

    class EmptyInspector:
        def has_table(self, name):
            return False

    _use_sql_store(monkeypatch)
    monkeypatch.setattr(health_api, "get_engine", lambda: FakeEngine())
    monkeypatch.setattr(health_api, "inspect", lambda engine: EmptyInspector())

    resp = client.get("/readyz")
    assert resp.status_code == 503
    assert "progress_records" in resp.json().get("detail", "")


def test_readyz_handles_db_down(monkeypatch):
    def boom():
        raise RuntimeError("db down")

    _use_sql_store(monkeypatch)
    monkeypatch.setattr(health_api, "get_engine", boom)

    resp = client.get("/readyz")
    body = resp.json()
    assert resp.status_code == 503
    assert body.get("status") == "error"
    assert "database" in body.get("detail", "")


def test_smoke_endpoint():
    resp = client.get("/test")
    assert resp.status_code == 200
    assert resp.json()["message"] == "API is working!"
