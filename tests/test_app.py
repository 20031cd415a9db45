"""Tests for the HTTP surface"""
import io

import pytest

from backend import app as app_module
from backend.statement_etl.extract import PageRenderer


@pytest.fixture
def client():
    app_module.app.config['TESTING'] = True
    with app_module.app.test_client() as client:
        yield client


def _upload(client, content, filename, **form):
    data = {"file": (io.BytesIO(content), filename)}
    data.update(form)
    return client.post('/parse', data=data, content_type='multipart/form-data')


def test_health(client):
    res = client.get('/health')
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok"}


def test_parse_csv(client, statement_csv):
    res = _upload(client, statement_csv, "statement.csv", billing_type="student")
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "success"
    assert body["result"]["unique_count"] == 2
    assert body["result"]["period_start"] == "01/11/2025"
    assert [row["Serial No"] for row in body["rows"]] == [1, 2]
    assert body["summary"]["credit_total"] == 1000.0
    assert body["summary"]["debit_total"] == 500.0
    assert body["dominant_polarity"] == "credit"
    assert len(body["result"]["canonical"]) == 2
    assert body["result"]["canonical"][0]["credit_amount"] == 1000.0


def test_parse_debit_view(client, statement_csv):
    res = _upload(client, statement_csv, "statement.csv", transaction_type="debit")
    body = res.get_json()
    assert len(body["rows"]) == 1
    assert body["rows"][0]["Serial No"] == 1
    assert body["rows"][0]["Debit"] == "500.00"
    assert body["summary"]["total_count"] == 2


def test_missing_file_and_bad_view(client, statement_csv):
    assert client.post('/parse', data={}, content_type='multipart/form-data').status_code == 400
    assert _upload(client, statement_csv, "s.csv", transaction_type="refund").status_code == 400


def test_error_status_mapping(client, monkeypatch):
    assert _upload(client, b"data", "old.xls").status_code == 415
    assert _upload(client, b"", "empty.csv").status_code == 422
    assert _upload(client, b"no transactions here", "notes.txt").status_code == 422

    class BrokenBackend:
        def open(self, stream):
            raise OSError("cannot read")

    monkeypatch.setattr(PageRenderer, "_instance", PageRenderer(backend=BrokenBackend()))
    assert _upload(client, b"%PDF", "s.pdf").status_code == 503


def test_unknown_extension_is_415(client):
    res = _upload(client, b"\x89PNG", "scan.png")
    assert res.status_code == 415
    assert "Unsupported file type" in res.get_json()["error"]


def test_unexpected_error_is_500(client, statement_csv, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(app_module.statement_pipeline, "parse", boom)
    res = _upload(client, statement_csv, "s.csv")
    assert res.status_code == 500
    assert res.get_json()["status"] == "failed"
