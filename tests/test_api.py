import io
import json

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from datalens.main import app


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_analyze_upload(client, csv_bytes):
    response = client.post(
        "/api/datasets/analyze",
        files={"file": ("sales.csv", csv_bytes, "text/csv")},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["rawRowCount"] == 11
    assert data["duplicatesRemoved"] == 1
    assert 0 <= data["qualityScore"] <= 100
    assert [c["name"] for c in data["columnInfo"]] == ["order_id", "region", "amount", "ordered_at"]


def test_rejects_unknown_extension(client):
    response = client.post(
        "/api/datasets/analyze",
        files={"file": ("notes.pdf", b"%PDF", "application/pdf")},
    )
    assert response.status_code == 415


def test_unreadable_source_is_422(client):
    response = client.post(
        "/api/datasets/analyze",
        files={"file": ("broken.json", b"{nope", "application/json")},
    )
    assert response.status_code == 422


def test_sheets(client, workbook_bytes, csv_bytes):
    response = client.post("/api/datasets/sheets", files={"file": ("book.xlsx", workbook_bytes)})
    assert response.json() == {"sheets": ["Sales", "Notes"]}

    response = client.post("/api/datasets/sheets", files={"file": ("sales.csv", csv_bytes)})
    assert response.json() == {"sheets": []}


def test_preview(client, workbook_bytes):
    response = client.post(
        "/api/datasets/preview",
        files={"file": ("book.xlsx", workbook_bytes)},
        data={"sheet_index": "1", "rows": "5"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["columns"] == ["note"]
    assert body["rows"] == [{"note": "hello"}]
    assert body["sheetName"] == "Notes"


def test_analyze_records(client, duplicate_rows):
    response = client.post("/api/datasets/analyze/records", json=duplicate_rows)
    assert response.status_code == 200
    assert response.json()["rows"] == 2


def test_export_csv(client):
    rows = [{"a": 1.0, "b": "x"}]
    response = client.post("/api/datasets/export?format=csv", json=rows)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.text == "a,b\n1,x\n"


def test_export_xlsx(client):
    rows = [{"a": 1.0, "b": "x"}]
    response = client.post("/api/datasets/export?format=xlsx", json=rows)
    assert response.status_code == 200
    sheet = load_workbook(io.BytesIO(response.content))["Cleaned Data"]
    assert list(sheet.iter_rows(values_only=True))[0] == ("a", "b")


def test_correlation(client):
    rows = [{"x": i, "y": 2 * i} for i in range(5)]
    response = client.post("/api/analysis/correlation", json={"rows": rows, "columns": ["x", "y"]})
    assert response.status_code == 200
    body = response.json()
    assert body["columns"] == ["x", "y"]
    assert body["matrix"][0][1] == pytest.approx(1.0)


def test_insights(client, duplicate_rows):
    response = client.post("/api/analysis/insights", json=duplicate_rows)
    assert response.status_code == 200
    body = response.json()
    assert body["insights"][0] == "Dataset contains 2 rows across 2 columns."
    assert "1 duplicate rows were detected and removed." in body["insights"]


def test_analyze_records_flattens_nested_objects(client):
    records = [
        {"user": {"name": "ann", "age": 31}, "plan": "pro"},
        {"user": {"name": "bob", "age": 27}, "plan": "free"},
        "not a record",
    ]
    response = client.post("/api/datasets/analyze/records", json=records)
    assert response.status_code == 200
    body = response.json()
    assert body["columnNames"] == ["user.name", "user.age", "plan"]
    assert body["parsingErrors"] == 1
    assert body["cleanedData"][0] == {"user.name": "ann", "user.age": 31.0, "plan": "pro"}


def test_insights_use_flattened_columns(client):
    records = [{"order": {"total": float(t)}} for t in (10, 20, 30, 40, 50)]
    response = client.post("/api/analysis/insights", json=records)
    assert response.status_code == 200
    assert '"order.total" ranges from 10 to 50 (avg: 30.00).' in response.json()["insights"]


def test_export_json(client):
    response = client.post("/api/datasets/export?format=json", json=[{"a": 1}])
    assert response.status_code == 200
    assert json.loads(response.content) == [{"a": 1}]


def test_export_unknown_format_is_400(client):
    response = client.post("/api/datasets/export?format=parquet", json=[{"a": 1}])
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert "parquet" in detail["message"]
    assert detail["details"]["allowed"] == ["csv", "json", "xlsx"]
