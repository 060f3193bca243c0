import io

import pytest
from openpyxl import Workbook

from datalens.config import Settings


CSV_SALES = (
    b"order_id,region,amount,ordered_at\n"
    b"ORD-001,North,\"1,200\",2024-01-05\n"
    b"ORD-002,South,300,2024-01-06\n"
    b"ORD-003,North,45.5,2024-02-01\n"
    b"ORD-004,East,,2024-02-15\n"
    b"ORD-005,West,80,2024-03-01\n"
    b"ORD-006,North,120,2024-03-03\n"
    b"ORD-007,South,95.25,2024-03-09\n"
    b"ORD-008,East,60,2024-04-12\n"
    b"ORD-009,North,410,2024-04-20\n"
    b"ORD-010,West,75,2024-05-02\n"
    b"ORD-002,South,300,2024-01-06\n"
)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def csv_bytes():
    return CSV_SALES


@pytest.fixture
def workbook_bytes():
    """Two-sheet workbook: 'Sales' (with a blank and an over-wide row) and 'Notes'"""
    wb = Workbook()
    sales = wb.active
    sales.title = "Sales"
    sales.append(["region", "amount"])
    sales.append(["North", 10])
    sales.append([None, None])
    sales.append(["South", 20.5])
    sales.append(["East", 5, "unexpected"])

    notes = wb.create_sheet("Notes")
    notes.append(["note"])
    notes.append(["hello"])

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def duplicate_rows():
    return [
        {"a": "1", "b": "x"},
        {"a": "2", "b": "y"},
        {"a": "1", "b": "x"},
    ]
