import pytest

from conftest import add_customer
from kyc_contracts.sheets_db import SCHEMA, SheetsDB, SheetsDBError


def test_insert_assigns_id_and_timestamp(db):
    row = db.insert_row("authorized_persons", {"customer_id": "c1", "first_name": "Erika"})
    assert row["id"]
    assert row["created_at"]
    assert row["last_name"] is None
    assert set(row) == set(SCHEMA["authorized_persons"])


def test_values_are_typed_on_read(db):
    db.insert_row("customer_products", {
        "customer_id": "c1",
        "product_type": "softpos",
        "quantity": 3,
        "monthly_rent": 9.5,
    })
    db.insert_row("sepa_mandates", {"customer_id": "c1", "iban": "DE89370400440532013000", "accepted": True})

    product = db.get_row("customer_products", "c1")
    assert product["quantity"] == 3
    assert product["monthly_rent"] == 9.5
    assert product["setup_fee"] is None
    assert db.get_row("sepa_mandates", "c1")["accepted"] is True


def test_rows_are_scoped_to_customer(db):
    db.insert_row("beneficial_owners", {"customer_id": "c1", "first_name": "A"})
    db.insert_row("beneficial_owners", {"customer_id": "c2", "first_name": "B"})
    db.insert_row("beneficial_owners", {"customer_id": "c1", "first_name": "C"})

    assert [r["first_name"] for r in db.get_rows("beneficial_owners", "c1")] == ["A", "C"]
    assert db.get_row("signatures", "c1") is None


def test_get_customer(db):
    add_customer(db, "c1")
    assert db.get_customer("c1")["company_name"] == "Acme & Co. GmbH"
    assert db.get_customer("c2") is None


def test_delete_row(db):
    row = db.insert_row("documents", {"customer_id": "c1", "file_name": "a.pdf"})
    assert db.delete_row("documents", row["id"]) is True
    assert db.delete_row("documents", row["id"]) is False
    assert db.list_documents("c1") == []


def test_unknown_table(db):
    with pytest.raises(SheetsDBError):
        db.insert_row("invoices", {})
    with pytest.raises(SheetsDBError):
        db.get_rows("invoices", "c1")


def test_list_documents_newest_first(db):
    db.insert_row("documents", {"customer_id": "c1", "file_name": "b.pdf", "uploaded_at": "2025-01-02T00:00:00"})
    db.insert_row("documents", {"customer_id": "c1", "file_name": "c.pdf", "uploaded_at": "2025-01-03T00:00:00"})
    db.insert_row("documents", {"customer_id": "c1", "file_name": "a.pdf", "uploaded_at": "2025-01-01T00:00:00"})

    assert [r["file_name"] for r in db.list_documents("c1")] == ["c.pdf", "b.pdf", "a.pdf"]


def test_list_documents_equal_timestamps_prefer_later_insert(db):
    for name in ("first.pdf", "second.pdf"):
        db.insert_row("documents", {"customer_id": "c1", "file_name": name, "uploaded_at": "2025-01-01T00:00:00"})

    assert [r["file_name"] for r in db.list_documents("c1")] == ["second.pdf", "first.pdf"]


def test_list_documents_filters(db):
    db.insert_row("documents", {"customer_id": "c1", "document_type": "other", "file_name": "vertrag_alt.pdf"})
    db.insert_row("documents", {"customer_id": "c1", "document_type": "other", "file_name": "Notiz.pdf"})
    db.insert_row("documents", {"customer_id": "c1", "document_type": "id_document", "file_name": "Vertrag_id.pdf"})

    rows = db.list_documents("c1", document_type="other", file_name_prefix="Vertrag_")
    assert [r["file_name"] for r in rows] == ["vertrag_alt.pdf"]


def test_demo_mode_without_credentials(monkeypatch):
    monkeypatch.setattr("kyc_contracts.sheets_db.load_credentials", lambda: None)
    db = SheetsDB(demo_mode=False)
    assert db.demo_mode is True
    assert db.client is None
