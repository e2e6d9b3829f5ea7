import io

import pytest
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from kyc_contracts import drive_storage, sheets_db
from kyc_contracts.contract_pdf import TEMPLATE_PATH
from kyc_contracts.drive_storage import DriveStorage
from kyc_contracts.sheets_db import SheetsDB


def make_template(pages: int = 4) -> bytes:
    """Blank A4 PDF with the given number of pages"""
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    for _ in range(pages):
        c.showPage()
    c.save()
    return buffer.getvalue()


def add_customer(db: SheetsDB, customer_id: str = "cust-0001-abcd", **fields) -> dict:
    row = {
        "id": customer_id,
        "company_name": "Acme & Co. GmbH",
        "legal_form": "gmbh",
        "street": "Hauptstraße 1",
        "postal_code": "10115",
        "city": "Berlin",
        "country": "DE",
        "status": "submitted",
    }
    row.update(fields)
    return db.insert_row("customers", row)


def add_person(db: SheetsDB, customer_id: str, first_name: str = "Erika", last_name: str = "Mustermann", **fields) -> dict:
    row = {
        "customer_id": customer_id,
        "first_name": first_name,
        "last_name": last_name,
        "date_of_birth": "1980-03-07",
        "place_of_birth": "Köln",
        "nationality": "DE",
        "email": "erika@example.com",
    }
    row.update(fields)
    return db.insert_row("authorized_persons", row)


@pytest.fixture
def template_bytes() -> bytes:
    return make_template()


@pytest.fixture
def db() -> SheetsDB:
    return SheetsDB(demo_mode=True)


@pytest.fixture
def storage(tmp_path) -> DriveStorage:
    return DriveStorage(demo_mode=True, local_dir=str(tmp_path / "storage"))


@pytest.fixture
def stored_template(storage, template_bytes) -> bytes:
    storage.upload(TEMPLATE_PATH, template_bytes, content_type="application/pdf")
    return template_bytes


@pytest.fixture
def shared_clients(db, storage):
    """Install the demo clients as the process-wide clients used by the app"""
    sheets_db.reset_client(db)
    drive_storage.reset_client(storage)
    yield db, storage
    sheets_db.reset_client()
    drive_storage.reset_client()
