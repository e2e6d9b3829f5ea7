"""
Contract PDF Rendering

Fills the fixed 4-page contract template with a customer's onboarding data.
Text is drawn onto a reportlab overlay per page and merged onto the
template page with pypdf. There is no wrapping or measuring: long values
run into neighbouring fields.

The base-14 Helvetica font only covers the WinAnsi (cp1252) character set.
Other characters (e.g. Ł, ż, CJK) print as a placeholder box; each
affected field is logged as a warning.
"""

import io
import os
import logging
from datetime import date, datetime
from typing import Dict, Any, List, NamedTuple, Optional

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.lib import colors
from reportlab.pdfgen import canvas

from .contract_layout import (
    FONT_NAME, TEMPLATE_PAGE_COUNT, SIGNATURE_DISCLAIMER,
    MAX_AUTHORIZED_PERSONS, MAX_BENEFICIAL_OWNERS, MAX_PRODUCTS,
    field
)
from .drive_storage import DriveStorage, StorageError, get_client as get_storage_client
from .errors import TemplateUnavailable

logger = logging.getLogger(__name__)

TEMPLATE_PATH = os.environ.get('CONTRACT_TEMPLATE_PATH', 'templates/contract-template.pdf')

DISCLAIMER_COLOR = colors.Color(0.5, 0.5, 0.5)

FONT_ENCODING = 'cp1252'

AUTHORIZED_PERSON_FIELDS = [
    'first_name', 'last_name', 'place_of_birth', 'date_of_birth', 'nationality',
    'private_street', 'private_postal_code', 'private_city', 'private_country',
    'id_document_number', 'id_document_issue_date', 'id_document_issuing_authority',
    'email'
]

DATE_FIELDS = {'date_of_birth', 'id_document_issue_date'}


class Placement(NamedTuple):
    key: str
    page: int
    x: float
    y: float
    font_size: int
    text: str


# ========== Value formatting ==========

def _text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def format_date(value: Any) -> str:
    """Render a date (or ISO date/timestamp string) as DD.MM.YYYY"""
    if not value:
        return ''
    if isinstance(value, (date, datetime)):
        return value.strftime('%d.%m.%Y')
    try:
        return date.fromisoformat(str(value)[:10]).strftime('%d.%m.%Y')
    except ValueError:
        return str(value)


def format_amount(value: Any) -> str:
    """Money with two decimals and a decimal comma; non-numbers as given"""
    if value is None or value == '':
        return ''
    try:
        return f"{float(value):.2f}".replace('.', ',')
    except (TypeError, ValueError):
        return str(value)


def format_percent(value: Any) -> str:
    if value is None or value == '':
        return ''
    try:
        number = float(value)
    except (TypeError, ValueError):
        return f"{value}%"
    if number.is_integer():
        return f"{int(number)}%"
    return f"{number:g}%".replace('.', ',')


def _full_name(person: Dict[str, Any]) -> str:
    return f"{_text(person.get('first_name'))} {_text(person.get('last_name'))}".strip()


# ========== Placement ==========

def layout_entries(data: Dict[str, Any], generated_on: Optional[date] = None) -> List[Placement]:
    """
    Resolve every non-empty value of the contract to its position.

    Args:
        data: Aggregate from gather_contract_data
        generated_on: Date printed as the generation date (default today)

    Returns:
        List of placements; empty values are left out
    """
    generated_on = generated_on or date.today()
    today = format_date(generated_on)
    placements: List[Placement] = []

    def put(key: str, text: str, index: Optional[int] = None):
        if not text:
            return
        position = field(key, index)
        name = key if index is None else key.replace('.', f'.{index}.', 1)
        placements.append(Placement(name, position.page, position.x, position.y, position.font_size, text))

    customer = data.get('customer') or {}
    persons = data.get('authorized_persons') or []
    owners = data.get('beneficial_owners') or []
    products = data.get('products') or []
    mandate = data.get('sepa_mandate')
    signature = data.get('signature')

    # Page 1
    put('customer.reference', _text(customer.get('id'))[:8])
    put('customer.generated_on', today)
    put('customer.company_name', _text(customer.get('company_name')))
    put('customer.legal_form', _text(customer.get('legal_form')).upper())
    put('customer.vat_id', _text(customer.get('vat_id')))
    put('customer.commercial_register', _text(customer.get('commercial_register')))
    for name in ('street', 'postal_code', 'city', 'country'):
        put(f'customer.{name}', _text(customer.get(name)))

    if persons:
        contact = persons[0]
        for name in ('first_name', 'last_name', 'email', 'phone'):
            put(f'contact.{name}', _text(contact.get(name)))

    for index, person in enumerate(persons[:MAX_AUTHORIZED_PERSONS]):
        for name in AUTHORIZED_PERSON_FIELDS:
            value = person.get(name)
            text = format_date(value) if name in DATE_FIELDS else _text(value)
            put(f'authorized_person.{name}', text, index)

    # Page 2
    for index, owner in enumerate(owners[:MAX_BENEFICIAL_OWNERS]):
        put('beneficial_owner.name', _full_name(owner), index)
        put('beneficial_owner.date_of_birth', format_date(owner.get('date_of_birth')), index)
        put('beneficial_owner.nationality', _text(owner.get('nationality')), index)
        put('beneficial_owner.ownership_percentage', format_percent(owner.get('ownership_percentage')), index)

    # Page 3
    for index, product in enumerate(products[:MAX_PRODUCTS]):
        put('product.product_type', _text(product.get('product_type')), index)
        put('product.quantity', _text(product.get('quantity')), index)
        put('product.monthly_rent', format_amount(product.get('monthly_rent')), index)
        put('product.setup_fee', format_amount(product.get('setup_fee')), index)

    # Page 4
    if mandate:
        put('sepa.account_holder', _text(mandate.get('account_holder')))
        put('sepa.iban', _text(mandate.get('iban')))
        put('sepa.bank_name', _text(mandate.get('bank_name')))
        put('sepa.bic', _text(mandate.get('bic')))
        put('sepa.generated_on', today)
        put('sepa.mandate_reference', _text(mandate.get('mandate_reference')))

    if signature:
        put('signature.date', format_date(signature.get('timestamp')))
        if persons:
            put('signature.name', _full_name(persons[0]))
        put('signature.disclaimer', SIGNATURE_DISCLAIMER)

    return placements


# ========== Template ==========

def read_template(content: bytes) -> PdfReader:
    """Parse template bytes; TemplateUnavailable if unusable"""
    if not content:
        raise TemplateUnavailable("Template ist leer")
    try:
        reader = PdfReader(io.BytesIO(content))
        page_count = len(reader.pages)
    except (PyPdfError, ValueError) as e:
        raise TemplateUnavailable(f"Template konnte nicht gelesen werden: {e}") from e
    if page_count < TEMPLATE_PAGE_COUNT:
        raise TemplateUnavailable(
            f"Template hat {page_count} Seiten, erwartet {TEMPLATE_PAGE_COUNT}"
        )
    return reader


def load_template(storage: Optional[DriveStorage] = None) -> bytes:
    """Fetch the contract template from storage and check it parses"""
    storage = storage or get_storage_client()
    try:
        content = storage.download(TEMPLATE_PATH)
    except StorageError as e:
        logger.error(f"Error downloading template: {e}")
        raise TemplateUnavailable(f"Template konnte nicht geladen werden: {e}") from e

    read_template(content)
    logger.info(f"Template loaded ({len(content)} bytes)")
    return content


# ========== Rendering ==========

def unsupported_characters(text: str) -> List[str]:
    """Characters of text the contract font cannot draw, in order of appearance"""
    missing: List[str] = []
    for ch in text:
        try:
            ch.encode(FONT_ENCODING)
        except UnicodeEncodeError:
            if ch not in missing:
                missing.append(ch)
    return missing


def _overlay_page(placements: List[Placement], width: float, height: float):
    """Draw placements on a blank page of the template's size"""
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=(width, height))
    for p in placements:
        missing = unsupported_characters(p.text)
        if missing:
            logger.warning(f"{p.key}: {FONT_NAME} cannot draw {''.join(missing)!r}, printed as placeholder")
        c.setFont(FONT_NAME, p.font_size)
        c.setFillColor(DISCLAIMER_COLOR if p.key == 'signature.disclaimer' else colors.black)
        c.drawString(p.x, p.y, p.text)
    c.showPage()
    c.save()
    buffer.seek(0)
    return PdfReader(buffer).pages[0]


def render_contract(
    data: Dict[str, Any],
    template_bytes: bytes,
    generated_on: Optional[date] = None
) -> bytes:
    """
    Render the filled contract.

    Args:
        data: Aggregate from gather_contract_data
        template_bytes: The contract template PDF
        generated_on: Generation date printed on pages 1 and 4

    Returns:
        PDF bytes with the same page count as the template

    Raises:
        TemplateUnavailable: template missing, unreadable or too short
    """
    reader = read_template(template_bytes)

    by_page: Dict[int, List[Placement]] = {}
    for placement in layout_entries(data, generated_on):
        by_page.setdefault(placement.page, []).append(placement)

    writer = PdfWriter(clone_from=reader)
    for number, page in enumerate(writer.pages, start=1):
        page_placements = by_page.get(number)
        if page_placements:
            overlay = _overlay_page(
                page_placements,
                float(page.mediabox.width),
                float(page.mediabox.height)
            )
            page.merge_page(overlay)

    output = io.BytesIO()
    writer.write(output)
    pdf_bytes = output.getvalue()

    logger.info(f"Rendered contract: {len(reader.pages)} pages, {len(pdf_bytes)} bytes")
    return pdf_bytes
