"""
Field positions on the 4-page contract template.

Coordinates are PDF points on an A4 page (595 x 842), x from the left
edge, y the text baseline from the bottom edge. Repeated blocks
(authorized persons, beneficial owners, products) are declared for the
first row only; later rows move down by the section's row step.
"""

from typing import Dict, NamedTuple, Optional

FONT_NAME = 'Helvetica'
FONT_SIZE = 9

TEMPLATE_PAGE_COUNT = 4

SIGNATURE_DISCLAIMER = '(Elektronisch signiert)'

# Value columns of the printed form
COL_L = 72
COL_M1 = 150
COL_M2 = 300
COL_R = 460


class FieldSpec(NamedTuple):
    page: int        # 1-based template page
    x: float
    y: float
    font_size: int = FONT_SIZE


class RowSection(NamedTuple):
    step: float      # vertical distance between rows
    capacity: int    # rows beyond this are not printed


MAX_AUTHORIZED_PERSONS = 2
MAX_BENEFICIAL_OWNERS = 3
MAX_PRODUCTS = 5

ROW_SECTIONS: Dict[str, RowSection] = {
    'authorized_person': RowSection(step=90, capacity=MAX_AUTHORIZED_PERSONS),
    'beneficial_owner': RowSection(step=18, capacity=MAX_BENEFICIAL_OWNERS),
    'product': RowSection(step=22, capacity=MAX_PRODUCTS),
}

LAYOUT: Dict[str, FieldSpec] = {
    # Page 1 - header and company
    'customer.reference': FieldSpec(1, COL_L, 722),
    'customer.generated_on': FieldSpec(1, COL_R, 722),
    'customer.company_name': FieldSpec(1, COL_M1, 646),
    'customer.legal_form': FieldSpec(1, COL_R, 646),
    'customer.vat_id': FieldSpec(1, COL_M1, 634),
    'customer.commercial_register': FieldSpec(1, COL_M2, 634),
    'customer.street': FieldSpec(1, COL_M1, 622),
    'customer.postal_code': FieldSpec(1, COL_M2, 622),
    'customer.city': FieldSpec(1, COL_M2 + 50, 622),
    'customer.country': FieldSpec(1, COL_R, 622),

    # Page 1 - contact person (first authorized person)
    'contact.first_name': FieldSpec(1, COL_M1, 594),
    'contact.last_name': FieldSpec(1, COL_M1 + 90, 594),
    'contact.email': FieldSpec(1, COL_M2 + 90, 594),
    'contact.phone': FieldSpec(1, COL_R, 594),

    # Page 1 - authorized persons, first block
    'authorized_person.first_name': FieldSpec(1, COL_M1, 522),
    'authorized_person.last_name': FieldSpec(1, COL_M2, 522),
    'authorized_person.place_of_birth': FieldSpec(1, COL_L + 35, 507),
    'authorized_person.date_of_birth': FieldSpec(1, COL_M2, 507),
    'authorized_person.nationality': FieldSpec(1, COL_R, 507),
    'authorized_person.private_street': FieldSpec(1, COL_M1, 492),
    'authorized_person.private_postal_code': FieldSpec(1, COL_M2, 492),
    'authorized_person.private_city': FieldSpec(1, COL_M2 + 60, 492),
    'authorized_person.private_country': FieldSpec(1, COL_R, 492),
    'authorized_person.id_document_number': FieldSpec(1, COL_M1 + 60, 477),
    'authorized_person.id_document_issue_date': FieldSpec(1, COL_M2 + 20, 477),
    'authorized_person.id_document_issuing_authority': FieldSpec(1, COL_R, 477),
    'authorized_person.email': FieldSpec(1, COL_M1 + 25, 462),

    # Page 2 - beneficial owners, first row
    'beneficial_owner.name': FieldSpec(2, COL_M1 - 10, 537),
    'beneficial_owner.date_of_birth': FieldSpec(2, COL_M2 - 20, 537),
    'beneficial_owner.nationality': FieldSpec(2, COL_R - 60, 537),
    'beneficial_owner.ownership_percentage': FieldSpec(2, COL_R + 40, 537),

    # Page 3 - products, first row
    'product.product_type': FieldSpec(3, COL_L + 25, 582),
    'product.quantity': FieldSpec(3, COL_M1 + 35, 582),
    'product.monthly_rent': FieldSpec(3, COL_M2 + 20, 582),
    'product.setup_fee': FieldSpec(3, COL_M2 + 120, 582),

    # Page 4 - SEPA direct debit mandate
    'sepa.account_holder': FieldSpec(4, COL_M1 - 25, 622),
    'sepa.iban': FieldSpec(4, COL_M2 + 5, 622),
    'sepa.bank_name': FieldSpec(4, COL_M1 - 25, 606),
    'sepa.bic': FieldSpec(4, COL_M2 + 5, 606),
    'sepa.generated_on': FieldSpec(4, COL_L + 20, 571),
    'sepa.mandate_reference': FieldSpec(4, COL_M2 + 5, 571),

    # Page 4 - service agreement signature
    'signature.date': FieldSpec(4, COL_L + 20, 198),
    'signature.name': FieldSpec(4, COL_L + 20, 180),
    'signature.disclaimer': FieldSpec(4, COL_L + 20, 162),
}


def field(key: str, index: Optional[int] = None) -> FieldSpec:
    """
    Position of a field.

    Keys of a repeated section need the 0-based row index; the row is
    moved down by the section's step. Raises KeyError for unknown keys
    and IndexError for rows outside the section's capacity.
    """
    position = LAYOUT[key]
    section = ROW_SECTIONS.get(key.split('.', 1)[0])

    if section is None:
        if index:
            raise IndexError(f"{key} is not a repeated field")
        return position

    index = index or 0
    if not 0 <= index < section.capacity:
        raise IndexError(f"Row {index} of {key} outside capacity {section.capacity}")
    return position._replace(y=position.y - index * section.step)
