import pytest

from kyc_contracts.contract_layout import (
    LAYOUT,
    MAX_AUTHORIZED_PERSONS,
    MAX_BENEFICIAL_OWNERS,
    MAX_PRODUCTS,
    ROW_SECTIONS,
    TEMPLATE_PAGE_COUNT,
    field,
)


def test_single_field_position():
    position = field("customer.company_name")
    assert position == LAYOUT["customer.company_name"]
    assert position.page == 1
    assert position.font_size == 9


def test_row_index_moves_down_by_step():
    first = field("beneficial_owner.name", 0)
    third = field("beneficial_owner.name", 2)
    assert third.page == first.page
    assert third.x == first.x
    assert first.y - third.y == 2 * ROW_SECTIONS["beneficial_owner"].step


def test_row_field_defaults_to_first_row():
    assert field("product.quantity") == LAYOUT["product.quantity"]


@pytest.mark.parametrize(
    "key, capacity",
    [
        ("authorized_person.first_name", MAX_AUTHORIZED_PERSONS),
        ("beneficial_owner.name", MAX_BENEFICIAL_OWNERS),
        ("product.product_type", MAX_PRODUCTS),
    ],
)
def test_row_outside_capacity_is_rejected(key, capacity):
    field(key, capacity - 1)
    with pytest.raises(IndexError):
        field(key, capacity)


def test_capacities():
    assert (MAX_AUTHORIZED_PERSONS, MAX_BENEFICIAL_OWNERS, MAX_PRODUCTS) == (2, 3, 5)


def test_index_on_single_field_is_rejected():
    with pytest.raises(IndexError):
        field("sepa.iban", 1)


def test_unknown_key():
    with pytest.raises(KeyError):
        field("customer.shoe_size")


def test_every_field_lies_on_a_template_page():
    for key, position in LAYOUT.items():
        assert 1 <= position.page <= TEMPLATE_PAGE_COUNT, key
        assert 0 < position.x < 595, key
        assert 0 < position.y < 842, key


def test_last_rows_stay_on_the_page():
    for prefix, section in ROW_SECTIONS.items():
        for key in LAYOUT:
            if key.startswith(prefix + "."):
                assert field(key, section.capacity - 1).y > 0
