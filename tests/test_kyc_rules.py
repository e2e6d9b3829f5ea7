import re

from kyc_contracts.kyc_rules import (
    VALIDATORS,
    document_types_for,
    format_iban,
    generate_mandate_reference,
    requires_commercial_register,
    validate_authorized_person,
    validate_beneficial_owner,
    validate_card_fees,
    validate_company,
    validate_new_customer,
    validate_product,
    validate_sepa_mandate,
)

VALID_COMPANY = {
    "legal_form": "gmbh",
    "street": "Hauptstraße 1",
    "postal_code": "10115",
    "city": "Berlin",
    "vat_id": "DE123456789",
    "commercial_register": "HRB 12345",
}

VALID_PERSON = {
    "first_name": "Erika",
    "last_name": "Mustermann",
    "date_of_birth": "1980-03-07",
    "place_of_birth": "Köln",
    "nationality": "DE",
    "email": "erika@example.com",
    "private_street": "Nebenweg 2",
    "private_postal_code": "50667",
    "private_city": "Köln",
    "private_country": "DE",
    "id_document_number": "L01X00T47",
    "id_document_issue_date": "2020-05-01",
    "id_document_issuing_authority": "Stadt Köln",
}

VALID_MANDATE = {
    "iban": "de89 3704 0044 0532 0130 00",
    "bic": "COBADEFFXXX",
    "bank_name": "Commerzbank",
    "account_holder": "Acme GmbH",
    "accepted": True,
}


def _values(types):
    return [t["value"] for t in types]


def test_commercial_register_requirement():
    assert requires_commercial_register("GmbH")
    assert requires_commercial_register("ug")
    assert not requires_commercial_register("einzelunternehmen")
    assert not requires_commercial_register(None)


def test_document_types_for_registered_company():
    values = _values(document_types_for("ag"))
    assert values[:3] == ["commercial_register", "transparency_register", "articles_of_association"]
    assert "id_document" in values


def test_document_types_for_sole_trader():
    types = document_types_for("einzelunternehmen")
    assert types[0] == {"value": "articles_of_association", "label": "Gewerbeanmeldung"}
    assert "commercial_register" not in _values(types)


def test_document_types_for_unknown_form():
    assert _values(document_types_for("verein"))[:2] == ["commercial_register", "articles_of_association"]


def test_validate_company():
    assert validate_company(VALID_COMPANY) == {}

    errors = validate_company(dict(VALID_COMPANY, postal_code="1011", vat_id="DE12", commercial_register=""))
    assert set(errors) == {"postal_code", "vat_id", "commercial_register"}

    sole_trader = dict(VALID_COMPANY, legal_form="einzelunternehmen", commercial_register="")
    assert validate_company(sole_trader) == {}


def test_validate_authorized_person():
    assert validate_authorized_person(VALID_PERSON) == {}

    errors = validate_authorized_person(dict(VALID_PERSON, nationality="DEU", email="kein-mail", first_name=" "))
    assert set(errors) == {"nationality", "email", "first_name"}


def test_validate_beneficial_owner():
    assert validate_beneficial_owner({"first_name": "Anna", "last_name": "Eigner", "ownership_percentage": 30}) == {}

    errors = validate_beneficial_owner({"first_name": "Anna", "last_name": "Eigner", "ownership_percentage": 130})
    assert set(errors) == {"ownership_percentage"}


def test_validate_product():
    assert validate_product({"product_type": "softpos", "quantity": 2, "monthly_rent": "9.90"}) == {}

    errors = validate_product({"product_type": "fax", "quantity": 0, "setup_fee": -1})
    assert set(errors) == {"product_type", "quantity", "setup_fee"}


def test_validate_sepa_mandate():
    assert validate_sepa_mandate(VALID_MANDATE) == {}

    errors = validate_sepa_mandate(dict(VALID_MANDATE, iban="12345", bic="XX", accepted="true"))
    assert set(errors) == {"iban", "bic", "accepted"}


def test_format_iban():
    assert format_iban("de89370400440532013000") == "DE89 3704 0044 0532 0130 00"


def test_generate_mandate_reference():
    first = generate_mandate_reference()
    assert re.fullmatch(r"MANDATE-[A-Za-z0-9_-]{10}", first)
    assert generate_mandate_reference() != first


def test_company_rejects_unknown_legal_form_and_empty_name():
    errors = validate_company(dict(VALID_COMPANY, legal_form="limited", company_name=""))
    assert errors == {
        "legal_form": "Bitte wählen Sie eine Rechtsform",
        "company_name": "Firmenname ist erforderlich",
    }


def test_company_accepts_upper_case_legal_form():
    assert validate_company(dict(VALID_COMPANY, legal_form="GmbH")) == {}


def test_company_messages():
    errors = validate_company({"street": "x" * 201, "postal_code": "", "city": "Berlin", "legal_form": "ag"})
    assert errors["street"] == "darf max. 200 Zeichen haben"
    assert errors["postal_code"] == "Bitte geben Sie eine gültige 5-stellige Postleitzahl ein"
    assert errors["commercial_register"] == "Handelsregisternummer ist erforderlich"


def test_validate_new_customer():
    assert validate_new_customer({"company_name": "Acme GmbH", "legal_form": "gmbh"}) == {}
    assert validate_new_customer({"company_name": "Acme", "legal_form": "KG", "country": "AT"}) == {}

    errors = validate_new_customer({"company_name": " ", "legal_form": "llc", "country": "DEU"})
    assert errors == {
        "company_name": "Firmenname ist erforderlich",
        "legal_form": "Bitte wählen Sie eine Rechtsform",
        "country": "Ländercode muss 2 Zeichen haben",
    }
    assert set(validate_new_customer({})) == {"company_name", "legal_form"}


def test_validate_card_fees():
    assert validate_card_fees({}) == {}
    assert validate_card_fees({"pos_girocard_fee_percent": "0.25", "ecommerce_credit_card_fee_percent": ""}) == {}

    errors = validate_card_fees({
        "pos_girocard_fee_percent": "101",
        "pos_credit_card_fee_percent": -1,
        "ecommerce_girocard_fee_percent": "viel",
    })
    assert set(errors) == {
        "pos_girocard_fee_percent",
        "pos_credit_card_fee_percent",
        "ecommerce_girocard_fee_percent",
    }
    assert errors["pos_girocard_fee_percent"] == "Gebühr muss zwischen 0 und 100 liegen"


def test_sepa_mandate_messages():
    errors = validate_sepa_mandate({"iban": "DE89", "bank_name": "", "account_holder": "Acme"})
    assert errors == {
        "iban": "Ungültiges IBAN-Format",
        "bank_name": "Bankname ist erforderlich",
        "accepted": "Sie müssen das SEPA-Mandat akzeptieren",
    }


def test_every_form_is_registered():
    assert sorted(VALIDATORS) == [
        "authorized_person",
        "beneficial_owner",
        "card_fees",
        "company",
        "new_customer",
        "product",
        "sepa_mandate",
    ]
