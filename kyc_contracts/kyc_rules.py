"""
KYC Onboarding Rules
Legal-form dependent document requirements and the input forms of the
onboarding steps (new customer, company, persons, products, card fees,
SEPA mandate).

Each form is a pydantic model. The validate_* functions run a model over
raw form data and return German messages keyed by field, the shape the
dashboard shows next to its inputs.
"""

import re
import secrets
import string
import logging
from typing import Any, ClassVar, Dict, List, Literal, Optional, Type

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

logger = logging.getLogger(__name__)

LEGAL_FORMS = {
    'gmbh': 'GmbH',
    'ag': 'AG',
    'einzelunternehmen': 'Einzelunternehmen',
    'ohg': 'OHG',
    'kg': 'KG',
    'ug': 'UG (haftungsbeschränkt)',
    'andere': 'Andere',
}

LegalForm = Literal['gmbh', 'ag', 'einzelunternehmen', 'ohg', 'kg', 'ug', 'andere']

# Legal forms entered in the commercial register (Handelsregister)
REGISTERED_LEGAL_FORMS = {'gmbh', 'ag', 'ug', 'kg', 'ohg'}

PRODUCT_TYPES = ['mobile_terminal', 'stationary_terminal', 'softpos', 'ecommerce']

ProductType = Literal['mobile_terminal', 'stationary_terminal', 'softpos', 'ecommerce']

# Documents every customer provides, whatever the legal form
BASE_DOCUMENT_TYPES = [
    {'value': 'id_document', 'label': 'Ausweisdokument'},
    {'value': 'proof_of_address', 'label': 'Adressnachweis'},
    {'value': 'other', 'label': 'Sonstiges'},
]

REGISTERED_DOCUMENT_TYPES = [
    {'value': 'commercial_register', 'label': 'Handelsregisterauszug'},
    {'value': 'transparency_register', 'label': 'Transparenzregister'},
    {'value': 'articles_of_association', 'label': 'Gesellschaftsvertrag'},
]

SOLE_TRADER_DOCUMENT_TYPES = [
    {'value': 'articles_of_association', 'label': 'Gewerbeanmeldung'},
]

# Associations and other forms with their own register
OTHER_DOCUMENT_TYPES = [
    {'value': 'commercial_register', 'label': 'Registerauszug'},
    {'value': 'articles_of_association', 'label': 'Satzung/Vertrag'},
]

IBAN_PATTERN = r'^[A-Z]{2}\d{2}[A-Z0-9]{1,30}$'
BIC_PATTERN = r'^[A-Z]{6}[A-Z0-9]{2}([A-Z0-9]{3})?$'
COUNTRY_PATTERN = r'^[A-Za-z]{2}$'

MANDATE_REFERENCE_ALPHABET = string.ascii_letters + string.digits + '_-'


def requires_commercial_register(legal_form: Optional[str]) -> bool:
    return (legal_form or '').lower() in REGISTERED_LEGAL_FORMS


def document_types_for(legal_form: str) -> List[Dict[str, str]]:
    """
    Document types a customer of the given legal form has to upload.

    Args:
        legal_form: One of LEGAL_FORMS (unknown values are treated as 'andere')

    Returns:
        List of {'value', 'label'} dicts, legal-form specific ones first
    """
    legal_form = (legal_form or '').lower()
    if legal_form in REGISTERED_LEGAL_FORMS:
        specific = REGISTERED_DOCUMENT_TYPES
    elif legal_form == 'einzelunternehmen':
        specific = SOLE_TRADER_DOCUMENT_TYPES
    else:
        specific = OTHER_DOCUMENT_TYPES
    return [dict(d) for d in specific + BASE_DOCUMENT_TYPES]


def normalize_iban(iban: str) -> str:
    return re.sub(r'\s', '', iban or '').upper()


def format_iban(iban: str) -> str:
    """Group an IBAN in blocks of four for display"""
    cleaned = normalize_iban(iban)
    return ' '.join(cleaned[i:i + 4] for i in range(0, len(cleaned), 4))


def generate_mandate_reference() -> str:
    """New SEPA mandate reference, e.g. MANDATE-a1B2c3D4e5"""
    suffix = ''.join(secrets.choice(MANDATE_REFERENCE_ALPHABET) for _ in range(10))
    return f"MANDATE-{suffix}"


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ========== Forms ==========

class OnboardingForm(BaseModel):
    """Base for the onboarding forms; surrounding whitespace is ignored"""
    model_config = ConfigDict(str_strip_whitespace=True)

    # Message per field for any failure other than exceeding the length
    messages: ClassVar[Dict[str, str]] = {}


class NewCustomerForm(OnboardingForm):
    company_name: str = Field(min_length=1, max_length=200)
    legal_form: LegalForm
    country: str = Field('DE', pattern=COUNTRY_PATTERN)

    messages: ClassVar[Dict[str, str]] = {
        'company_name': "Firmenname ist erforderlich",
        'legal_form': "Bitte wählen Sie eine Rechtsform",
        'country': "Ländercode muss 2 Zeichen haben",
    }

    @field_validator('legal_form', mode='before')
    @classmethod
    def lower_legal_form(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class CompanyForm(OnboardingForm):
    """Company step: address, tax numbers and register entry"""
    company_name: Optional[str] = Field(None, min_length=1, max_length=200)
    legal_form: Optional[LegalForm] = None
    street: str = Field(min_length=1, max_length=200)
    postal_code: str = Field(pattern=r'^\d{5}$')
    city: str = Field(min_length=1, max_length=100)
    tax_id: Optional[str] = Field(None, pattern=r'^\d{11}$')
    vat_id: Optional[str] = Field(None, pattern=r'^DE\d{9}$')
    commercial_register: Optional[str] = Field(None, max_length=50, validate_default=True)

    messages: ClassVar[Dict[str, str]] = {
        'company_name': "Firmenname ist erforderlich",
        'legal_form': "Bitte wählen Sie eine Rechtsform",
        'street': "Straße ist erforderlich",
        'postal_code': "Bitte geben Sie eine gültige 5-stellige Postleitzahl ein",
        'city': "Stadt ist erforderlich",
        'tax_id': "Steuernummer muss 11 Ziffern enthalten",
        'vat_id': "USt-IdNr. muss im Format DE123456789 sein",
    }

    @field_validator('tax_id', 'vat_id', mode='before')
    @classmethod
    def optional_blank(cls, v):
        return _blank_to_none(v)

    @field_validator('legal_form', mode='before')
    @classmethod
    def lower_legal_form(cls, v):
        v = _blank_to_none(v)
        return v.lower() if isinstance(v, str) else v

    @field_validator('commercial_register')
    @classmethod
    def register_entry_required(cls, v, info: ValidationInfo):
        if not v and requires_commercial_register(info.data.get('legal_form')):
            raise ValueError("Handelsregisternummer ist erforderlich")
        return v


class AuthorizedPersonForm(OnboardingForm):
    """Authorized representative with the identity fields the GwG asks for"""
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    date_of_birth: str = Field(min_length=1)
    place_of_birth: str = Field(min_length=1, max_length=100)
    nationality: str = Field(pattern=COUNTRY_PATTERN)
    email: Optional[EmailStr] = None
    private_street: str = Field(min_length=1, max_length=200)
    private_postal_code: str = Field(min_length=1, max_length=10)
    private_city: str = Field(min_length=1, max_length=100)
    private_country: str = Field('DE', pattern=COUNTRY_PATTERN)
    id_document_number: str = Field(min_length=1, max_length=50)
    id_document_issue_date: str = Field(min_length=1)
    id_document_issuing_authority: str = Field(min_length=1, max_length=200)

    messages: ClassVar[Dict[str, str]] = {
        'first_name': "Vorname ist erforderlich",
        'last_name': "Nachname ist erforderlich",
        'date_of_birth': "Geburtsdatum ist erforderlich",
        'place_of_birth': "Geburtsort ist erforderlich",
        'nationality': "Ländercode muss 2 Zeichen haben",
        'email': "Ungültige E-Mail-Adresse",
        'private_street': "Privatadresse (Straße) ist erforderlich",
        'private_postal_code': "Postleitzahl ist erforderlich",
        'private_city': "Stadt ist erforderlich",
        'private_country': "Ländercode muss 2 Zeichen haben",
        'id_document_number': "Ausweisnummer ist erforderlich",
        'id_document_issue_date': "Ausstellungsdatum ist erforderlich",
        'id_document_issuing_authority': "Ausstellende Behörde ist erforderlich",
    }

    @field_validator('email', mode='before')
    @classmethod
    def optional_blank(cls, v):
        return _blank_to_none(v)


class BeneficialOwnerForm(OnboardingForm):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    date_of_birth: Optional[str] = None
    nationality: Optional[str] = Field(None, pattern=COUNTRY_PATTERN)
    email: Optional[EmailStr] = None
    street: Optional[str] = Field(None, max_length=200)
    postal_code: Optional[str] = Field(None, max_length=10)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = None
    ownership_percentage: Optional[float] = Field(None, ge=0, le=100)

    messages: ClassVar[Dict[str, str]] = {
        'first_name': "Vorname ist erforderlich",
        'last_name': "Nachname ist erforderlich",
        'nationality': "Ländercode muss 2 Zeichen haben",
        'email': "Ungültige E-Mail-Adresse",
        'ownership_percentage': "Beteiligung muss zwischen 0 und 100 liegen",
    }

    @field_validator('nationality', 'email', 'ownership_percentage', mode='before')
    @classmethod
    def optional_blank(cls, v):
        return _blank_to_none(v)


class ProductForm(OnboardingForm):
    """Product line: known type, quantity 1-999, non-negative prices"""
    product_type: ProductType
    quantity: int = Field(ge=1, le=999)
    monthly_rent: Optional[float] = Field(None, ge=0)
    setup_fee: Optional[float] = Field(None, ge=0)
    shipping_fee: Optional[float] = Field(None, ge=0)
    transaction_fee: Optional[float] = Field(None, ge=0)

    messages: ClassVar[Dict[str, str]] = {
        'product_type': "Unbekannter Produkttyp",
        'quantity': "Menge muss zwischen 1 und 999 liegen",
        'monthly_rent': "Monatsmiete muss eine positive Zahl sein",
        'setup_fee': "Einrichtungsgebühr muss eine positive Zahl sein",
        'shipping_fee': "Versandgebühr muss eine positive Zahl sein",
        'transaction_fee': "Transaktionspreis muss eine positive Zahl sein",
    }

    @field_validator('monthly_rent', 'setup_fee', 'shipping_fee', 'transaction_fee', mode='before')
    @classmethod
    def optional_blank(cls, v):
        return _blank_to_none(v)


class CardFeesForm(OnboardingForm):
    """Card acceptance fees in percent"""
    pos_girocard_fee_percent: Optional[float] = Field(None, ge=0, le=100)
    pos_credit_card_fee_percent: Optional[float] = Field(None, ge=0, le=100)
    ecommerce_girocard_fee_percent: Optional[float] = Field(None, ge=0, le=100)
    ecommerce_credit_card_fee_percent: Optional[float] = Field(None, ge=0, le=100)

    messages: ClassVar[Dict[str, str]] = {
        name: "Gebühr muss zwischen 0 und 100 liegen"
        for name in (
            'pos_girocard_fee_percent', 'pos_credit_card_fee_percent',
            'ecommerce_girocard_fee_percent', 'ecommerce_credit_card_fee_percent',
        )
    }

    @field_validator('*', mode='before')
    @classmethod
    def optional_blank(cls, v):
        return _blank_to_none(v)


class SepaMandateForm(OnboardingForm):
    """SEPA step; IBAN and BIC are checked without spaces and in upper case"""
    iban: str = Field(pattern=IBAN_PATTERN)
    bic: Optional[str] = Field(None, pattern=BIC_PATTERN)
    bank_name: str = Field(min_length=1, max_length=200)
    account_holder: str = Field(min_length=1, max_length=200)
    accepted: Any = Field(None, validate_default=True)

    messages: ClassVar[Dict[str, str]] = {
        'iban': "Ungültiges IBAN-Format",
        'bic': "Ungültiges BIC-Format",
        'bank_name': "Bankname ist erforderlich",
        'account_holder': "Kontoinhaber ist erforderlich",
    }

    @field_validator('iban', mode='before')
    @classmethod
    def clean_iban(cls, v):
        return normalize_iban(v) if isinstance(v, str) else v

    @field_validator('bic', mode='before')
    @classmethod
    def clean_bic(cls, v):
        v = _blank_to_none(v)
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator('accepted')
    @classmethod
    def mandate_accepted(cls, v):
        if v is not True:
            raise ValueError("Sie müssen das SEPA-Mandat akzeptieren")
        return v


# ========== Validation ==========

def form_errors(form: Type[OnboardingForm], error: ValidationError) -> Dict[str, str]:
    """Translate a ValidationError into one German message per field"""
    errors: Dict[str, str] = {}
    for item in error.errors():
        name = '.'.join(str(part) for part in item['loc']) or 'form'
        if name in errors:
            continue
        ctx = item.get('ctx') or {}
        if item['type'] == 'string_too_long':
            errors[name] = f"darf max. {ctx['max_length']} Zeichen haben"
        elif name in form.messages:
            errors[name] = form.messages[name]
        elif item['type'] == 'value_error' and 'error' in ctx:
            errors[name] = str(ctx['error'])
        else:
            errors[name] = item['msg']
    return errors


def validate_form(form: Type[OnboardingForm], data: Any) -> Dict[str, str]:
    """
    Check raw form data against a form model.

    Returns:
        Dict of field -> message, empty when the data is valid
    """
    try:
        form.model_validate(data)
    except ValidationError as e:
        errors = form_errors(form, e)
        logger.info(f"{form.__name__} rejected: {sorted(errors)}")
        return errors
    return {}


def validate_new_customer(data: Dict[str, Any]) -> Dict[str, str]:
    return validate_form(NewCustomerForm, data)


def validate_company(data: Dict[str, Any]) -> Dict[str, str]:
    return validate_form(CompanyForm, data)


def validate_authorized_person(data: Dict[str, Any]) -> Dict[str, str]:
    return validate_form(AuthorizedPersonForm, data)


def validate_beneficial_owner(data: Dict[str, Any]) -> Dict[str, str]:
    return validate_form(BeneficialOwnerForm, data)


def validate_product(data: Dict[str, Any]) -> Dict[str, str]:
    return validate_form(ProductForm, data)


def validate_card_fees(data: Dict[str, Any]) -> Dict[str, str]:
    return validate_form(CardFeesForm, data)


def validate_sepa_mandate(data: Dict[str, Any]) -> Dict[str, str]:
    return validate_form(SepaMandateForm, data)


VALIDATORS = {
    'new_customer': validate_new_customer,
    'company': validate_company,
    'authorized_person': validate_authorized_person,
    'beneficial_owner': validate_beneficial_owner,
    'product': validate_product,
    'card_fees': validate_card_fees,
    'sepa_mandate': validate_sepa_mandate,
}
