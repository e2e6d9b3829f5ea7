"""
Services module for KYC contract generation
"""

__version__ = "0.1.0"

from .errors import (
    ContractError,
    NotFound,
    TemplateUnavailable,
    StorageWriteFailure,
    CleanupItemFailure
)

from .sheets_db import (
    SheetsDB,
    SheetsDBError,
    get_client as get_sheets_client
)

from .drive_storage import (
    DriveStorage,
    StorageError,
    ObjectNotFoundError,
    get_client as get_storage_client
)

from .contract_records import gather_contract_data

from .contract_pdf import (
    render_contract,
    load_template,
    layout_entries,
    TEMPLATE_PATH
)

from .contract_store import (
    generate_contract,
    cleanup_old_contracts,
    get_latest_contract,
    download_contract,
    replace_template,
    contract_file_name,
    select_stale_contracts
)

from .kyc_rules import (
    LEGAL_FORMS,
    VALIDATORS,
    validate_form,
    document_types_for,
    requires_commercial_register,
    generate_mandate_reference
)

__all__ = [
    # Errors
    'ContractError',
    'NotFound',
    'TemplateUnavailable',
    'StorageWriteFailure',
    'CleanupItemFailure',
    # Record store
    'SheetsDB',
    'SheetsDBError',
    'get_sheets_client',
    # Object store
    'DriveStorage',
    'StorageError',
    'ObjectNotFoundError',
    'get_storage_client',
    # Contracts
    'gather_contract_data',
    'render_contract',
    'load_template',
    'layout_entries',
    'TEMPLATE_PATH',
    'generate_contract',
    'cleanup_old_contracts',
    'get_latest_contract',
    'download_contract',
    'replace_template',
    'contract_file_name',
    'select_stale_contracts',
    # KYC rules
    'LEGAL_FORMS',
    'VALIDATORS',
    'validate_form',
    'document_types_for',
    'requires_commercial_register',
    'generate_mandate_reference',
]
