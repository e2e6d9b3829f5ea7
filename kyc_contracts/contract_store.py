"""
Contract Publishing Service

Generates a customer's contract, stores it under contracts/<customer_id>/
and records a document metadata row. Regenerating adds another row; the
cleanup pass keeps only the newest contract per customer.
"""

import re
import logging
from datetime import datetime
from typing import Dict, Any, List, Optional, Tuple

from .contract_pdf import load_template, render_contract, read_template, TEMPLATE_PATH
from .contract_records import gather_contract_data
from .drive_storage import DriveStorage, StorageError, get_client as get_storage_client
from .errors import NotFound, StorageWriteFailure, CleanupItemFailure
from .sheets_db import SheetsDB, SheetsDBError, get_client as get_sheets_client

logger = logging.getLogger(__name__)

CONTRACT_PREFIX = 'Vertrag_'
CONTRACT_DOCUMENT_TYPE = 'other'
PDF_MIME_TYPE = 'application/pdf'


def contract_file_name(company_name: str, on_date) -> str:
    """
    File name of a generated contract.

    Every character outside A-Z, a-z, 0-9 becomes an underscore, e.g.
    'Acme & Co. GmbH' on 2025-01-15 -> 'Vertrag_Acme___Co__GmbH_2025-01-15.pdf'.
    """
    safe_name = re.sub(r'[^a-zA-Z0-9]', '_', company_name or '')
    return f"{CONTRACT_PREFIX}{safe_name}_{on_date.strftime('%Y-%m-%d')}.pdf"


def contract_path(customer_id: str, file_name: str) -> str:
    return f"contracts/{customer_id}/{file_name}"


def generate_contract(
    customer_id: str,
    db: Optional[SheetsDB] = None,
    storage: Optional[DriveStorage] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Generate, store and register the contract PDF for a customer.

    Args:
        customer_id: The customer record ID
        db: Record store (defaults to the shared SheetsDB client)
        storage: Object store (defaults to the shared Drive client)
        now: Generation time (default: current time)

    Returns:
        Dict with success, fileName, filePath and message

    Raises:
        NotFound: customer does not exist (nothing is written)
        TemplateUnavailable: template missing or unreadable (nothing is written)
        StorageWriteFailure: upload or metadata insert failed
    """
    db = db or get_sheets_client()
    storage = storage or get_storage_client()
    now = now or datetime.now()

    logger.info(f"Generating contract for customer: {customer_id}")
    data = gather_contract_data(customer_id, db)
    template = load_template(storage)
    pdf_bytes = render_contract(data, template, generated_on=now.date())

    file_name = contract_file_name(data['customer'].get('company_name'), now)
    file_path = contract_path(customer_id, file_name)

    try:
        storage.upload(file_path, pdf_bytes, content_type=PDF_MIME_TYPE, upsert=True)
    except StorageError as e:
        logger.error(f"Error uploading contract: {e}")
        raise StorageWriteFailure(str(e)) from e

    try:
        db.insert_row('documents', {
            'customer_id': customer_id,
            'document_type': CONTRACT_DOCUMENT_TYPE,
            'file_name': file_name,
            'file_path': file_path,
            'file_size': len(pdf_bytes),
            'mime_type': PDF_MIME_TYPE,
            'uploaded_at': now.isoformat(),
        })
    except SheetsDBError as e:
        logger.error(f"Error recording contract metadata: {e}")
        raise StorageWriteFailure(str(e)) from e

    logger.info(f"Contract generated successfully: {file_name}")
    return {
        'success': True,
        'fileName': file_name,
        'filePath': file_path,
        'message': 'Vertrag erfolgreich erstellt'
    }


def list_contracts(customer_id: str, db: Optional[SheetsDB] = None) -> List[Dict[str, Any]]:
    """Contract metadata rows for a customer, newest first"""
    db = db or get_sheets_client()
    return db.list_documents(
        customer_id,
        document_type=CONTRACT_DOCUMENT_TYPE,
        file_name_prefix=CONTRACT_PREFIX
    )


def get_latest_contract(customer_id: str, db: Optional[SheetsDB] = None) -> Optional[Dict[str, Any]]:
    """The authoritative (most recently created) contract row, or None"""
    contracts = list_contracts(customer_id, db)
    return contracts[0] if contracts else None


def download_contract(
    customer_id: str,
    db: Optional[SheetsDB] = None,
    storage: Optional[DriveStorage] = None,
    generate_missing: bool = False
) -> Tuple[Dict[str, Any], bytes]:
    """
    Metadata row and PDF bytes of the newest contract.

    With generate_missing a customer without any contract gets one
    generated first, otherwise that case is NotFound.
    """
    db = db or get_sheets_client()
    storage = storage or get_storage_client()
    contract = get_latest_contract(customer_id, db)
    if not contract and generate_missing:
        logger.info(f"No contract for {customer_id} yet, generating one")
        generate_contract(customer_id, db, storage)
        contract = get_latest_contract(customer_id, db)
    if not contract:
        raise NotFound("Kein Vertrag vorhanden")
    try:
        return contract, storage.download(contract['file_path'])
    except StorageError as e:
        raise NotFound(f"Vertrag nicht gefunden: {e}") from e


def select_stale_contracts(rows: List[Dict[str, Any]]) -> Tuple[Optional[Dict[str, Any]], List[Dict[str, Any]]]:
    """
    Split newest-first contract rows into the one to keep and the rest.

    Returns (None, []) for an empty list.
    """
    if not rows:
        return None, []
    return rows[0], list(rows[1:])


def _delete_contract(
    contract: Dict[str, Any],
    protected_paths: set,
    db: SheetsDB,
    storage: DriveStorage
) -> bool:
    """
    Delete one old contract's storage object and metadata row.

    Returns True if the metadata row was deleted. Raises
    CleanupItemFailure if the row could not be deleted.
    """
    file_path = contract.get('file_path')
    if file_path and file_path not in protected_paths:
        try:
            storage.remove([file_path])
            logger.info(f"Deleted file: {file_path}")
        except StorageError as e:
            logger.error(f"Error deleting file {file_path}: {e}")

    try:
        deleted = db.delete_row('documents', contract['id'])
    except SheetsDBError as e:
        raise CleanupItemFailure(f"Error deleting document record {contract['id']}: {e}") from e

    if deleted:
        logger.info(f"Deleted document record: {contract['id']}")
    return deleted


def cleanup_old_contracts(
    customer_id: str,
    db: Optional[SheetsDB] = None,
    storage: Optional[DriveStorage] = None
) -> Dict[str, Any]:
    """
    Keep only the newest contract for a customer.

    Older contracts lose both their storage object and their metadata
    row. A storage object still referenced by the kept row is left in
    place. Failures on single contracts are logged and skipped.

    Returns:
        Dict with success, message, deleted (rows actually deleted) and
        kept (file name of the kept contract)
    """
    db = db or get_sheets_client()
    storage = storage or get_storage_client()

    logger.info(f"Cleaning up old contracts for customer: {customer_id}")
    kept, stale = select_stale_contracts(list_contracts(customer_id, db))

    if not stale:
        return {
            'success': True,
            'message': 'No old contracts to delete',
            'deleted': 0,
            'kept': kept['file_name'] if kept else None
        }

    logger.info(f"Found {len(stale)} old contracts to delete")
    protected_paths = {kept.get('file_path')}
    deleted_count = 0

    for contract in stale:
        try:
            if _delete_contract(contract, protected_paths, db, storage):
                deleted_count += 1
        except CleanupItemFailure as e:
            logger.error(f"Error processing contract {contract.get('file_name')}: {e}")

    logger.info(f"Successfully deleted {deleted_count} old contracts")
    return {
        'success': True,
        'message': f'Deleted {deleted_count} old contracts',
        'deleted': deleted_count,
        'kept': kept['file_name']
    }


def replace_template(content: bytes, storage: Optional[DriveStorage] = None) -> Dict[str, Any]:
    """Upload a new contract template, replacing the current one"""
    storage = storage or get_storage_client()
    reader = read_template(content)

    try:
        storage.upload(TEMPLATE_PATH, content, content_type=PDF_MIME_TYPE, upsert=True)
    except StorageError as e:
        logger.error(f"Error uploading template: {e}")
        raise StorageWriteFailure(str(e)) from e

    logger.info(f"Template replaced ({len(reader.pages)} pages, {len(content)} bytes)")
    return {
        'success': True,
        'filePath': TEMPLATE_PATH,
        'pages': len(reader.pages),
        'message': 'Template wurde erfolgreich hochgeladen'
    }
