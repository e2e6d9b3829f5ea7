"""
Google Sheets Database Service
Record store for the KYC onboarding data read by the contract generator.

One worksheet per table. Supports both live mode (with OAuth credentials)
and demo mode (rows kept in memory) for local runs and tests.
"""

import os
import uuid
import logging
from datetime import datetime
from typing import Optional, Any

import gspread

from .google_auth import load_credentials, demo_mode_enabled

logger = logging.getLogger(__name__)

# Schema definition - worksheet names and column headers (id always first)
SCHEMA = {
    'customers': [
        'id', 'company_name', 'legal_form', 'street', 'postal_code', 'city',
        'country', 'tax_id', 'vat_id', 'commercial_register', 'status',
        'created_at', 'completed_at'
    ],
    'authorized_persons': [
        'id', 'customer_id', 'first_name', 'last_name', 'date_of_birth',
        'place_of_birth', 'nationality', 'email', 'phone',
        'private_street', 'private_postal_code', 'private_city', 'private_country',
        'id_document_number', 'id_document_issue_date',
        'id_document_issuing_authority', 'created_at'
    ],
    'beneficial_owners': [
        'id', 'customer_id', 'first_name', 'last_name', 'date_of_birth',
        'nationality', 'ownership_percentage', 'street', 'postal_code', 'city',
        'country', 'created_at'
    ],
    'sepa_mandates': [
        'id', 'customer_id', 'iban', 'bic', 'bank_name', 'account_holder',
        'mandate_reference', 'mandate_date', 'accepted', 'accepted_at'
    ],
    'signatures': [
        'id', 'customer_id', 'signature_data', 'timestamp', 'terms_accepted',
        'privacy_accepted', 'ip_address', 'user_agent'
    ],
    'customer_products': [
        'id', 'customer_id', 'product_type', 'quantity', 'monthly_rent',
        'setup_fee', 'shipping_fee', 'transaction_fee', 'created_at'
    ],
    'customer_transaction_fees': [
        'id', 'customer_id', 'pos_girocard_fee_percent', 'pos_credit_card_fee_percent',
        'ecommerce_girocard_fee_percent', 'ecommerce_credit_card_fee_percent'
    ],
    'documents': [
        'id', 'customer_id', 'document_type', 'file_name', 'file_path',
        'file_size', 'mime_type', 'person_id', 'uploaded_at'
    ]
}

# Column stamped with the insert time when the caller leaves it empty
TIMESTAMP_COLUMNS = {
    'customers': 'created_at',
    'authorized_persons': 'created_at',
    'beneficial_owners': 'created_at',
    'sepa_mandates': 'mandate_date',
    'signatures': 'timestamp',
    'customer_products': 'created_at',
    'documents': 'uploaded_at'
}

BOOLEAN_FIELDS = {'accepted', 'terms_accepted', 'privacy_accepted'}
INTEGER_FIELDS = {'quantity', 'file_size'}
FLOAT_FIELDS = {
    'monthly_rent', 'setup_fee', 'shipping_fee', 'transaction_fee',
    'ownership_percentage', 'pos_girocard_fee_percent', 'pos_credit_card_fee_percent',
    'ecommerce_girocard_fee_percent', 'ecommerce_credit_card_fee_percent'
}


class SheetsDBError(Exception):
    """Record store read/write failure"""
    pass


class SheetsDB:
    """Google Sheets database client for the onboarding records"""

    def __init__(self, demo_mode: Optional[bool] = None):
        self.demo_mode = True
        self.client = None
        self.spreadsheet = None
        self._sheet_cache: dict[str, Any] = {}
        self._demo_rows: dict[str, list[list[str]]] = {name: [] for name in SCHEMA}

        if demo_mode is None:
            demo_mode = demo_mode_enabled()
        if demo_mode:
            logger.info("SheetsDB running in DEMO MODE - rows kept in memory")
            return

        credentials = load_credentials()
        if not credentials:
            logger.info("SheetsDB running in DEMO MODE - no credentials configured")
            return

        try:
            self.client = gspread.authorize(credentials)
            self._open_spreadsheet()
            self.demo_mode = False
            logger.info("SheetsDB connected to Google Sheets successfully")
        except Exception as e:
            logger.error(f"Failed to initialize SheetsDB: {e}")
            logger.info("SheetsDB falling back to DEMO MODE")

    def _open_spreadsheet(self):
        """Open the spreadsheet named by GOOGLE_SHEET_ID, or create one"""
        sheet_id = os.environ.get('GOOGLE_SHEET_ID')

        if sheet_id:
            self.spreadsheet = self.client.open_by_key(sheet_id)
            logger.info(f"Opened existing spreadsheet: {self.spreadsheet.title}")
            return

        self.spreadsheet = self.client.create('KYC Onboarding Database')
        logger.info(f"Created new spreadsheet: {self.spreadsheet.title} (ID: {self.spreadsheet.id})")
        logger.info(f"Set GOOGLE_SHEET_ID={self.spreadsheet.id} to use this spreadsheet")

    def _get_sheet(self, table: str) -> Any:
        """Get or create worksheet with headers"""
        if table not in SCHEMA:
            raise SheetsDBError(f"Unknown table: {table}")

        if table in self._sheet_cache:
            return self._sheet_cache[table]

        try:
            try:
                worksheet = self.spreadsheet.worksheet(table)
            except gspread.WorksheetNotFound:
                worksheet = self.spreadsheet.add_worksheet(
                    title=table,
                    rows=1000,
                    cols=len(SCHEMA[table])
                )
                worksheet.update(values=[SCHEMA[table]], range_name='A1')
                logger.info(f"Created worksheet: {table}")
        except gspread.exceptions.GSpreadException as e:
            raise SheetsDBError(f"Error opening worksheet {table}: {e}") from e

        self._sheet_cache[table] = worksheet
        return worksheet

    # ========== Row conversion ==========

    def _row_to_dict(self, headers: list[str], row: list[str]) -> dict[str, Any]:
        """Convert a row to a dictionary using headers"""
        result = {}
        for i, header in enumerate(headers):
            value = row[i] if i < len(row) else ''
            if value == '':
                value = None
            elif header in BOOLEAN_FIELDS:
                value = value.lower() == 'true'
            elif header in INTEGER_FIELDS:
                try:
                    value = int(float(value))
                except ValueError:
                    pass
            elif header in FLOAT_FIELDS:
                try:
                    value = float(value)
                except ValueError:
                    pass
            result[header] = value
        return result

    def _dict_to_row(self, headers: list[str], data: dict[str, Any]) -> list[str]:
        """Convert a dictionary to a row based on headers"""
        row = []
        for header in headers:
            value = data.get(header)
            if isinstance(value, bool):
                value = str(value).lower()
            elif isinstance(value, datetime):
                value = value.isoformat()
            row.append(str(value) if value is not None else '')
        return row

    def _all_rows(self, table: str) -> list[list[str]]:
        """All data rows of a table (header excluded), in insertion order"""
        if self.demo_mode:
            if table not in SCHEMA:
                raise SheetsDBError(f"Unknown table: {table}")
            return [list(row) for row in self._demo_rows[table]]

        sheet = self._get_sheet(table)
        try:
            all_values = sheet.get_all_values()
        except gspread.exceptions.GSpreadException as e:
            raise SheetsDBError(f"Error reading {table}: {e}") from e
        return [row for row in all_values[1:] if row and row[0]]

    # ========== Generic CRUD ==========

    def get_rows(self, table: str, customer_id: str) -> list[dict]:
        """All rows of a table belonging to one customer, oldest first"""
        if table not in SCHEMA:
            raise SheetsDBError(f"Unknown table: {table}")
        headers = SCHEMA[table]
        customer_col = headers.index('customer_id')
        return [
            self._row_to_dict(headers, row)
            for row in self._all_rows(table)
            if len(row) > customer_col and row[customer_col] == customer_id
        ]

    def get_row(self, table: str, customer_id: str) -> Optional[dict]:
        """First row of a table for a customer, or None"""
        rows = self.get_rows(table, customer_id)
        return rows[0] if rows else None

    def get_customer(self, customer_id: str) -> Optional[dict]:
        """Get a single customer by ID"""
        headers = SCHEMA['customers']
        for row in self._all_rows('customers'):
            if row[0] == customer_id:
                return self._row_to_dict(headers, row)
        return None

    def insert_row(self, table: str, data: dict) -> dict:
        """Append a row; assigns id and insert timestamp when missing"""
        if table not in SCHEMA:
            raise SheetsDBError(f"Unknown table: {table}")

        record = dict(data)
        record.setdefault('id', None)
        if not record['id']:
            record['id'] = str(uuid.uuid4())
        ts_column = TIMESTAMP_COLUMNS.get(table)
        if ts_column and not record.get(ts_column):
            record[ts_column] = datetime.now().isoformat()

        row = self._dict_to_row(SCHEMA[table], record)

        if self.demo_mode:
            self._demo_rows[table].append(row)
            logger.info(f"[DEMO] Inserted {table} row {record['id']}")
        else:
            try:
                self._get_sheet(table).append_row(row)
            except gspread.exceptions.GSpreadException as e:
                raise SheetsDBError(f"Error inserting into {table}: {e}") from e
            logger.info(f"Inserted {table} row {record['id']}")

        return self._row_to_dict(SCHEMA[table], row)

    def delete_row(self, table: str, row_id: str) -> bool:
        """Delete a row by id; False if no such row"""
        if self.demo_mode:
            rows = self._demo_rows.get(table)
            if rows is None:
                raise SheetsDBError(f"Unknown table: {table}")
            for i, row in enumerate(rows):
                if row[0] == row_id:
                    del rows[i]
                    logger.info(f"[DEMO] Deleted {table} row {row_id}")
                    return True
            return False

        sheet = self._get_sheet(table)
        try:
            all_values = sheet.get_all_values()
            for i, row in enumerate(all_values[1:], start=2):
                if row and row[0] == row_id:
                    sheet.delete_rows(i)
                    logger.info(f"Deleted {table} row {row_id}")
                    return True
        except gspread.exceptions.GSpreadException as e:
            raise SheetsDBError(f"Error deleting {table} row {row_id}: {e}") from e
        return False

    # ========== Documents ==========

    def list_documents(
        self,
        customer_id: str,
        document_type: Optional[str] = None,
        file_name_prefix: Optional[str] = None
    ) -> list[dict]:
        """
        Document metadata rows for a customer, newest first.

        Ordered by uploaded_at; rows with equal timestamps keep insertion
        order, the later row counting as newer. The file name prefix match
        ignores case.
        """
        rows = self.get_rows('documents', customer_id)
        if document_type:
            rows = [r for r in rows if r.get('document_type') == document_type]
        if file_name_prefix:
            prefix = file_name_prefix.lower()
            rows = [r for r in rows if (r.get('file_name') or '').lower().startswith(prefix)]

        ordered = sorted(
            enumerate(rows),
            key=lambda pair: (pair[1].get('uploaded_at') or '', pair[0]),
            reverse=True
        )
        return [row for _, row in ordered]


# Singleton instance
_client: Optional[SheetsDB] = None


def get_client() -> SheetsDB:
    """Get or create SheetsDB client instance"""
    global _client
    if _client is None:
        _client = SheetsDB()
    return _client


def reset_client(client: Optional[SheetsDB] = None):
    """Replace the shared client (None forces a fresh one on next use)"""
    global _client
    _client = client
