"""
Record aggregation for contract generation.

Collects everything the contract template needs for one customer.
"""

import logging
from typing import Dict, Any, Optional

from .errors import NotFound
from .sheets_db import SheetsDB, get_client as get_sheets_client

logger = logging.getLogger(__name__)


def gather_contract_data(customer_id: str, db: Optional[SheetsDB] = None) -> Dict[str, Any]:
    """
    Gather all records needed to fill the contract for a customer.

    Args:
        customer_id: The customer record ID
        db: Record store (defaults to the shared SheetsDB client)

    Returns:
        Dict with customer, authorized_persons, beneficial_owners,
        sepa_mandate, signature, products and transaction_fees. Absent
        optional records come back as [] or None.

    Raises:
        NotFound: if the customer record does not exist
    """
    if not customer_id:
        raise NotFound("Kunde nicht gefunden")

    db = db or get_sheets_client()

    customer = db.get_customer(customer_id)
    if not customer:
        logger.error(f"Customer {customer_id} not found")
        raise NotFound("Kunde nicht gefunden")

    data = {
        'customer': customer,
        'authorized_persons': db.get_rows('authorized_persons', customer_id),
        'beneficial_owners': db.get_rows('beneficial_owners', customer_id),
        'sepa_mandate': db.get_row('sepa_mandates', customer_id),
        'signature': db.get_row('signatures', customer_id),
        'products': db.get_rows('customer_products', customer_id),
        'transaction_fees': db.get_row('customer_transaction_fees', customer_id),
    }

    logger.info(
        f"Loaded contract data for {customer_id}: "
        f"{len(data['authorized_persons'])} authorized persons, "
        f"{len(data['beneficial_owners'])} beneficial owners, "
        f"{len(data['products'])} products"
    )
    return data
