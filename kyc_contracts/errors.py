"""
Exceptions raised by the contract services.

Each error carries the HTTP status the API layer answers with.
"""


class ContractError(Exception):
    """Base exception for contract generation errors"""
    status_code = 500


class NotFound(ContractError):
    """Customer (or contract) record does not exist"""
    status_code = 404


class TemplateUnavailable(ContractError):
    """Contract template missing or unreadable"""
    pass


class StorageWriteFailure(ContractError):
    """Upload of the rendered contract or its metadata row failed"""
    pass


class CleanupItemFailure(ContractError):
    """A single old contract could not be deleted"""
    pass
