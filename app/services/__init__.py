# Services Package
from . import customer_service
from . import identity_service
from . import token_service
from . import spreadsheet_service

__all__ = [
    "customer_service",
    "identity_service",
    "token_service",
    "spreadsheet_service",
]
