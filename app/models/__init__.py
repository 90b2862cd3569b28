from .base import TimestampMixin
from .customer import Customer, CustomerSpreadsheet, PROVIDER_COLUMNS, PROVIDER_TOKEN_SETS

__all__ = [
    # Base
    "TimestampMixin",
    # Customer
    "Customer", "CustomerSpreadsheet", "PROVIDER_COLUMNS", "PROVIDER_TOKEN_SETS",
]
