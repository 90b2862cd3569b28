# Pydantic Schemas Package
from .customer import SpreadsheetSelect

__all__ = [
    "SpreadsheetSelect",
]
