"""
Customer API Schemas
"""
from pydantic import BaseModel
from typing import Optional


class SpreadsheetSelect(BaseModel):
    # Optional so a missing field is reported as 400, not a validation error
    fileId: Optional[str] = None
    fileName: Optional[str] = None
    purpose: Optional[str] = None
