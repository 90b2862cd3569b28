"""
Spreadsheet Service - spreadsheets a customer selected for workflow use
"""
from typing import Optional, List
from sqlalchemy.orm import Session
import logging

from app.models.customer import CustomerSpreadsheet
from app.core.clock import utcnow

logger = logging.getLogger(__name__)

DEFAULT_PURPOSE = "General"


def list_spreadsheets(db: Session, customer_id: str) -> List[CustomerSpreadsheet]:
    """Newest selection first"""
    return (
        db.query(CustomerSpreadsheet)
        .filter(CustomerSpreadsheet.customer_id == customer_id)
        .order_by(CustomerSpreadsheet.selected_at.desc(), CustomerSpreadsheet.id.desc())
        .all()
    )


def get_latest_spreadsheet(db: Session, customer_id: str) -> Optional[CustomerSpreadsheet]:
    rows = list_spreadsheets(db, customer_id)
    return rows[0] if rows else None


def select_spreadsheet(
    db: Session,
    customer_id: str,
    file_id: str,
    file_name: str,
    purpose: Optional[str] = None,
) -> CustomerSpreadsheet:
    """Record a selection; picking the same file again replaces its row"""
    sheet = db.query(CustomerSpreadsheet).filter(
        CustomerSpreadsheet.customer_id == customer_id,
        CustomerSpreadsheet.file_id == file_id,
    ).first()

    if sheet is None:
        sheet = CustomerSpreadsheet(customer_id=customer_id, file_id=file_id)
        db.add(sheet)

    sheet.file_name = file_name
    sheet.purpose = purpose or DEFAULT_PURPOSE
    sheet.selected_at = utcnow()

    db.commit()
    db.refresh(sheet)

    logger.info(f"Spreadsheet {file_id} ({sheet.purpose}) selected for customer {customer_id}")
    return sheet


def remove_spreadsheet(db: Session, customer_id: str, file_id: str) -> bool:
    affected = db.query(CustomerSpreadsheet).filter(
        CustomerSpreadsheet.customer_id == customer_id,
        CustomerSpreadsheet.file_id == file_id,
    ).delete(synchronize_session=False)
    db.commit()

    if affected:
        logger.info(f"Spreadsheet {file_id} removed for customer {customer_id}")
    return bool(affected)


def serialize(sheet: CustomerSpreadsheet) -> dict:
    return {
        "fileId": sheet.file_id,
        "fileName": sheet.file_name,
        "purpose": sheet.purpose,
        "selectedAt": sheet.selected_at.isoformat() if sheet.selected_at else None,
    }
