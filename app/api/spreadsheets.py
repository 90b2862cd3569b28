"""
Spreadsheet API - spreadsheets selected for a customer's workflows
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core import get_db
from app.core.errors import ApiError
from app.schemas import SpreadsheetSelect
from app.services import spreadsheet_service
from .deps import require_customer

spreadsheets_router = APIRouter(prefix="/customer/{customer_id}", tags=["spreadsheets"])


@spreadsheets_router.get("/spreadsheets")
async def list_spreadsheets(customer_id: str, db: Session = Depends(get_db)):
    require_customer(customer_id, db)
    return {
        "customer_id": customer_id,
        "spreadsheets": [
            spreadsheet_service.serialize(s)
            for s in spreadsheet_service.list_spreadsheets(db, customer_id)
        ],
    }


@spreadsheets_router.get("/spreadsheet")
async def latest_spreadsheet(customer_id: str, db: Session = Depends(get_db)):
    require_customer(customer_id, db)
    sheet = spreadsheet_service.get_latest_spreadsheet(db, customer_id)
    if not sheet:
        raise ApiError(404, "no_spreadsheet", "No spreadsheet selected")
    return {"customer_id": customer_id, **spreadsheet_service.serialize(sheet)}


@spreadsheets_router.post("/spreadsheet")
async def select_spreadsheet(customer_id: str, data: SpreadsheetSelect, db: Session = Depends(get_db)):
    if not data.fileId or not data.fileName:
        raise ApiError(400, "missing_fields", "Missing fileId or fileName")

    customer = require_customer(customer_id, db)
    if not customer.has_google:
        raise ApiError(403, "no_google_token", "No valid Google authentication")

    sheet = spreadsheet_service.select_spreadsheet(
        db, customer_id, data.fileId, data.fileName, data.purpose
    )
    return {
        "success": True,
        "message": "Spreadsheet configuration saved",
        "spreadsheet": {
            "fileId": sheet.file_id,
            "fileName": sheet.file_name,
            "purpose": sheet.purpose,
        },
    }


@spreadsheets_router.delete("/spreadsheet/{file_id}")
async def remove_spreadsheet(customer_id: str, file_id: str, db: Session = Depends(get_db)):
    if not spreadsheet_service.remove_spreadsheet(db, customer_id, file_id):
        raise ApiError(404, "spreadsheet_not_found", "Spreadsheet not found")
    return {"success": True, "message": "Spreadsheet removed"}
