"""
Customer Service - persistent store of customers and their provider token groups
"""
from typing import Optional, List
from sqlalchemy.orm import Session
import logging

from app.models.customer import Customer, PROVIDER_COLUMNS
from app.core.clock import utcnow

logger = logging.getLogger(__name__)


# ========== Reads ==========

def get_customer(db: Session, customer_id: str) -> Optional[Customer]:
    """Get customer by id"""
    return db.query(Customer).filter(Customer.id == customer_id).first()


def get_customers(db: Session, limit: Optional[int] = None) -> List[Customer]:
    """All customers, most recently created first"""
    query = db.query(Customer).order_by(Customer.created_at.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def count_customers(db: Session) -> int:
    return db.query(Customer).count()


def get_customer_by_email(db: Session, email: str) -> Optional[Customer]:
    if not email:
        return None
    return db.query(Customer).filter(Customer.email == email).first()


def get_customer_by_company_id(db: Session, company_id: str) -> Optional[Customer]:
    """Find the customer whose QuickBooks group holds this realm id"""
    if not company_id:
        return None
    return db.query(Customer).filter(Customer.qb_company_id == company_id).first()


def search_customers(db: Session, email: str) -> List[Customer]:
    """Case-insensitive substring match on email"""
    return (
        db.query(Customer)
        .filter(Customer.email.ilike(f"%{email}%"))
        .order_by(Customer.created_at.desc())
        .all()
    )


# ========== Writes ==========

def upsert_customer(
    db: Session,
    customer_id: str,
    email: Optional[str],
    name: Optional[str] = None,
    picture: Optional[str] = None,
    **token_sets,
) -> Customer:
    """
    Insert-or-replace keyed by id.

    Every provider group not passed in token_sets (google=, quickbooks=,
    tiktok=) is written as null. An existing row keeps its created_at.
    """
    unknown = set(token_sets) - set(PROVIDER_COLUMNS)
    if unknown:
        raise ValueError(f"Unknown provider group(s): {', '.join(sorted(unknown))}")

    customer = get_customer(db, customer_id)
    is_new = customer is None
    if is_new:
        customer = Customer(id=customer_id)
        db.add(customer)

    customer.email = email
    customer.name = name
    customer.picture = picture
    for provider in PROVIDER_COLUMNS:
        customer.set_token_set(provider, token_sets.get(provider))
    customer.updated_at = utcnow()

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(customer)

    logger.info(f"{'Created' if is_new else 'Replaced'} customer {customer_id} ({email})")
    return customer


def update_provider_tokens(db: Session, customer_id: str, provider: str, token_set) -> int:
    """
    Replace exactly one provider's field group (None clears it) and bump
    updated_at. Returns the number of rows affected; 0 means unknown id.
    """
    columns = PROVIDER_COLUMNS[provider]
    values = {
        getattr(Customer, column): (getattr(token_set, attr) if token_set is not None else None)
        for attr, column in columns.items()
    }
    values[Customer.updated_at] = utcnow()

    try:
        affected = db.query(Customer).filter(Customer.id == customer_id).update(
            values, synchronize_session="fetch"
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    if affected:
        logger.info(f"{'Updated' if token_set is not None else 'Cleared'} {provider} tokens for customer {customer_id}")
    else:
        logger.warning(f"No customer {customer_id} to update {provider} tokens on")
    return affected


def update_profile(
    db: Session,
    customer_id: str,
    name: Optional[str] = None,
    picture: Optional[str] = None,
) -> int:
    """Refresh profile metadata; leaves every provider group alone"""
    values = {Customer.updated_at: utcnow()}
    if name is not None:
        values[Customer.name] = name
    if picture is not None:
        values[Customer.picture] = picture

    affected = db.query(Customer).filter(Customer.id == customer_id).update(
        values, synchronize_session="fetch"
    )
    db.commit()
    return affected


def delete_customer(db: Session, customer_id: str) -> bool:
    """Delete a customer and its spreadsheet links"""
    customer = get_customer(db, customer_id)
    if not customer:
        return False

    email = customer.email
    db.delete(customer)
    db.commit()

    logger.info(f"Deleted customer {customer_id} ({email})")
    return True
