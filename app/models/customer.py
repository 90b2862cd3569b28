"""
Customer Models - linked identities, provider token groups, spreadsheet links
"""
from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base
from app.core.clock import utcnow
from app.integrations.base import GoogleTokenSet, QuickBooksTokenSet, TikTokTokenSet
from .base import TimestampMixin


# Provider name -> token-set attribute -> customers column
PROVIDER_COLUMNS = {
    "google": {
        "access_token": "google_access_token",
        "refresh_token": "google_refresh_token",
        "scopes": "scopes",
        "expires_at": "token_expiry",
    },
    "quickbooks": {
        "access_token": "qb_access_token",
        "refresh_token": "qb_refresh_token",
        "company_id": "qb_company_id",
        "expires_at": "qb_token_expiry",
        "base_url": "qb_base_url",
    },
    "tiktok": {
        "access_token": "tiktok_access_token",
        "refresh_token": "tiktok_refresh_token",
        "expires_at": "tiktok_token_expiry",
        "user_id": "tiktok_user_id",
    },
}

PROVIDER_TOKEN_SETS = {
    "google": GoogleTokenSet,
    "quickbooks": QuickBooksTokenSet,
    "tiktok": TikTokTokenSet,
}


class Customer(Base, TimestampMixin):
    """
    One logical user correlating zero or more linked provider credentials.

    Ids come from three namespaces: uuid4 strings (Google / basic auth /
    standalone QuickBooks), fb_<facebook id>, never reassigned.
    """
    __tablename__ = "customers"

    id = Column(String(100), primary_key=True)
    email = Column(String(255), unique=True)
    name = Column(String(255))
    picture = Column(Text)

    # Google group
    google_access_token = Column(Text)
    google_refresh_token = Column(Text)
    scopes = Column(Text)
    token_expiry = Column(DateTime)

    # QuickBooks group
    qb_access_token = Column(Text)
    qb_refresh_token = Column(Text)
    qb_company_id = Column(String(100))
    qb_token_expiry = Column(DateTime)
    qb_base_url = Column(String(255))

    # TikTok group
    tiktok_access_token = Column(Text)
    tiktok_refresh_token = Column(Text)
    tiktok_token_expiry = Column(DateTime)
    tiktok_user_id = Column(String(100))

    # Relationships
    spreadsheets = relationship(
        "CustomerSpreadsheet",
        back_populates="customer",
        cascade="all, delete-orphan",
        order_by="CustomerSpreadsheet.selected_at.desc()",
    )

    def __repr__(self):
        return f"<Customer {self.id} {self.email}>"

    def token_set(self, provider: str):
        """Token-set value object for a provider, or None when not linked"""
        columns = PROVIDER_COLUMNS[provider]
        if not getattr(self, columns["access_token"]):
            return None
        token_cls = PROVIDER_TOKEN_SETS[provider]
        return token_cls(**{attr: getattr(self, column) for attr, column in columns.items()})

    def set_token_set(self, provider: str, token_set) -> None:
        """Replace a provider's group in memory; None clears it"""
        for attr, column in PROVIDER_COLUMNS[provider].items():
            setattr(self, column, getattr(token_set, attr) if token_set is not None else None)

    @property
    def has_google(self) -> bool:
        return bool(self.google_access_token)

    @property
    def has_quickbooks(self) -> bool:
        return bool(self.qb_access_token and self.qb_company_id)

    @property
    def has_tiktok(self) -> bool:
        return bool(self.tiktok_access_token)

    @property
    def is_facebook_user(self) -> bool:
        return self.id.startswith("fb_") or "@facebook.com" in (self.email or "")


class CustomerSpreadsheet(Base):
    """
    External spreadsheet selected by a customer for workflow use
    """
    __tablename__ = "customer_spreadsheets"
    __table_args__ = (
        UniqueConstraint("customer_id", "file_id", name="uq_customer_spreadsheet_file"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(String(100), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    file_id = Column(String(255), nullable=False)
    file_name = Column(String(500), nullable=False)
    purpose = Column(String(100), default="General")
    selected_at = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    customer = relationship("Customer", back_populates="spreadsheets")

    def __repr__(self):
        return f"<CustomerSpreadsheet {self.customer_id}:{self.file_id}>"
