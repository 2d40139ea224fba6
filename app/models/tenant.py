from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Boolean, TIMESTAMP
from sqlalchemy.orm import relationship
from app.core.database import Base


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)

    business_name = Column(String)

    # Where review clicks land (priority 2 after a link-level override)
    google_review_link = Column(Text, nullable=True)
    # Public maps page used by the review-count snapshot job
    google_maps_link = Column(Text, nullable=True)

    # Global review flow
    default_review_delay = Column(Integer, default=1)
    enable_global_review_email = Column(Boolean, default=True)

    # Connected sending identity: 'google' or 'platform'
    email_provider = Column(String, default="platform")
    google_email_address = Column(String, nullable=True)
    # Encrypted with app.core.crypto, never stored in clear
    google_access_token = Column(Text, nullable=True)
    google_refresh_token = Column(Text, nullable=True)
    google_token_expiry = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow)

    customers = relationship("Customer", back_populates="tenant", cascade="all, delete-orphan")
    programs = relationship("RetentionProgram", back_populates="tenant", cascade="all, delete-orphan")

    @property
    def is_google_connected(self) -> bool:
        return self.email_provider == "google" and bool(self.google_refresh_token)
