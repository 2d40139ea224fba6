from datetime import datetime
from sqlalchemy import Column, Integer, String, TIMESTAMP, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base

# Lifecycle only moves forward: pending -> contacted -> reviewed
CUSTOMER_STATUSES = ("pending", "contacted", "reviewed")
_STATUS_RANK = {status: rank for rank, status in enumerate(CUSTOMER_STATUSES)}


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_customers_tenant_email"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String)
    email = Column(String, nullable=False)

    # Trigger event: every offset is counted from here
    last_visit_date = Column(TIMESTAMP, nullable=False)
    # Normalized tag linking the customer to a RetentionProgram
    service_tag = Column(String, nullable=True, index=True)

    status = Column(String, default="pending")
    last_contacted_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, default=datetime.utcnow)

    tenant = relationship("Tenant", back_populates="customers")

    def advance_status(self, target: str) -> bool:
        """Move status forward to `target`. Returns False (and changes nothing) on a regression."""
        current = _STATUS_RANK.get(self.status or "pending", 0)
        if _STATUS_RANK[target] <= current:
            return False
        self.status = target
        return True
