from datetime import datetime
from sqlalchemy import Column, Integer, Float, Date, TIMESTAMP, ForeignKey, UniqueConstraint
from app.core.database import Base


class ReviewSnapshot(Base):
    __tablename__ = "review_snapshots"
    __table_args__ = (
        UniqueConstraint("tenant_id", "snapshot_date", name="uq_review_snapshots_tenant_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)

    review_count = Column(Integer, default=0)
    average_rating = Column(Float, default=0.0)

    snapshot_date = Column(Date, nullable=False)
    created_at = Column(TIMESTAMP, default=datetime.utcnow)
