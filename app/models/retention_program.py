from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, TIMESTAMP, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.database import Base


# ---------------------------------------------------------
# 1. RETENTION PROGRAMS (one per service tag)
# ---------------------------------------------------------
class RetentionProgram(Base):
    __tablename__ = "retention_programs"
    __table_args__ = (
        UniqueConstraint("tenant_id", "service_tag", name="uq_retention_programs_tenant_tag"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)

    service_tag = Column(String, nullable=False)  # e.g. "oil_change"
    display_name = Column(String)                 # e.g. "Oil Change"
    enabled = Column(Boolean, default=True)

    created_at = Column(TIMESTAMP, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow)

    tenant = relationship("Tenant", back_populates="programs")
    steps = relationship(
        "ProgramStep",
        back_populates="program",
        cascade="all, delete-orphan",
        order_by="ProgramStep.step_order",
    )

    def schedulable_steps(self):
        """Enabled steps in scheduling order (offset_days, not step_order)."""
        enabled = [s for s in self.steps if s.enabled]
        return sorted(enabled, key=lambda s: (s.offset_days, s.step_order or 0, s.id or 0))


# ---------------------------------------------------------
# 2. PROGRAM STEPS (one email at an offset from the visit)
# ---------------------------------------------------------
class ProgramStep(Base):
    __tablename__ = "program_steps"

    id = Column(Integer, primary_key=True, index=True)
    program_id = Column(Integer, ForeignKey("retention_programs.id", ondelete="CASCADE"), nullable=False, index=True)

    step_order = Column(Integer, default=1)     # display only
    offset_days = Column(Integer, nullable=False)
    cooldown_days = Column(Integer, default=0)  # min days since the last send in this program
    enabled = Column(Boolean, default=True)

    template_id = Column(Integer, ForeignKey("email_templates.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(TIMESTAMP, default=datetime.utcnow)

    program = relationship("RetentionProgram", back_populates="steps")
    template = relationship("EmailTemplate")
