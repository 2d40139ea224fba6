from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Boolean, TIMESTAMP, ForeignKey, Index, text
from app.core.database import Base


class EmailTemplate(Base):
    __tablename__ = "email_templates"
    __table_args__ = (
        # One global template per type per tenant; program templates are per step
        Index(
            "uq_email_templates_tenant_type",
            "tenant_id",
            "type",
            unique=True,
            postgresql_where=text("is_program_template = false"),
            sqlite_where=text("is_program_template = 0"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String, nullable=False)  # 'review' | 'retention'

    # Set when the template belongs to a single ProgramStep
    is_program_template = Column(Boolean, default=False, nullable=False)
    program_id = Column(Integer, ForeignKey("retention_programs.id", ondelete="CASCADE"), nullable=True)

    # subject/heading/body accept {{name}} and {{business_name}}
    subject = Column(Text)
    heading = Column(Text)
    body = Column(Text)
    button_text = Column(Text)
    button_url = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow)
