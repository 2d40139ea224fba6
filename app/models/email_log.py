from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, TIMESTAMP, ForeignKey, Index, CheckConstraint, text
from app.core.database import Base

EMAIL_TYPES = ("review", "retention")
LOG_STATUSES = ("sent", "clicked", "reviewed", "failed")


class EmailLog(Base):
    """
    Append-only record of sends, clicks and failures.

    Rows are inserted, never updated. `sent` rows double as the idempotency
    ledger: the two partial unique indexes below are what make a re-run (or a
    concurrent run) of the daily cycle unable to deliver the same email twice.
    """
    __tablename__ = "email_logs"
    __table_args__ = (
        # A program step reaches a customer at most once
        Index(
            "uq_email_logs_customer_step_sent",
            "customer_id",
            "step_id",
            unique=True,
            postgresql_where=text("status = 'sent' AND step_id IS NOT NULL"),
            sqlite_where=text("status = 'sent' AND step_id IS NOT NULL"),
        ),
        # The global review email reaches a customer at most once, ever
        Index(
            "uq_email_logs_customer_review_sent",
            "customer_id",
            unique=True,
            postgresql_where=text("email_type = 'review' AND status = 'sent'"),
            sqlite_where=text("email_type = 'review' AND status = 'sent'"),
        ),
        Index("ix_email_logs_customer_program", "customer_id", "program_id"),
        CheckConstraint("email_type IN ('review', 'retention')", name="ck_email_logs_type"),
        CheckConstraint("status IN ('sent', 'clicked', 'reviewed', 'failed')", name="ck_email_logs_status"),
        CheckConstraint(
            "email_type = 'retention' OR (program_id IS NULL AND step_id IS NULL)",
            name="ck_email_logs_review_has_no_step",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)

    email_type = Column(String, nullable=False)
    status = Column(String, nullable=False)

    # Only for email_type == 'retention'; history survives step deletion
    program_id = Column(Integer, ForeignKey("retention_programs.id", ondelete="SET NULL"), nullable=True)
    step_id = Column(Integer, ForeignKey("program_steps.id", ondelete="SET NULL"), nullable=True)

    error_message = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP, default=datetime.utcnow, index=True)
