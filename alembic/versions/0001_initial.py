"""initial review/retention schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("business_name", sa.String()),
        sa.Column("google_review_link", sa.Text(), nullable=True),
        sa.Column("google_maps_link", sa.Text(), nullable=True),
        sa.Column("default_review_delay", sa.Integer(), server_default="1"),
        sa.Column("enable_global_review_email", sa.Boolean(), server_default=sa.true()),
        sa.Column("email_provider", sa.String(), server_default="platform"),
        sa.Column("google_email_address", sa.String(), nullable=True),
        sa.Column("google_access_token", sa.Text(), nullable=True),
        sa.Column("google_refresh_token", sa.Text(), nullable=True),
        sa.Column("google_token_expiry", sa.TIMESTAMP(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP()),
        sa.Column("updated_at", sa.TIMESTAMP()),
    )
    op.create_index("ix_tenants_id", "tenants", ["id"])

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String()),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("last_visit_date", sa.TIMESTAMP(), nullable=False),
        sa.Column("service_tag", sa.String(), nullable=True),
        sa.Column("status", sa.String(), server_default="pending"),
        sa.Column("last_contacted_at", sa.TIMESTAMP(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP()),
        sa.UniqueConstraint("tenant_id", "email", name="uq_customers_tenant_email"),
    )
    op.create_index("ix_customers_id", "customers", ["id"])
    op.create_index("ix_customers_tenant_id", "customers", ["tenant_id"])
    op.create_index("ix_customers_service_tag", "customers", ["service_tag"])

    op.create_table(
        "retention_programs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("service_tag", sa.String(), nullable=False),
        sa.Column("display_name", sa.String()),
        sa.Column("enabled", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.TIMESTAMP()),
        sa.Column("updated_at", sa.TIMESTAMP()),
        sa.UniqueConstraint("tenant_id", "service_tag", name="uq_retention_programs_tenant_tag"),
    )
    op.create_index("ix_retention_programs_id", "retention_programs", ["id"])
    op.create_index("ix_retention_programs_tenant_id", "retention_programs", ["tenant_id"])

    op.create_table(
        "email_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("is_program_template", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "program_id", sa.Integer(), sa.ForeignKey("retention_programs.id", ondelete="CASCADE"), nullable=True
        ),
        sa.Column("subject", sa.Text()),
        sa.Column("heading", sa.Text()),
        sa.Column("body", sa.Text()),
        sa.Column("button_text", sa.Text()),
        sa.Column("button_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP()),
        sa.Column("updated_at", sa.TIMESTAMP()),
    )
    op.create_index("ix_email_templates_id", "email_templates", ["id"])
    op.create_index("ix_email_templates_tenant_id", "email_templates", ["tenant_id"])
    op.create_index(
        "uq_email_templates_tenant_type",
        "email_templates",
        ["tenant_id", "type"],
        unique=True,
        postgresql_where=sa.text("is_program_template = false"),
        sqlite_where=sa.text("is_program_template = 0"),
    )

    op.create_table(
        "program_steps",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "program_id", sa.Integer(), sa.ForeignKey("retention_programs.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("step_order", sa.Integer(), server_default="1"),
        sa.Column("offset_days", sa.Integer(), nullable=False),
        sa.Column("cooldown_days", sa.Integer(), server_default="0"),
        sa.Column("enabled", sa.Boolean(), server_default=sa.true()),
        sa.Column(
            "template_id", sa.Integer(), sa.ForeignKey("email_templates.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("created_at", sa.TIMESTAMP()),
    )
    op.create_index("ix_program_steps_id", "program_steps", ["id"])
    op.create_index("ix_program_steps_program_id", "program_steps", ["program_id"])

    op.create_table(
        "email_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column(
            "program_id", sa.Integer(), sa.ForeignKey("retention_programs.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("step_id", sa.Integer(), sa.ForeignKey("program_steps.id", ondelete="SET NULL"), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP()),
        sa.CheckConstraint("email_type IN ('review', 'retention')", name="ck_email_logs_type"),
        sa.CheckConstraint("status IN ('sent', 'clicked', 'reviewed', 'failed')", name="ck_email_logs_status"),
        sa.CheckConstraint(
            "email_type = 'retention' OR (program_id IS NULL AND step_id IS NULL)",
            name="ck_email_logs_review_has_no_step",
        ),
    )
    op.create_index("ix_email_logs_id", "email_logs", ["id"])
    op.create_index("ix_email_logs_tenant_id", "email_logs", ["tenant_id"])
    op.create_index("ix_email_logs_created_at", "email_logs", ["created_at"])
    op.create_index("ix_email_logs_customer_program", "email_logs", ["customer_id", "program_id"])
    # Idempotency ledger: concurrent cycles cannot both insert the same `sent` row
    op.create_index(
        "uq_email_logs_customer_step_sent",
        "email_logs",
        ["customer_id", "step_id"],
        unique=True,
        postgresql_where=sa.text("status = 'sent' AND step_id IS NOT NULL"),
        sqlite_where=sa.text("status = 'sent' AND step_id IS NOT NULL"),
    )
    op.create_index(
        "uq_email_logs_customer_review_sent",
        "email_logs",
        ["customer_id"],
        unique=True,
        postgresql_where=sa.text("email_type = 'review' AND status = 'sent'"),
        sqlite_where=sa.text("email_type = 'review' AND status = 'sent'"),
    )

    op.create_table(
        "review_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("review_count", sa.Integer(), server_default="0"),
        sa.Column("average_rating", sa.Float(), server_default="0"),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP()),
        sa.UniqueConstraint("tenant_id", "snapshot_date", name="uq_review_snapshots_tenant_day"),
    )
    op.create_index("ix_review_snapshots_id", "review_snapshots", ["id"])
    op.create_index("ix_review_snapshots_tenant_id", "review_snapshots", ["tenant_id"])

    op.create_table(
        "api_keys",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("label", sa.String(), nullable=True),
        sa.Column("key_hash", sa.String(), nullable=False, unique=True),
        sa.Column("created_at", sa.TIMESTAMP()),
        sa.Column("last_used_at", sa.TIMESTAMP(), nullable=True),
    )
    op.create_index("ix_api_keys_id", "api_keys", ["id"])
    op.create_index("ix_api_keys_tenant_id", "api_keys", ["tenant_id"])


def downgrade():
    op.drop_table("api_keys")
    op.drop_table("review_snapshots")
    op.drop_table("email_logs")
    op.drop_table("program_steps")
    op.drop_table("email_templates")
    op.drop_table("retention_programs")
    op.drop_table("customers")
    op.drop_table("tenants")
