import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_SCHEDULER"] = "0"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["TRACKING_JWT_SECRET"] = "test-tracking-secret"
os.environ["TOKEN_ENCRYPTION_KEY"] = "test-encryption-key"
os.environ["APP_BASE_URL"] = "http://testserver"
os.environ.pop("ZEPTO_API_KEY", None)
os.environ.pop("ZEPTO_FROM_ADDRESS", None)

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_mailer
from app.core.database import Base, get_db
from app.core.exceptions import MailerError
from app.main import app
from app.models.customer import Customer
from app.models.email_template import EmailTemplate
from app.models.retention_program import RetentionProgram, ProgramStep
from app.models.tenant import Tenant

NOW = datetime(2026, 3, 15, 9, 0, 0)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeMailer:
    """Records every send; raises MailerError for addresses in `fail_for`."""

    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def send(self, tenant_id, to_email, subject, html):
        if to_email in self.fail_for:
            raise MailerError("SMTP relay unavailable")
        self.sent.append({"tenant_id": tenant_id, "to": to_email, "subject": subject, "html": html})
        return True


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def mailer_class():
    return FakeMailer


@pytest.fixture
def client(db, mailer):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------
# FACTORIES
# ---------------------------------------------------------
@pytest.fixture
def make_tenant(db):
    def _make(**overrides):
        values = {
            "business_name": "Bright Smile Dental",
            "google_review_link": None,
            "default_review_delay": 1,
            "enable_global_review_email": True,
            "email_provider": "platform",
        }
        values.update(overrides)
        tenant = Tenant(**values)
        db.add(tenant)
        db.commit()
        db.refresh(tenant)
        return tenant
    return _make


@pytest.fixture
def make_customer(db):
    counter = {"n": 0}

    def _make(tenant, days_ago=1, now=NOW, **overrides):
        counter["n"] += 1
        values = {
            "tenant_id": tenant.id,
            "name": "Ana",
            "email": f"customer{counter['n']}@gmail.com",
            "last_visit_date": now - timedelta(days=days_ago),
            "status": "pending",
        }
        values.update(overrides)
        customer = Customer(**values)
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer
    return _make


@pytest.fixture
def make_program(db):
    def _make(tenant, service_tag="oil_change", steps=((30, 14),), enabled=True, button_url=None):
        """`steps` is a sequence of (offset_days, cooldown_days) in step_order."""
        program = RetentionProgram(
            tenant_id=tenant.id,
            service_tag=service_tag,
            display_name=service_tag.replace("_", " ").title(),
            enabled=enabled,
        )
        db.add(program)
        db.flush()

        for order, (offset_days, cooldown_days) in enumerate(steps, start=1):
            template = EmailTemplate(
                tenant_id=tenant.id,
                type="retention",
                is_program_template=True,
                program_id=program.id,
                subject=f"Step {order} for {{{{name}}}}",
                heading="Hi {{name}},",
                body="Time for your next visit at {{business_name}}.",
                button_text="Book now",
                button_url=button_url,
            )
            db.add(template)
            db.flush()
            db.add(ProgramStep(
                program_id=program.id,
                step_order=order,
                offset_days=offset_days,
                cooldown_days=cooldown_days,
                template_id=template.id,
                enabled=True,
            ))

        db.commit()
        db.refresh(program)
        return program
    return _make
