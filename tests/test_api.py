from datetime import datetime

from app.core.crypto import decrypt
from app.models.api_key import ApiKey
from app.models.customer import Customer
from app.models.email_log import EmailLog
from app.models.tenant import Tenant

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


def test_health(client):
    assert client.get("/").json() == {"status": "running"}


# ---------------------------------------------------------
# TENANT SETTINGS
# ---------------------------------------------------------
def test_create_and_update_tenant(client):
    r = client.post("/api/tenants", json={"business_name": "Acme Garage"})
    assert r.status_code == 201, r.text
    tenant = r.json()
    assert tenant["default_review_delay"] == 1
    assert tenant["enable_global_review_email"] is True
    assert tenant["email_provider"] == "platform"

    r = client.patch(f"/api/tenants/{tenant['id']}/settings", json={
        "google_review_link": "https://g.page/r/acme/review",
        "default_review_delay": 3,
        "enable_global_review_email": False,
    })
    assert r.status_code == 200, r.text

    settings = client.get(f"/api/tenants/{tenant['id']}/settings").json()
    assert settings["business_name"] == "Acme Garage"
    assert settings["google_review_link"] == "https://g.page/r/acme/review"
    assert settings["default_review_delay"] == 3
    assert settings["enable_global_review_email"] is False


def test_review_delay_must_be_positive(client, make_tenant):
    tenant = make_tenant()
    r = client.patch(f"/api/tenants/{tenant.id}/settings", json={"default_review_delay": 0})
    assert r.status_code == 422


def test_unknown_tenant_is_404(client):
    assert client.get("/api/tenants/999/settings").status_code == 404


def test_google_connect_stores_encrypted_tokens(client, db, make_tenant):
    tenant = make_tenant()

    r = client.post(f"/api/tenants/{tenant.id}/google/connect", json={
        "email_address": "owner@brightsmile.com",
        "refresh_token": "1//refresh-abc",
        "access_token": "ya29.access-abc",
    })
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["email_provider"] == "google"
    assert body["google_email_address"] == "owner@brightsmile.com"
    assert "google_refresh_token" not in body

    db.refresh(tenant)
    assert tenant.google_refresh_token != "1//refresh-abc"
    assert decrypt(tenant.google_refresh_token) == "1//refresh-abc"
    assert decrypt(tenant.google_access_token) == "ya29.access-abc"
    assert tenant.is_google_connected

    r = client.post(f"/api/tenants/{tenant.id}/google/disconnect")
    assert r.json()["email_provider"] == "platform"
    db.refresh(tenant)
    assert tenant.google_refresh_token is None
    assert not tenant.is_google_connected


# ---------------------------------------------------------
# API KEYS + SPREADSHEET SYNC
# ---------------------------------------------------------
def test_sync_excel_with_api_key(client, db, make_tenant):
    tenant = make_tenant()

    r = client.post(f"/api/tenants/{tenant.id}/api-keys", json={"label": "Sheets"})
    assert r.status_code == 201, r.text
    raw_key = r.json()["api_key"]
    assert raw_key.startswith("ak_")
    assert db.query(ApiKey).one().key_hash != raw_key

    r = client.post("/api/sync/excel", headers={"x-api-key": raw_key}, json={"rows": [
        {"Name": "Ana", "Email": "Ana@Gmail.com", "Date": "2026-03-10", "Service": "Oil Change"},
        {"Name": "Bea", "Email": "bea@gmail.com"},
    ]})
    assert r.status_code == 200, r.text
    assert r.json() == {"success": True, "count": 2}

    ana = db.query(Customer).filter(Customer.email == "ana@gmail.com").one()
    assert ana.tenant_id == tenant.id
    assert ana.service_tag == "oil_change"
    assert ana.last_visit_date.day == 10
    assert db.query(ApiKey).one().last_used_at is not None


def test_sync_excel_rejects_bad_keys(client, make_tenant):
    make_tenant()
    rows = {"rows": [{"email": "ana@gmail.com"}]}

    r = client.post("/api/sync/excel", json=rows)
    assert r.status_code == 401
    assert r.json()["detail"] == "Missing API Key"

    r = client.post("/api/sync/excel", headers={"x-api-key": "ak_not-a-real-key"}, json=rows)
    assert r.status_code == 403
    assert r.json()["detail"] == "Invalid API Key"


def test_sync_excel_empty_rows(client, make_tenant):
    tenant = make_tenant()
    raw_key = client.post(f"/api/tenants/{tenant.id}/api-keys", json={}).json()["api_key"]

    r = client.post("/api/sync/excel", headers={"x-api-key": raw_key}, json={"rows": []})
    assert r.json() == {"success": True, "count": 0}


# ---------------------------------------------------------
# CUSTOMERS
# ---------------------------------------------------------
def test_customer_crud(client, make_tenant):
    tenant = make_tenant()
    base = f"/api/tenants/{tenant.id}/customers"

    r = client.post(base, json={"name": "Ana", "email": "Ana@Gmail.com", "service_tag": "Oil Change",
                                "last_visit_date": "2026-03-01"})
    assert r.status_code == 201, r.text
    customer = r.json()
    assert customer["email"] == "ana@gmail.com"
    assert customer["service_tag"] == "oil_change"
    assert customer["status"] == "pending"

    r = client.post(base, json={"email": "ana@gmail.com"})
    assert r.status_code == 422

    r = client.patch(f"{base}/{customer['id']}", json={"service_tag": ""})
    assert r.json()["service_tag"] is None

    listed = client.get(base).json()
    assert listed["total"] == 1 and listed["data"][0]["name"] == "Ana"

    assert client.delete(f"{base}/{customer['id']}").status_code == 200
    assert client.get(base).json()["total"] == 0
    assert client.patch(f"{base}/{customer['id']}", json={"name": "X"}).status_code == 404


def test_customer_email_change_cannot_collide(client, db, make_tenant, make_customer):
    tenant = make_tenant()
    ana = make_customer(tenant, email="ana@gmail.com")
    bea = make_customer(tenant, email="bea@gmail.com")
    base = f"/api/tenants/{tenant.id}/customers"

    r = client.patch(f"{base}/{bea.id}", json={"email": "ANA@gmail.com"})
    assert r.status_code == 422
    assert r.json()["detail"] == "A customer with this email already exists"

    # keeping your own address is not a collision
    r = client.patch(f"{base}/{ana.id}", json={"email": "ana@gmail.com", "name": "Ana B"})
    assert r.status_code == 200, r.text

    db.refresh(bea)
    assert bea.email == "bea@gmail.com"


def test_customer_belongs_to_tenant(client, make_tenant, make_customer):
    owner, other = make_tenant(), make_tenant(business_name="Other")
    customer = make_customer(owner)

    r = client.patch(f"/api/tenants/{other.id}/customers/{customer.id}", json={"name": "X"})
    assert r.status_code == 404


def test_customer_upload_upserts(client, db, make_tenant, make_customer):
    tenant = make_tenant()
    existing = make_customer(tenant, email="ana@gmail.com", status="contacted")
    base = f"/api/tenants/{tenant.id}/customers"

    r = client.post(f"{base}/upload", json={"rows": [
        {"name": "Ana Maria", "email": "ANA@gmail.com", "last_visit_date": "2026-03-14"},
        {"name": "Bea", "email": "bea@gmail.com", "service": "Tires"},
    ]})
    assert r.status_code == 200, r.text
    assert r.json()["count"] == 2

    db.refresh(existing)
    assert existing.name == "Ana Maria"
    assert existing.status == "contacted"
    assert db.query(Customer).filter(Customer.tenant_id == tenant.id).count() == 2

    r = client.post(f"{base}/upload", json={"rows": []})
    assert r.status_code == 400
    assert r.json()["detail"] == "No data provided"


def test_service_tags_and_program_status(client, make_tenant, make_customer, make_program):
    tenant = make_tenant()
    make_program(tenant)
    customer = make_customer(tenant, service_tag="oil_change")
    make_customer(tenant, service_tag="tires")
    base = f"/api/tenants/{tenant.id}/customers"

    assert client.get(f"{base}/service-tags").json() == ["oil_change", "tires"]

    status = client.get(f"{base}/{customer.id}/program-status").json()
    assert status["has_program"] is True
    assert status["program_name"] == "Oil Change"


def test_send_review_now(client, db, mailer, make_tenant, make_customer):
    tenant = make_tenant(enable_global_review_email=False)
    customer = make_customer(tenant, days_ago=90)
    url = f"/api/tenants/{tenant.id}/customers/{customer.id}/send-review"

    r = client.post(url)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "sent"
    assert len(mailer.sent) == 1

    r = client.post(url)
    assert r.status_code == 409
    assert r.json()["detail"] == "Review email already sent to this customer"
    assert len(mailer.sent) == 1

    db.refresh(customer)
    assert customer.status == "contacted"


def test_send_review_now_mailer_failure(client, db, make_tenant, make_customer, mailer_class):
    from app.api.deps import get_mailer
    from app.main import app

    tenant = make_tenant()
    customer = make_customer(tenant, email="bounce@gmail.com")
    app.dependency_overrides[get_mailer] = lambda: mailer_class(fail_for={"bounce@gmail.com"})

    r = client.post(f"/api/tenants/{tenant.id}/customers/{customer.id}/send-review")

    assert r.status_code == 502
    assert "SMTP relay unavailable" in r.json()["detail"]
    log = db.query(EmailLog).one()
    assert log.status == "failed"


# ---------------------------------------------------------
# CRON
# ---------------------------------------------------------
def test_cron_requires_secret(client):
    assert client.get("/api/cron/daily").status_code == 401
    assert client.get("/api/cron/daily", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.get("/api/cron/snapshot").status_code == 401


def test_cron_daily_runs_cycle(client, db, mailer, make_tenant, make_customer):
    tenant = make_tenant(default_review_delay=1)
    make_customer(tenant, days_ago=1, now=datetime.utcnow())

    r = client.get("/api/cron/daily", headers=CRON_HEADERS)

    assert r.status_code == 200, r.text
    assert r.json() == {"success": True, "processed": 1, "sent": 1, "failed": 0}
    assert len(mailer.sent) == 1


def test_cron_snapshot_without_links(client, make_tenant):
    make_tenant()

    r = client.get("/api/cron/snapshot", headers=CRON_HEADERS)

    assert r.status_code == 200
    assert r.json() == {"success": True, "processed": 0, "successes": 0, "errors": 0}


def test_tenant_delete_cascades(db, make_tenant, make_customer):
    tenant = make_tenant()
    make_customer(tenant)

    db.delete(db.get(Tenant, tenant.id))
    db.commit()

    assert db.query(Customer).count() == 0
