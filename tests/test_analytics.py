from datetime import date, datetime, timedelta

from app.models.email_log import EmailLog
from app.models.review_snapshot import ReviewSnapshot
from app.schemas.analytics import RetentionLogEntry, ReviewLogEntry
from app.services.analytics_service import AnalyticsService

NOW = datetime(2026, 3, 15, 9, 0, 0)


def _log(db, tenant, customer, status, days_ago=0, email_type="review", **extra):
    db.add(EmailLog(
        tenant_id=tenant.id,
        customer_id=customer.id,
        email_type=email_type,
        status=status,
        created_at=NOW - timedelta(days=days_ago),
        **extra,
    ))
    db.commit()


def test_empty_window(db, make_tenant):
    tenant = make_tenant()

    result = AnalyticsService(db).get_analytics(tenant.id, now=NOW)

    assert len(result.traffic_data) == 30
    assert result.traffic_data[0].date == "Feb 14"
    assert result.traffic_data[-1].date == "Mar 15"
    assert result.stats.total_sent == 0
    assert result.stats.conversion_rate == 0.0
    assert result.review_growth_data[-1].reviews == 0


def test_counts_and_conversion(db, make_tenant, make_customer):
    tenant = make_tenant()
    ana, bea = make_customer(tenant), make_customer(tenant)
    _log(db, tenant, ana, "sent", days_ago=2)
    _log(db, tenant, bea, "sent", days_ago=2, email_type="retention")
    _log(db, tenant, ana, "clicked", days_ago=1)
    _log(db, tenant, ana, "failed", days_ago=1)
    # outside the 30 day window
    _log(db, tenant, bea, "clicked", days_ago=40)

    result = AnalyticsService(db).get_analytics(tenant.id, now=NOW)

    assert result.stats.total_sent == 2
    assert result.stats.total_clicked == 1
    assert result.stats.conversion_rate == 50.0

    by_day = {d.date: d for d in result.traffic_data}
    assert by_day["Mar 13"].sent == 2
    assert by_day["Mar 14"].clicked == 1
    assert sum(d.sent for d in result.traffic_data) == 2


def test_growth_is_cumulative(db, make_tenant, make_customer):
    tenant = make_tenant()
    customer = make_customer(tenant)
    _log(db, tenant, customer, "clicked", days_ago=5)
    _log(db, tenant, customer, "clicked", days_ago=2)
    _log(db, tenant, customer, "clicked", days_ago=2)

    growth = AnalyticsService(db).get_analytics(tenant.id, now=NOW).review_growth_data
    values = [p.reviews for p in growth]

    assert values == sorted(values)
    assert {p.date: p.reviews for p in growth}["Mar 10"] == 1
    assert values[-1] == 3


def test_analytics_are_tenant_scoped(db, make_tenant, make_customer):
    mine, other = make_tenant(), make_tenant(business_name="Other")
    _log(db, other, make_customer(other), "sent")

    assert AnalyticsService(db).get_analytics(mine.id, now=NOW).stats.total_sent == 0


def test_snapshots_in_window(db, make_tenant):
    tenant = make_tenant()
    db.add(ReviewSnapshot(tenant_id=tenant.id, snapshot_date=date(2026, 3, 10), review_count=120, average_rating=4.6))
    db.add(ReviewSnapshot(tenant_id=tenant.id, snapshot_date=date(2025, 12, 1), review_count=90, average_rating=4.5))
    db.commit()

    snapshots = AnalyticsService(db).get_analytics(tenant.id, now=NOW).snapshots

    assert [s.review_count for s in snapshots] == [120]


def test_email_log_listing(db, make_tenant, make_customer, make_program):
    tenant = make_tenant()
    program = make_program(tenant)
    customer = make_customer(tenant, service_tag="oil_change")
    _log(db, tenant, customer, "sent", days_ago=3)
    _log(db, tenant, customer, "sent", days_ago=1, email_type="retention",
         program_id=program.id, step_id=program.steps[0].id)

    service = AnalyticsService(db)
    listed = service.list_email_logs(tenant.id)

    assert listed.total == 2
    # newest first
    assert isinstance(listed.data[0], RetentionLogEntry)
    assert listed.data[0].step_id == program.steps[0].id
    assert isinstance(listed.data[1], ReviewLogEntry)

    only_review = service.list_email_logs(tenant.id, email_type="review")
    assert only_review.total == 1

    paged = service.list_email_logs(tenant.id, page=2, limit=1)
    assert paged.total == 2 and len(paged.data) == 1


def test_analytics_api(client, db, make_tenant, make_customer):
    tenant = make_tenant()
    customer = make_customer(tenant)
    _log(db, tenant, customer, "failed", email_type="retention", error_message="SMTP relay unavailable")

    r = client.get(f"/api/tenants/{tenant.id}/analytics")
    assert r.status_code == 200
    body = r.json()
    assert len(body["traffic_data"]) == 30
    assert set(body["stats"]) == {"total_sent", "total_clicked", "conversion_rate"}

    r = client.get(f"/api/tenants/{tenant.id}/email-logs", params={"email_type": "retention"})
    entry = r.json()["data"][0]
    assert entry["email_type"] == "retention"
    assert entry["status"] == "failed"
    assert entry["error_message"] == "SMTP relay unavailable"
    assert "step_id" in entry

    assert client.get(f"/api/tenants/{tenant.id}/email-logs", params={"limit": 500}).status_code == 422
