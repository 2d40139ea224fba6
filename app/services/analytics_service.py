from datetime import datetime, timedelta
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.email_log import EmailLog
from app.models.review_snapshot import ReviewSnapshot
from app.schemas.analytics import (
    AnalyticsResponse,
    AnalyticsStats,
    DailyTraffic,
    EmailLogResponse,
    RetentionLogEntry,
    ReviewGrowthPoint,
    ReviewLogEntry,
    SnapshotPoint,
)

CLICK_STATUSES = ("clicked", "reviewed")
DATE_LABEL = "%b %d"  # "Jan 05"


class AnalyticsService:
    def __init__(self, db: Session):
        self.db = db

    def get_analytics(self, tenant_id: int, now: datetime = None, days: int = 30) -> AnalyticsResponse:
        now = now or datetime.utcnow()
        today = now.date()
        first_day = today - timedelta(days=days - 1)

        # 1. Empty buckets for every day in the window
        buckets: Dict[str, DailyTraffic] = {}
        for offset in range(days):
            label = (first_day + timedelta(days=offset)).strftime(DATE_LABEL)
            buckets[label] = DailyTraffic(date=label, sent=0, clicked=0)

        logs = (
            self.db.query(EmailLog.status, EmailLog.created_at)
            .filter(
                EmailLog.tenant_id == tenant_id,
                EmailLog.created_at >= datetime(first_day.year, first_day.month, first_day.day),
            )
            .all()
        )

        # 2. Fill them
        total_sent = 0
        total_clicked = 0
        for log in logs:
            if log.status == "sent":
                total_sent += 1
            elif log.status in CLICK_STATUSES:
                total_clicked += 1

            entry = buckets.get(log.created_at.strftime(DATE_LABEL))
            if entry is None:
                continue
            if log.status == "sent":
                entry.sent += 1
            elif log.status == "clicked":
                entry.clicked += 1

        traffic = list(buckets.values())

        # 3. Cumulative clicks ("estimated reviews")
        growth: List[ReviewGrowthPoint] = []
        running = 0
        for day in traffic:
            running += day.clicked
            growth.append(ReviewGrowthPoint(date=day.date, reviews=running))

        conversion_rate = round(total_clicked / total_sent * 100, 1) if total_sent else 0.0

        snapshots = (
            self.db.query(ReviewSnapshot)
            .filter(ReviewSnapshot.tenant_id == tenant_id, ReviewSnapshot.snapshot_date >= first_day)
            .order_by(ReviewSnapshot.snapshot_date.asc())
            .all()
        )

        return AnalyticsResponse(
            traffic_data=traffic,
            review_growth_data=growth,
            stats=AnalyticsStats(
                total_sent=total_sent,
                total_clicked=total_clicked,
                conversion_rate=conversion_rate,
            ),
            snapshots=[SnapshotPoint.model_validate(s) for s in snapshots],
        )

    def list_email_logs(self, tenant_id: int, page: int = 1, limit: int = 50,
                        customer_id: int = None, email_type: str = None) -> EmailLogResponse:
        query = self.db.query(EmailLog).filter(EmailLog.tenant_id == tenant_id)
        if customer_id is not None:
            query = query.filter(EmailLog.customer_id == customer_id)
        if email_type:
            query = query.filter(EmailLog.email_type == email_type)

        total = query.with_entities(func.count(EmailLog.id)).scalar()
        rows = (
            query.order_by(EmailLog.created_at.desc(), EmailLog.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        entries = [
            RetentionLogEntry.model_validate(row) if row.email_type == "retention"
            else ReviewLogEntry.model_validate(row)
            for row in rows
        ]
        return EmailLogResponse(data=entries, total=total, page=page, limit=limit)
