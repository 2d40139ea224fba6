from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.analytics_service import AnalyticsService
from app.schemas.analytics import AnalyticsResponse, EmailLogResponse
from app.schemas.template import TemplateType

router = APIRouter(prefix="/api/tenants/{tenant_id}", tags=["Analytics"])


@router.get("/analytics", response_model=AnalyticsResponse)
def get_analytics(tenant_id: int, db: Session = Depends(get_db)):
    return AnalyticsService(db).get_analytics(tenant_id)


@router.get("/email-logs", response_model=EmailLogResponse)
def get_email_logs(
    tenant_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    customer_id: Optional[int] = None,
    email_type: Optional[TemplateType] = None,
    db: Session = Depends(get_db),
):
    return AnalyticsService(db).list_email_logs(
        tenant_id, page=page, limit=limit, customer_id=customer_id, email_type=email_type
    )
