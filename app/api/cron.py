from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import get_mailer
from app.core.config import settings
from app.core.database import get_db
from app.workers.campaign.daily_worker import run_daily_cycle
from app.workers.snapshot.review_snapshot import run_review_snapshot

router = APIRouter(prefix="/api/cron", tags=["Cron"])


def require_cron_secret(authorization: Optional[str] = Header(None)):
    # No secret configured = endpoints locked
    if not settings.CRON_SECRET or authorization != f"Bearer {settings.CRON_SECRET}":
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.get("/daily", dependencies=[Depends(require_cron_secret)])
def cron_daily(db: Session = Depends(get_db), mailer=Depends(get_mailer)):
    summary = run_daily_cycle(db=db, mailer=mailer)
    return {"success": True, **summary.model_dump()}


@router.get("/snapshot", dependencies=[Depends(require_cron_secret)])
def cron_snapshot(db: Session = Depends(get_db)):
    summary = run_review_snapshot(db=db)
    return {"success": True, **summary.model_dump()}
