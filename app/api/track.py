import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse, RedirectResponse
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.exceptions import InvalidLinkError, NotFoundError
from app.services.tracking_service import TrackingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/track", tags=["Tracking"])


@router.get("/click")
def track_click(token: Optional[str] = None, dest: Optional[str] = None, db: Session = Depends(get_db)):
    if not token:
        return PlainTextResponse("Missing Token", status_code=400)

    try:
        redirect_url = TrackingService(db).resolve_click(token, dest=dest)
    except InvalidLinkError:
        return PlainTextResponse("Invalid or Expired Link", status_code=403)
    except NotFoundError:
        return PlainTextResponse("Customer not found", status_code=404)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Tracking error: {e}")
        return PlainTextResponse("Internal Server Error", status_code=500)

    return RedirectResponse(redirect_url, status_code=307)
