from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.email_service import EmailService


def get_mailer(db: Session = Depends(get_db)):
    """Outbound mailer bound to the request's session (overridden in tests)."""
    return EmailService(db)
