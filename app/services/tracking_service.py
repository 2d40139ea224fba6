import logging
from datetime import datetime
from urllib.parse import quote

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.core.tokens import TokenCodec
from app.models.customer import Customer
from app.models.email_log import EmailLog
from app.models.retention_program import ProgramStep
from app.models.tenant import Tenant

logger = logging.getLogger(__name__)

GENERIC_FALLBACK_URL = "https://google.com"
SEARCH_URL = "https://www.google.com/search?q="


def redirect_target(tenant: Tenant, override: str = None) -> str:
    """Link override > tenant review link > search for the business > generic fallback."""
    if override:
        return override
    if tenant is not None and tenant.google_review_link:
        return tenant.google_review_link
    if tenant is not None and tenant.business_name:
        return SEARCH_URL + quote(f"{tenant.business_name} reviews")
    return GENERIC_FALLBACK_URL


class TrackingService:
    def __init__(self, db: Session, codec: TokenCodec = None):
        self.db = db
        self.codec = codec or TokenCodec()

    def resolve_click(self, token: str, dest: str = None, now: datetime = None) -> str:
        """
        Verify a tracking token, record the click and return where to redirect.
        Raises InvalidLinkError for bad/expired tokens and NotFoundError for a
        customer that no longer exists.
        """
        claims = self.codec.verify(token)

        customer = self.db.get(Customer, claims.customer_id)
        if not customer:
            raise NotFoundError("Customer not found")

        # Step attribution; a deleted step still counts as a retention click
        step = self.db.get(ProgramStep, claims.step_id) if claims.step_id is not None else None
        is_retention = claims.step_id is not None or dest == "retention"

        self.db.add(EmailLog(
            tenant_id=customer.tenant_id,
            customer_id=customer.id,
            email_type="retention" if is_retention else "review",
            status="clicked",
            program_id=step.program_id if (step and is_retention) else None,
            step_id=step.id if (step and is_retention) else None,
            created_at=now or datetime.utcnow(),
        ))

        # Terminal state; repeat clicks never regress it
        customer.advance_status("reviewed")
        self.db.commit()

        # Recomputed on every click
        url = redirect_target(customer.tenant, claims.destination_url)
        logger.info(f"🔗 Click from customer {customer.id} -> {url}")
        return url
