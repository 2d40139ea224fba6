import html
import logging
from datetime import datetime
from urllib.parse import urlencode

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import AppError
from app.core.tokens import TokenCodec
from app.models.customer import Customer
from app.models.email_log import EmailLog
from app.models.tenant import Tenant
from app.schemas.cycle import SendPlan, DispatchResult
from app.schemas.template import EmailContent
from app.services.template_service import compile_template

logger = logging.getLogger(__name__)

# `dest` query param per email type (the click resolver reads it back)
DESTINATIONS = {"review": "google", "retention": "retention"}

ENVELOPE = """
<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto; color: #333;">
  <h2 style="color: #000;">{heading}</h2>
  <p style="white-space: pre-wrap; font-size: 16px; line-height: 1.5;">{body}</p>

  <div style="margin: 32px 0;">
    <a href="{link}" style="background-color: #000; color: #fff; padding: 14px 24px; text-decoration: none; border-radius: 6px; font-weight: bold; font-size: 16px; display: inline-block;">
      {button_text}
    </a>
  </div>

  <p style="color: #888; font-size: 12px; margin-top: 40px; border-top: 1px solid #eaeaea; padding-top: 20px;">
    Sent by {business_name}
  </p>
</div>
"""


def build_tracking_link(token: str, dest: str, base_url: str = None) -> str:
    query = urlencode({"token": token, "dest": dest})
    return f"{(base_url or settings.APP_BASE_URL).rstrip('/')}/api/track/click?{query}"


def render_envelope(content: EmailContent, link: str, business_name: str) -> str:
    return ENVELOPE.format(
        heading=html.escape(content.heading or ""),
        body=html.escape(content.body or ""),
        link=html.escape(link, quote=True),
        button_text=html.escape(content.button_text or ""),
        business_name=html.escape(business_name or ""),
    )


class Dispatcher:
    """
    Sends one planned email and records it.

    The `sent` row is flushed before the mailer is called so the partial
    unique indexes on email_logs reject a concurrent duplicate up front. The
    row and the customer update are committed only after the mailer succeeds.
    """

    def __init__(self, db: Session, mailer, codec: TokenCodec = None, base_url: str = None):
        self.db = db
        self.mailer = mailer
        self.codec = codec or TokenCodec()
        self.base_url = base_url

    def dispatch(
        self,
        customer: Customer,
        tenant: Tenant,
        plan: SendPlan,
        template: EmailContent,
        destination_url: str = None,
        now: datetime = None,
    ) -> DispatchResult:
        now = now or datetime.utcnow()
        customer_id, tenant_id, to_email = customer.id, tenant.id, customer.email
        business_name = tenant.business_name or "Us"

        # 1. Content
        compiled = compile_template(template, {
            "name": customer.name or "there",
            "business_name": business_name,
        })
        token = self.codec.issue(customer_id, destination_url=destination_url, step_id=plan.step_id)
        link = build_tracking_link(token, DESTINATIONS[plan.email_type], self.base_url)
        body = render_envelope(compiled, link, business_name)

        # 2. Claim the send
        self.db.add(EmailLog(
            tenant_id=tenant_id,
            customer_id=customer_id,
            email_type=plan.email_type,
            status="sent",
            program_id=plan.program_id,
            step_id=plan.step_id,
            created_at=now,
        ))
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.info(f"⏭️ Customer {customer_id} already has this {plan.email_type} email, skipping")
            return DispatchResult(
                customer_id=customer_id, status="duplicate", email_type=plan.email_type, step_id=plan.step_id
            )

        # 3. Send
        try:
            self.mailer.send(tenant_id, to_email, compiled.subject, body)
        except Exception as e:
            # Any mailer failure (not only MailerError) leaves a `failed` row behind
            error = str(e) if isinstance(e, AppError) else f"{type(e).__name__}: {e}"
            self.db.rollback()
            self._record_failure(tenant_id, customer_id, plan, error, now)
            logger.error(f"❌ Failed to send {plan.email_type} email to customer {customer_id}: {error}")
            return DispatchResult(
                customer_id=customer_id,
                status="failed",
                email_type=plan.email_type,
                step_id=plan.step_id,
                error=error,
            )

        # 4. Commit log row + customer state together
        if plan.email_type == "review":
            customer.advance_status("contacted")
        customer.last_contacted_at = now
        self.db.commit()

        logger.info(f"✅ Sent {plan.email_type} email to customer {customer_id} (step={plan.step_id})")
        return DispatchResult(
            customer_id=customer_id, status="sent", email_type=plan.email_type, step_id=plan.step_id
        )

    def _record_failure(self, tenant_id: int, customer_id: int, plan: SendPlan, error: str, now: datetime):
        # Failed rows are excluded from both unique indexes, so retries stay possible
        self.db.add(EmailLog(
            tenant_id=tenant_id,
            customer_id=customer_id,
            email_type=plan.email_type,
            status="failed",
            program_id=plan.program_id,
            step_id=plan.step_id,
            error_message=error[:1000],
            created_at=now,
        ))
        self.db.commit()
