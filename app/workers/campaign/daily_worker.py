import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.core.database import SessionLocal
from app.core.exceptions import NotFoundError
from app.models.customer import Customer
from app.models.retention_program import ProgramStep
from app.schemas.cycle import CycleSummary, DispatchResult, SendPlan
from app.schemas.template import EmailContent
from app.services.email_service import EmailService
from app.services.template_service import TemplateService
from app.workers.campaign.dispatcher import Dispatcher
from app.workers.campaign.eligibility import EligibilityEngine, days_between

logger = logging.getLogger(__name__)


def resolve_content(db: Session, plan: SendPlan) -> Tuple[EmailContent, Optional[str]]:
    """Template to render for a plan, plus the click destination override (program steps only)."""
    templates = TemplateService(db)

    if plan.email_type == "retention" and plan.step_id:
        step = db.get(ProgramStep, plan.step_id)
        if step and step.template:
            return EmailContent.model_validate(step.template), (step.template.button_url or None)
        return templates.resolve(plan.tenant_id, "retention"), None

    return templates.resolve(plan.tenant_id, plan.email_type), None


def process_customer(db: Session, customer_id: int, now: datetime, engine: EligibilityEngine,
                     dispatcher: Dispatcher) -> Optional[DispatchResult]:
    customer = db.get(Customer, customer_id)
    if customer is None:
        return None

    tenant = customer.tenant
    plan = engine.plan_for(customer, tenant, now)
    if plan is None:
        return None

    template, destination_url = resolve_content(db, plan)
    return dispatcher.dispatch(customer, tenant, plan, template, destination_url=destination_url, now=now)


# ---------------------------------------------------------
# DAILY CYCLE (cron endpoint + scheduler job)
# ---------------------------------------------------------
def run_daily_cycle(now: datetime = None, db: Session = None, mailer=None, tenant_id: int = None) -> CycleSummary:
    """
    One scheduling pass over every customer (or one tenant's customers).
    Safe to re-run: eligibility reads the email log before each send.
    """
    owns_session = db is None
    db = db or SessionLocal()
    now = now or datetime.utcnow()
    summary = CycleSummary()

    logger.info(f"🤖 Daily cycle started: {now.isoformat()}")
    try:
        engine = EligibilityEngine(db)
        dispatcher = Dispatcher(db, mailer or EmailService(db))

        query = db.query(Customer.id).order_by(Customer.id.asc())
        if tenant_id is not None:
            query = query.filter(Customer.tenant_id == tenant_id)
        customer_ids = [row.id for row in query.all()]

        for customer_id in customer_ids:
            summary.processed += 1
            try:
                result = process_customer(db, customer_id, now, engine, dispatcher)
            except Exception as e:
                db.rollback()
                summary.failed += 1
                logger.error(f"❌ Customer {customer_id} failed during daily cycle: {e}")
                continue

            if result is None:
                continue
            if result.status == "sent":
                summary.sent += 1
            elif result.status == "failed":
                summary.failed += 1
    finally:
        if owns_session:
            db.close()

    logger.info(f"🏁 Daily cycle finished: processed={summary.processed} sent={summary.sent} failed={summary.failed}")
    return summary


# ---------------------------------------------------------
# MANUAL SEND (dashboard "send review now")
# ---------------------------------------------------------
def send_review_now(db: Session, tenant_id: int, customer_id: int, mailer=None, now: datetime = None) -> DispatchResult:
    """
    Review email to one customer, ignoring the delay and the global toggle.
    Still at most once per customer: returns a `duplicate` result when already sent.
    """
    now = now or datetime.utcnow()
    customer = db.query(Customer).filter(
        Customer.id == customer_id, Customer.tenant_id == tenant_id
    ).first()
    if not customer:
        raise NotFoundError("Customer not found")

    if EligibilityEngine(db).review_already_sent(customer.id):
        return DispatchResult(customer_id=customer.id, status="duplicate", email_type="review")

    plan = SendPlan(
        customer_id=customer.id,
        tenant_id=tenant_id,
        email_type="review",
        days_since_visit=days_between(customer.last_visit_date, now),
    )
    template, _ = resolve_content(db, plan)
    dispatcher = Dispatcher(db, mailer or EmailService(db))
    return dispatcher.dispatch(customer, customer.tenant, plan, template, now=now)
