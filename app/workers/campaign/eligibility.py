"""
Decides, for one customer at one instant, which email (if any) is due.

Every decision re-reads the email log; nothing is cached between customers
or between cycles, so a re-run of the same cycle sees what the previous run
already sent.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional, Set

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.models.customer import Customer
from app.models.email_log import EmailLog
from app.models.retention_program import RetentionProgram, ProgramStep
from app.models.tenant import Tenant
from app.schemas.cycle import SendPlan

logger = logging.getLogger(__name__)


def days_between(earlier: datetime, now: datetime) -> int:
    """Whole calendar days from `earlier` to `now` (negative if `earlier` is in the future)."""
    return (now.date() - earlier.date()).days


def review_delay(tenant: Tenant) -> int:
    return tenant.default_review_delay or settings.DEFAULT_REVIEW_DELAY_DAYS


def is_review_due(customer: Customer, tenant: Tenant, days_since_visit: int) -> bool:
    """Global review flow: untagged customers, exactly `default_review_delay` days after the visit."""
    if customer.service_tag:
        return False
    if not tenant.enable_global_review_email:
        return False
    if customer.status == "reviewed":
        return False
    return days_since_visit == review_delay(tenant)


def select_program_step(
    steps: Iterable[ProgramStep],
    sent_step_ids: Set[int],
    last_program_send_at: Optional[datetime],
    days_since_visit: int,
    now: datetime,
) -> Optional[ProgramStep]:
    """
    First step (in offset order) that has not been sent yet, provided it is
    due and its cooldown since the last send in the program has elapsed.
    A blocked first candidate blocks the cycle; later steps are not tried.
    """
    for step in steps:
        if step.id in sent_step_ids:
            continue
        if days_since_visit < step.offset_days:
            return None
        if last_program_send_at is not None:
            if days_between(last_program_send_at, now) < (step.cooldown_days or 0):
                return None
        return step
    return None


class EligibilityEngine:
    def __init__(self, db: Session):
        self.db = db

    # ---------------------------------------------------------
    # LOG LOOKUPS (authoritative, uncached)
    # ---------------------------------------------------------
    def review_already_sent(self, customer_id: int) -> bool:
        return self.db.query(EmailLog.id).filter(
            EmailLog.customer_id == customer_id,
            EmailLog.email_type == "review",
            EmailLog.status == "sent",
        ).first() is not None

    def sent_step_ids(self, customer_id: int) -> Set[int]:
        rows = self.db.query(EmailLog.step_id).filter(
            EmailLog.customer_id == customer_id,
            EmailLog.status == "sent",
            EmailLog.step_id != None,  # noqa: E711
        ).all()
        return {r.step_id for r in rows}

    def last_program_send_at(self, customer_id: int, program_id: int) -> Optional[datetime]:
        return self.db.query(func.max(EmailLog.created_at)).filter(
            EmailLog.customer_id == customer_id,
            EmailLog.program_id == program_id,
            EmailLog.status == "sent",
        ).scalar()

    def enabled_program(self, tenant_id: int, service_tag: str) -> Optional[RetentionProgram]:
        return (
            self.db.query(RetentionProgram)
            .options(selectinload(RetentionProgram.steps))
            .filter(
                RetentionProgram.tenant_id == tenant_id,
                RetentionProgram.service_tag == service_tag,
                RetentionProgram.enabled == True,  # noqa: E712
            )
            .first()
        )

    # ---------------------------------------------------------
    # DECISION
    # ---------------------------------------------------------
    def plan_for(self, customer: Customer, tenant: Tenant, now: datetime) -> Optional[SendPlan]:
        days_since_visit = days_between(customer.last_visit_date, now)

        # A. Tagged customers follow their program (if one is enabled)
        if customer.service_tag:
            program = self.enabled_program(tenant.id, customer.service_tag)
            if not program:
                return None

            steps = program.schedulable_steps()
            if not steps:
                return None

            step = select_program_step(
                steps,
                self.sent_step_ids(customer.id),
                self.last_program_send_at(customer.id, program.id),
                days_since_visit,
                now,
            )
            if not step:
                return None

            return SendPlan(
                customer_id=customer.id,
                tenant_id=tenant.id,
                email_type="retention",
                days_since_visit=days_since_visit,
                program_id=program.id,
                step_id=step.id,
            )

        # B. Everyone else gets the one-off review request
        if is_review_due(customer, tenant, days_since_visit) and not self.review_already_sent(customer.id):
            return SendPlan(
                customer_id=customer.id,
                tenant_id=tenant.id,
                email_type="review",
                days_since_visit=days_since_visit,
            )

        return None
