import re
import logging
import unicodedata
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import DuplicateServiceTagError, NotFoundError, ValidationError
from app.models.customer import Customer
from app.models.email_template import EmailTemplate
from app.models.retention_program import RetentionProgram, ProgramStep
from app.models.tenant import Tenant
from app.schemas.program import ProgramCreate, ProgramUpdate, StepCreate, StepUpdate, CustomerProgramStatus
from app.workers.campaign.eligibility import days_between

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_NOT_TAG_CHAR = re.compile(r"[^a-z0-9_]")


def normalize_service_tag(raw: str) -> str:
    """
    "Corte de Cabélo " -> "corte_de_cabelo".
    Output always matches ^[a-z0-9_]*$ and normalizing twice changes nothing.
    """
    if not raw:
        return ""
    # Decompose first so accents become separate combining marks, then drop them
    ascii_only = unicodedata.normalize("NFKD", raw).encode("ascii", "ignore").decode("ascii")
    tag = _WHITESPACE.sub("_", ascii_only.lower().strip())
    return _NOT_TAG_CHAR.sub("", tag)


class ProgramService:
    def __init__(self, db: Session):
        self.db = db

    # ---------------------------------------------------------
    # 1. PROGRAMS
    # ---------------------------------------------------------
    def list_programs(self, tenant_id: int) -> List[RetentionProgram]:
        # steps come back sorted by step_order (relationship order_by)
        return (
            self.db.query(RetentionProgram)
            .options(selectinload(RetentionProgram.steps).selectinload(ProgramStep.template))
            .filter(RetentionProgram.tenant_id == tenant_id)
            .order_by(RetentionProgram.created_at.asc(), RetentionProgram.id.asc())
            .all()
        )

    def get_program(self, tenant_id: int, program_id: int) -> RetentionProgram:
        program = self.db.query(RetentionProgram).filter(
            RetentionProgram.id == program_id,
            RetentionProgram.tenant_id == tenant_id,
        ).first()
        if not program:
            raise NotFoundError("Program not found")
        return program

    def create_program(self, tenant_id: int, data: ProgramCreate) -> RetentionProgram:
        if not self.db.get(Tenant, tenant_id):
            raise NotFoundError("Tenant not found")

        tag = self._valid_tag(data.service_tag)
        program = RetentionProgram(
            tenant_id=tenant_id,
            display_name=data.display_name,
            service_tag=tag,
            enabled=data.enabled,
        )
        self.db.add(program)
        self._commit_or_translate(tag)
        self.db.refresh(program)
        logger.info(f"📋 Program '{tag}' created for tenant {tenant_id}")
        return program

    def update_program(self, tenant_id: int, program_id: int, data: ProgramUpdate) -> RetentionProgram:
        program = self.get_program(tenant_id, program_id)

        updates = data.model_dump(exclude_unset=True)
        if updates.get("display_name"):
            program.display_name = updates["display_name"]
        if updates.get("service_tag") is not None:
            program.service_tag = self._valid_tag(updates["service_tag"])
        if updates.get("enabled") is not None:
            # Soft switch: logs that reference the program stay intact
            program.enabled = updates["enabled"]

        self._commit_or_translate(program.service_tag)
        self.db.refresh(program)
        return program

    def delete_program(self, tenant_id: int, program_id: int):
        program = self.get_program(tenant_id, program_id)
        self.db.query(EmailTemplate).filter(EmailTemplate.program_id == program.id).delete(
            synchronize_session=False
        )
        self.db.delete(program)
        self.db.commit()

    def _valid_tag(self, raw: str) -> str:
        tag = normalize_service_tag(raw)
        if not tag:
            raise ValidationError("Service tag must contain at least one letter or digit")
        return tag

    def _commit_or_translate(self, tag: str):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            message = str(e.orig)
            if "uq_retention_programs_tenant_tag" in message or "retention_programs.service_tag" in message:
                raise DuplicateServiceTagError(tag) from e
            raise

    # ---------------------------------------------------------
    # 2. STEPS
    # ---------------------------------------------------------
    def get_step(self, tenant_id: int, step_id: int) -> ProgramStep:
        step = (
            self.db.query(ProgramStep)
            .join(RetentionProgram, ProgramStep.program_id == RetentionProgram.id)
            .filter(ProgramStep.id == step_id, RetentionProgram.tenant_id == tenant_id)
            .first()
        )
        if not step:
            raise NotFoundError("Step not found")
        return step

    def create_step(self, tenant_id: int, program_id: int, data: StepCreate) -> ProgramStep:
        program = self.get_program(tenant_id, program_id)

        # 1. The step's own template
        template = EmailTemplate(
            tenant_id=tenant_id,
            type="retention",
            is_program_template=True,
            program_id=program.id,
            **data.template.model_dump(),
        )
        self.db.add(template)
        self.db.flush()

        # 2. The step
        step = ProgramStep(
            program_id=program.id,
            step_order=data.step_order,
            offset_days=data.offset_days,
            cooldown_days=data.cooldown_days,
            template_id=template.id,
            enabled=True,
        )
        self.db.add(step)
        self.db.commit()
        self.db.refresh(step)
        return step

    def update_step(self, tenant_id: int, step_id: int, data: StepUpdate) -> ProgramStep:
        step = self.get_step(tenant_id, step_id)

        updates = data.model_dump(exclude_unset=True, exclude={"template"})
        for key, value in updates.items():
            if value is not None:
                setattr(step, key, value)

        if data.template is not None:
            if step.template is None:
                step.template = EmailTemplate(
                    tenant_id=tenant_id,
                    type="retention",
                    is_program_template=True,
                    program_id=step.program_id,
                )
            for key, value in data.template.model_dump().items():
                setattr(step.template, key, value)

        self.db.commit()
        self.db.refresh(step)
        return step

    def delete_step(self, tenant_id: int, step_id: int):
        step = self.get_step(tenant_id, step_id)
        template = step.template
        self.db.delete(step)
        if template is not None:
            self.db.delete(template)
        self.db.commit()

    # ---------------------------------------------------------
    # 3. CUSTOMER-FACING HELPERS
    # ---------------------------------------------------------
    def find_enabled_program(self, tenant_id: int, service_tag: str) -> Optional[RetentionProgram]:
        if not service_tag:
            return None
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

    def get_customer_program_status(self, tenant_id: int, customer_id: int, now: datetime = None) -> CustomerProgramStatus:
        customer = self.db.query(Customer).filter(
            Customer.id == customer_id, Customer.tenant_id == tenant_id
        ).first()
        if not customer:
            raise NotFoundError("Customer not found")

        program = self.find_enabled_program(tenant_id, customer.service_tag)
        if not program:
            return CustomerProgramStatus(has_program=False)

        days_since_visit = days_between(customer.last_visit_date, now or datetime.utcnow())
        steps = program.schedulable_steps()
        next_step = next((s for s in steps if s.offset_days > days_since_visit), None)

        return CustomerProgramStatus(
            has_program=True,
            program_name=program.display_name,
            next_email_days=(next_step.offset_days - days_since_visit) if next_step else None,
            days_since_visit=days_since_visit,
            total_steps=len(steps),
        )

    def service_tag_suggestions(self, tenant_id: int) -> List[str]:
        rows = (
            self.db.query(Customer.service_tag)
            .filter(Customer.tenant_id == tenant_id, Customer.service_tag != None)  # noqa: E711
            .distinct()
            .order_by(Customer.service_tag)
            .all()
        )
        return [r.service_tag for r in rows if r.service_tag]
