from typing import Dict
from sqlalchemy.orm import Session
from datetime import datetime

from app.core.exceptions import TemplateMissingError
from app.models.email_template import EmailTemplate
from app.schemas.template import EmailContent, TemplateUpsert

# Built-in fallbacks when a tenant hasn't edited anything
DEFAULT_TEMPLATES: Dict[str, EmailContent] = {
    "review": EmailContent(
        subject="How was your visit?",
        heading="Hi {{name}}! 👋",
        body="Thanks for visiting us recently. We'd love to know how we did. It only takes a second!",
        button_text="⭐⭐⭐⭐⭐ Leave a Review",
        button_url="https://google.com",
    ),
    "retention": EmailContent(
        subject="We miss you!",
        heading="Hi {{name}},",
        body="It's been a while since we saw you. We'd love to see you again soon!",
        button_text="Book a Visit",
        button_url="https://google.com",
    ),
}

# Fields that accept {{placeholders}}; button text/url are never substituted
SUBSTITUTED_FIELDS = ("subject", "heading", "body")


def compile_template(template: EmailContent, variables: Dict[str, str]) -> EmailContent:
    """
    Replace every {{key}} in subject/heading/body with variables[key].
    Placeholders without a matching variable are left as they are.
    """
    compiled = {}
    for field in SUBSTITUTED_FIELDS:
        value = getattr(template, field) or ""
        for key, replacement in variables.items():
            value = value.replace(f"{{{{{key}}}}}", "" if replacement is None else str(replacement))
        compiled[field] = value
    return template.model_copy(update=compiled)


class TemplateService:
    def __init__(self, db: Session):
        self.db = db

    def _global_query(self, tenant_id: int, template_type: str):
        return self.db.query(EmailTemplate).filter(
            EmailTemplate.tenant_id == tenant_id,
            EmailTemplate.type == template_type,
            EmailTemplate.is_program_template == False,  # noqa: E712
        )

    def get_stored(self, tenant_id: int, template_type: str) -> EmailTemplate:
        """Strict lookup. Raises TemplateMissingError when the tenant has no row."""
        template = self._global_query(tenant_id, template_type).first()
        if not template:
            raise TemplateMissingError(f"No {template_type} template for tenant {tenant_id}")
        return template

    def resolve(self, tenant_id: int, template_type: str) -> EmailContent:
        """Tenant's template for `template_type`, or the built-in default. Never fails."""
        try:
            return EmailContent.model_validate(self.get_stored(tenant_id, template_type))
        except TemplateMissingError:
            return DEFAULT_TEMPLATES.get(template_type, DEFAULT_TEMPLATES["review"]).model_copy()

    def is_customised(self, tenant_id: int, template_type: str) -> bool:
        return self._global_query(tenant_id, template_type).first() is not None

    def upsert_template(self, tenant_id: int, template_type: str, data: TemplateUpsert) -> EmailTemplate:
        template = self._global_query(tenant_id, template_type).first()
        if not template:
            template = EmailTemplate(
                tenant_id=tenant_id,
                type=template_type,
                is_program_template=False,
                created_at=datetime.utcnow(),
            )
            self.db.add(template)

        for key, value in data.model_dump().items():
            setattr(template, key, value)

        self.db.commit()
        self.db.refresh(template)
        return template

    def preview(self, tenant_id: int, template_type: str, template: EmailContent = None,
                variables: Dict[str, str] = None) -> EmailContent:
        source = template or self.resolve(tenant_id, template_type)
        return compile_template(source, variables or {"name": "Alex", "business_name": "Your Business"})
