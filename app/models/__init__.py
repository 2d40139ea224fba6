from .tenant import Tenant
from .customer import Customer
from .email_template import EmailTemplate
from .retention_program import RetentionProgram, ProgramStep
from .email_log import EmailLog
from .review_snapshot import ReviewSnapshot
from .api_key import ApiKey

__all__ = [
    "Tenant",
    "Customer",
    "EmailTemplate",
    "RetentionProgram",
    "ProgramStep",
    "EmailLog",
    "ReviewSnapshot",
    "ApiKey",
]
