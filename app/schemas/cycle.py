from pydantic import BaseModel
from typing import Optional, Literal


# One (customer, email) decision produced by the eligibility engine
class SendPlan(BaseModel):
    customer_id: int
    tenant_id: int
    email_type: Literal["review", "retention"]
    days_since_visit: int
    program_id: Optional[int] = None
    step_id: Optional[int] = None


class DispatchResult(BaseModel):
    customer_id: int
    status: Literal["sent", "failed", "duplicate"]
    email_type: str
    step_id: Optional[int] = None
    error: Optional[str] = None


class CycleSummary(BaseModel):
    processed: int = 0
    sent: int = 0
    failed: int = 0


class SnapshotSummary(BaseModel):
    processed: int = 0
    successes: int = 0
    errors: int = 0
