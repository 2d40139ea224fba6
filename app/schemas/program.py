from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


# --- 1. PROGRAMS ---
class ProgramCreate(BaseModel):
    display_name: str = Field(min_length=1)
    service_tag: str
    enabled: bool = True


class ProgramUpdate(BaseModel):
    display_name: Optional[str] = None
    service_tag: Optional[str] = None
    enabled: Optional[bool] = None


# --- 2. STEPS ---
class StepTemplate(BaseModel):
    subject: str
    heading: str = ""
    body: str = ""
    button_text: str
    button_url: Optional[str] = None  # becomes the click destination when set


class StepCreate(BaseModel):
    offset_days: int = Field(ge=0)
    step_order: int = 1
    cooldown_days: int = Field(0, ge=0)
    template: StepTemplate


class StepUpdate(BaseModel):
    offset_days: Optional[int] = Field(None, ge=0)
    step_order: Optional[int] = None
    cooldown_days: Optional[int] = Field(None, ge=0)
    enabled: Optional[bool] = None
    template: Optional[StepTemplate] = None


class StepTemplateResponse(StepTemplate):
    id: int

    class Config:
        from_attributes = True


class StepResponse(BaseModel):
    id: int
    program_id: int
    step_order: Optional[int] = None
    offset_days: int
    cooldown_days: int = 0
    enabled: bool
    template_id: Optional[int] = None
    template: Optional[StepTemplateResponse] = None

    class Config:
        from_attributes = True


class ProgramResponse(BaseModel):
    id: int
    tenant_id: int
    service_tag: str
    display_name: Optional[str] = None
    enabled: bool
    created_at: Optional[datetime] = None
    steps: List[StepResponse] = []

    class Config:
        from_attributes = True


# --- 3. CUSTOMER VIEW ---
class CustomerProgramStatus(BaseModel):
    has_program: bool
    program_name: Optional[str] = None
    next_email_days: Optional[int] = None
    days_since_visit: Optional[int] = None
    total_steps: int = 0
