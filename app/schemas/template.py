from pydantic import BaseModel, Field, field_validator
from typing import Optional, Dict, Literal

TemplateType = Literal["review", "retention"]


# The renderable part of a template (stored row or built-in default)
class EmailContent(BaseModel):
    subject: str = ""
    heading: str = ""
    body: str = ""
    button_text: str = ""
    button_url: Optional[str] = None

    @field_validator("subject", "heading", "body", "button_text", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return "" if value is None else value

    class Config:
        from_attributes = True


# Schema for saving a tenant's global template
class TemplateUpsert(BaseModel):
    subject: str = Field(min_length=1)
    heading: str = ""
    body: str = ""
    button_text: str = Field(min_length=1)
    button_url: Optional[str] = None


class TemplateResponse(EmailContent):
    type: TemplateType
    is_default: bool = False


class TemplatePreviewRequest(BaseModel):
    template: Optional[EmailContent] = None  # None = preview the stored/default one
    variables: Dict[str, str] = {}
