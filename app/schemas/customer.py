from pydantic import BaseModel, EmailStr, Field, AliasChoices, field_validator
from typing import List, Optional
from datetime import datetime, date, timezone


def _naive_utc(value):
    """Accept 'YYYY-MM-DD', ISO datetimes and aware datetimes; store naive UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, str) and len(value.strip()) == 10:
        value = date.fromisoformat(value.strip())
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class CustomerCreate(BaseModel):
    name: Optional[str] = None
    email: EmailStr
    last_visit_date: Optional[datetime] = None  # defaults to now
    service_tag: Optional[str] = None

    @field_validator("last_visit_date", mode="before")
    @classmethod
    def coerce_visit_date(cls, value):
        return _naive_utc(value)


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    last_visit_date: Optional[datetime] = None
    service_tag: Optional[str] = None

    @field_validator("last_visit_date", mode="before")
    @classmethod
    def coerce_visit_date(cls, value):
        return _naive_utc(value)


class CustomerResponse(BaseModel):
    id: int
    tenant_id: int
    name: Optional[str] = None
    email: str
    last_visit_date: datetime
    service_tag: Optional[str] = None
    status: str
    last_contacted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerListResponse(BaseModel):
    data: List[CustomerResponse]
    total: int
    page: int
    limit: int


# --- BULK IMPORT (CSV upload + spreadsheet connector) ---
# Spreadsheet exports send capitalised headers, the CSV mapper sends lowercase
class CustomerImportRow(BaseModel):
    name: Optional[str] = Field(None, validation_alias=AliasChoices("name", "Name"))
    email: EmailStr = Field(validation_alias=AliasChoices("email", "Email"))
    last_visit_date: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("last_visit_date", "date", "Date")
    )
    service_tag: Optional[str] = Field(
        None, validation_alias=AliasChoices("service_tag", "service", "Service")
    )

    @field_validator("last_visit_date", mode="before")
    @classmethod
    def coerce_visit_date(cls, value):
        return _naive_utc(value)


class CustomerImportRequest(BaseModel):
    rows: List[CustomerImportRow]


class CustomerImportResult(BaseModel):
    success: bool = True
    count: int
