from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime


class TenantCreate(BaseModel):
    business_name: str = Field(min_length=1)
    google_review_link: Optional[str] = None
    google_maps_link: Optional[str] = None


# Schema for UPDATING settings (all fields optional)
class TenantSettingsUpdate(BaseModel):
    business_name: Optional[str] = None
    google_review_link: Optional[str] = None
    google_maps_link: Optional[str] = None
    default_review_delay: Optional[int] = Field(None, ge=1)
    enable_global_review_email: Optional[bool] = None


class TenantSettingsResponse(BaseModel):
    id: int
    business_name: Optional[str] = None
    google_review_link: Optional[str] = None
    google_maps_link: Optional[str] = None
    default_review_delay: Optional[int] = None
    enable_global_review_email: Optional[bool] = None
    email_provider: Optional[str] = None
    google_email_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Tokens arrive here after the OAuth callback has exchanged the code
class GoogleConnectRequest(BaseModel):
    email_address: EmailStr
    refresh_token: str = Field(min_length=1)
    access_token: Optional[str] = None
    expires_at: Optional[datetime] = None


class ApiKeyCreate(BaseModel):
    label: Optional[str] = None


class ApiKeyCreated(BaseModel):
    id: int
    label: Optional[str] = None
    api_key: str  # shown once; only the hash is stored
