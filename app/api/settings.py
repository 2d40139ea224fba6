from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.tenant_service import TenantService
from app.schemas.tenant import (
    TenantCreate,
    TenantSettingsUpdate,
    TenantSettingsResponse,
    GoogleConnectRequest,
    ApiKeyCreate,
    ApiKeyCreated,
)

router = APIRouter(prefix="/api/tenants", tags=["Tenant Settings"])


@router.post("", response_model=TenantSettingsResponse, status_code=201)
def create_tenant(payload: TenantCreate, db: Session = Depends(get_db)):
    return TenantService(db).create_tenant(payload)


@router.get("/{tenant_id}/settings", response_model=TenantSettingsResponse)
def get_settings(tenant_id: int, db: Session = Depends(get_db)):
    return TenantService(db).get_tenant(tenant_id)


@router.patch("/{tenant_id}/settings", response_model=TenantSettingsResponse)
def update_settings(tenant_id: int, payload: TenantSettingsUpdate, db: Session = Depends(get_db)):
    return TenantService(db).update_settings(tenant_id, payload)


# --- SENDING IDENTITY ---
@router.post("/{tenant_id}/google/connect", response_model=TenantSettingsResponse)
def connect_google(tenant_id: int, payload: GoogleConnectRequest, db: Session = Depends(get_db)):
    return TenantService(db).connect_google(tenant_id, payload)


@router.post("/{tenant_id}/google/disconnect", response_model=TenantSettingsResponse)
def disconnect_google(tenant_id: int, db: Session = Depends(get_db)):
    return TenantService(db).disconnect_google(tenant_id)


# --- API KEYS ---
@router.post("/{tenant_id}/api-keys", response_model=ApiKeyCreated, status_code=201)
def create_api_key(tenant_id: int, payload: ApiKeyCreate, db: Session = Depends(get_db)):
    record, raw_key = TenantService(db).create_api_key(tenant_id, payload.label)
    return {"id": record.id, "label": record.label, "api_key": raw_key}
