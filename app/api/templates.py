from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.template_service import TemplateService
from app.schemas.template import (
    EmailContent,
    TemplateType,
    TemplateUpsert,
    TemplateResponse,
    TemplatePreviewRequest,
)

router = APIRouter(prefix="/api/tenants/{tenant_id}/templates", tags=["Email Templates"])


# --- READ (stored or built-in default) ---
@router.get("/{template_type}", response_model=TemplateResponse)
def get_template(tenant_id: int, template_type: TemplateType, db: Session = Depends(get_db)):
    service = TemplateService(db)
    content = service.resolve(tenant_id, template_type)
    return TemplateResponse(
        type=template_type,
        is_default=not service.is_customised(tenant_id, template_type),
        **content.model_dump(),
    )


# --- SAVE ---
@router.put("/{template_type}", response_model=TemplateResponse)
def save_template(tenant_id: int, template_type: TemplateType, payload: TemplateUpsert,
                  db: Session = Depends(get_db)):
    service = TemplateService(db)
    saved = service.upsert_template(tenant_id, template_type, payload)
    return TemplateResponse(
        type=template_type,
        is_default=False,
        **EmailContent.model_validate(saved).model_dump(),
    )


# --- PREVIEW (sample variables) ---
@router.post("/{template_type}/preview", response_model=EmailContent)
def preview_template(tenant_id: int, template_type: TemplateType, payload: TemplatePreviewRequest,
                     db: Session = Depends(get_db)):
    service = TemplateService(db)
    return service.preview(tenant_id, template_type, payload.template, payload.variables or None)
