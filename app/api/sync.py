from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.services.customer_service import CustomerService
from app.schemas.customer import CustomerImportRequest, CustomerImportResult

router = APIRouter(prefix="/api/sync", tags=["Spreadsheet Sync"])


@router.post("/excel", response_model=CustomerImportResult)
def sync_excel(payload: CustomerImportRequest, x_api_key: Optional[str] = Header(None),
               db: Session = Depends(get_db)):
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing API Key")

    service = CustomerService(db)
    try:
        tenant_id = service.tenant_for_api_key(x_api_key)
    except NotFoundError:
        raise HTTPException(status_code=403, detail="Invalid API Key")

    if not payload.rows:
        return {"success": True, "count": 0}

    return {"success": True, "count": service.upsert_rows(tenant_id, payload.rows)}
