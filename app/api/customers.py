from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import get_mailer
from app.core.database import get_db
from app.services.customer_service import CustomerService
from app.services.program_service import ProgramService
from app.workers.campaign.daily_worker import send_review_now
from app.schemas.cycle import DispatchResult
from app.schemas.program import CustomerProgramStatus
from app.schemas.customer import (
    CustomerCreate,
    CustomerUpdate,
    CustomerResponse,
    CustomerListResponse,
    CustomerImportRequest,
    CustomerImportResult,
)

router = APIRouter(prefix="/api/tenants/{tenant_id}/customers", tags=["Customers"])


# =========================================================
# 1. LIST / CRUD
# =========================================================

@router.get("", response_model=CustomerListResponse)
def list_customers(tenant_id: int, page: int = 1, limit: int = 50, status: Optional[str] = None,
                   db: Session = Depends(get_db)):
    return CustomerService(db).list_customers(tenant_id, page=page, limit=limit, status=status)


@router.post("", response_model=CustomerResponse, status_code=201)
def create_customer(tenant_id: int, payload: CustomerCreate, db: Session = Depends(get_db)):
    return CustomerService(db).create_customer(tenant_id, payload)


@router.get("/service-tags", response_model=List[str])
def service_tag_suggestions(tenant_id: int, db: Session = Depends(get_db)):
    return ProgramService(db).service_tag_suggestions(tenant_id)


# --- CSV UPLOAD (rows already mapped by the dashboard) ---
@router.post("/upload", response_model=CustomerImportResult)
def upload_customers(tenant_id: int, payload: CustomerImportRequest, db: Session = Depends(get_db)):
    if not payload.rows:
        raise HTTPException(status_code=400, detail="No data provided")
    count = CustomerService(db).upsert_rows(tenant_id, payload.rows)
    return {"success": True, "count": count}


@router.patch("/{customer_id}", response_model=CustomerResponse)
def update_customer(tenant_id: int, customer_id: int, payload: CustomerUpdate, db: Session = Depends(get_db)):
    return CustomerService(db).update_customer(tenant_id, customer_id, payload)


@router.delete("/{customer_id}")
def delete_customer(tenant_id: int, customer_id: int, db: Session = Depends(get_db)):
    CustomerService(db).delete_customer(tenant_id, customer_id)
    return {"message": "Customer deleted successfully"}


# =========================================================
# 2. AUTOMATION VIEW
# =========================================================

@router.get("/{customer_id}/program-status", response_model=CustomerProgramStatus)
def customer_program_status(tenant_id: int, customer_id: int, db: Session = Depends(get_db)):
    return ProgramService(db).get_customer_program_status(tenant_id, customer_id)


@router.post("/{customer_id}/send-review", response_model=DispatchResult)
def send_review(tenant_id: int, customer_id: int, db: Session = Depends(get_db), mailer=Depends(get_mailer)):
    result = send_review_now(db, tenant_id, customer_id, mailer=mailer)

    if result.status == "duplicate":
        raise HTTPException(status_code=409, detail="Review email already sent to this customer")
    if result.status == "failed":
        raise HTTPException(status_code=502, detail=f"Failed to send email: {result.error}")
    return result
