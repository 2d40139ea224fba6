from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.program_service import ProgramService
from app.schemas.program import (
    ProgramCreate,
    ProgramUpdate,
    ProgramResponse,
    StepCreate,
    StepUpdate,
    StepResponse,
)

router = APIRouter(prefix="/api/tenants/{tenant_id}/programs", tags=["Retention Programs"])


# =========================================================
# 1. PROGRAMS
# =========================================================

@router.get("", response_model=List[ProgramResponse])
def list_programs(tenant_id: int, db: Session = Depends(get_db)):
    return ProgramService(db).list_programs(tenant_id)


@router.post("", response_model=ProgramResponse, status_code=201)
def create_program(tenant_id: int, payload: ProgramCreate, db: Session = Depends(get_db)):
    return ProgramService(db).create_program(tenant_id, payload)


@router.patch("/{program_id}", response_model=ProgramResponse)
def update_program(tenant_id: int, program_id: int, payload: ProgramUpdate, db: Session = Depends(get_db)):
    return ProgramService(db).update_program(tenant_id, program_id, payload)


@router.delete("/{program_id}")
def delete_program(tenant_id: int, program_id: int, db: Session = Depends(get_db)):
    ProgramService(db).delete_program(tenant_id, program_id)
    return {"message": "Program deleted successfully"}


# =========================================================
# 2. STEPS
# =========================================================

@router.post("/{program_id}/steps", response_model=StepResponse, status_code=201)
def create_step(tenant_id: int, program_id: int, payload: StepCreate, db: Session = Depends(get_db)):
    return ProgramService(db).create_step(tenant_id, program_id, payload)


@router.patch("/steps/{step_id}", response_model=StepResponse)
def update_step(tenant_id: int, step_id: int, payload: StepUpdate, db: Session = Depends(get_db)):
    return ProgramService(db).update_step(tenant_id, step_id, payload)


@router.delete("/steps/{step_id}")
def delete_step(tenant_id: int, step_id: int, db: Session = Depends(get_db)):
    ProgramService(db).delete_step(tenant_id, step_id)
    return {"message": "Step deleted successfully"}
