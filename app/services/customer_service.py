import hashlib
import logging
from datetime import datetime
from typing import List

from sqlalchemy import desc
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, ValidationError
from app.models.api_key import ApiKey
from app.models.customer import Customer
from app.models.tenant import Tenant
from app.schemas.customer import CustomerCreate, CustomerUpdate, CustomerImportRow
from app.services.program_service import normalize_service_tag

logger = logging.getLogger(__name__)


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def _clean_tag(raw):
    if raw is None:
        return None
    return normalize_service_tag(raw) or None


class CustomerService:
    def __init__(self, db: Session):
        self.db = db

    def _require_tenant(self, tenant_id: int) -> Tenant:
        tenant = self.db.get(Tenant, tenant_id)
        if not tenant:
            raise NotFoundError("Tenant not found")
        return tenant

    def get_customer(self, tenant_id: int, customer_id: int) -> Customer:
        customer = self.db.query(Customer).filter(
            Customer.id == customer_id, Customer.tenant_id == tenant_id
        ).first()
        if not customer:
            raise NotFoundError("Customer not found")
        return customer

    def list_customers(self, tenant_id: int, page: int = 1, limit: int = 50, status: str = None):
        query = self.db.query(Customer).filter(Customer.tenant_id == tenant_id)
        if status:
            query = query.filter(Customer.status == status)

        total = query.count()
        results = query.order_by(desc(Customer.created_at), desc(Customer.id))\
                       .offset((page - 1) * limit)\
                       .limit(limit).all()

        return {"data": results, "total": total, "page": page, "limit": limit}

    def create_customer(self, tenant_id: int, data: CustomerCreate) -> Customer:
        self._require_tenant(tenant_id)

        email = data.email.lower()
        exists = self.db.query(Customer.id).filter(
            Customer.tenant_id == tenant_id, Customer.email == email
        ).first()
        if exists:
            raise ValidationError("A customer with this email already exists")

        customer = Customer(
            tenant_id=tenant_id,
            name=data.name,
            email=email,
            last_visit_date=data.last_visit_date or datetime.utcnow(),
            service_tag=_clean_tag(data.service_tag),
            status="pending",
        )
        self.db.add(customer)
        self.db.commit()
        self.db.refresh(customer)
        return customer

    def update_customer(self, tenant_id: int, customer_id: int, data: CustomerUpdate) -> Customer:
        customer = self.get_customer(tenant_id, customer_id)

        updates = data.model_dump(exclude_unset=True)
        if updates.get("name") is not None:
            customer.name = updates["name"]
        if updates.get("email"):
            email = updates["email"].lower()
            taken = self.db.query(Customer.id).filter(
                Customer.tenant_id == tenant_id, Customer.email == email, Customer.id != customer.id
            ).first()
            if taken:
                raise ValidationError("A customer with this email already exists")
            customer.email = email
        if updates.get("last_visit_date"):
            customer.last_visit_date = updates["last_visit_date"]
        if "service_tag" in updates:
            # explicit null / "" clears the tag
            customer.service_tag = _clean_tag(updates["service_tag"])

        self.db.commit()
        self.db.refresh(customer)
        return customer

    def delete_customer(self, tenant_id: int, customer_id: int):
        customer = self.get_customer(tenant_id, customer_id)
        self.db.delete(customer)
        self.db.commit()

    # ---------------------------------------------------------
    # BULK UPSERT (CSV upload + spreadsheet connector)
    # ---------------------------------------------------------
    def upsert_rows(self, tenant_id: int, rows: List[CustomerImportRow]) -> int:
        """Insert-or-update keyed on (tenant_id, email). Returns the number of rows applied."""
        self._require_tenant(tenant_id)
        now = datetime.utcnow()

        seen = {}
        for row in rows:
            email = row.email.lower()
            customer = seen.get(email) or self.db.query(Customer).filter(
                Customer.tenant_id == tenant_id, Customer.email == email
            ).first()

            if customer is None:
                customer = Customer(tenant_id=tenant_id, email=email, status="pending")
                self.db.add(customer)

            if row.name is not None:
                customer.name = row.name
            customer.last_visit_date = row.last_visit_date or now
            if row.service_tag is not None:
                customer.service_tag = _clean_tag(row.service_tag)

            seen[email] = customer

        self.db.commit()
        logger.info(f"📥 Upserted {len(rows)} customers for tenant {tenant_id}")
        return len(rows)

    def tenant_for_api_key(self, raw_key: str) -> int:
        record = self.db.query(ApiKey).filter(ApiKey.key_hash == hash_api_key(raw_key)).first()
        if not record:
            raise NotFoundError("Invalid API Key")
        record.last_used_at = datetime.utcnow()
        self.db.commit()
        return record.tenant_id
