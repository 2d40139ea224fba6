import logging
import secrets
from typing import Tuple

from sqlalchemy.orm import Session

from app.core.crypto import encrypt
from app.core.exceptions import NotFoundError
from app.models.api_key import ApiKey
from app.models.tenant import Tenant
from app.schemas.tenant import TenantCreate, TenantSettingsUpdate, GoogleConnectRequest
from app.services.customer_service import hash_api_key

logger = logging.getLogger(__name__)


def generate_api_key() -> Tuple[str, str]:
    """Raw key (shown once) and the sha256 hex stored in its place."""
    api_key = f"ak_{secrets.token_urlsafe(32)}"
    return api_key, hash_api_key(api_key)


class TenantService:
    def __init__(self, db: Session):
        self.db = db

    def get_tenant(self, tenant_id: int) -> Tenant:
        tenant = self.db.get(Tenant, tenant_id)
        if not tenant:
            raise NotFoundError("Tenant not found")
        return tenant

    def create_tenant(self, data: TenantCreate) -> Tenant:
        tenant = Tenant(
            business_name=data.business_name,
            google_review_link=data.google_review_link,
            google_maps_link=data.google_maps_link,
            default_review_delay=1,
            enable_global_review_email=True,
            email_provider="platform",
        )
        self.db.add(tenant)
        self.db.commit()
        self.db.refresh(tenant)
        logger.info(f"🏪 Tenant {tenant.id} created: {tenant.business_name}")
        return tenant

    def update_settings(self, tenant_id: int, data: TenantSettingsUpdate) -> Tenant:
        tenant = self.get_tenant(tenant_id)

        # Update only the fields the client sent
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(tenant, key, value)

        self.db.commit()
        self.db.refresh(tenant)
        return tenant

    # ---------------------------------------------------------
    # SENDING IDENTITY
    # ---------------------------------------------------------
    def connect_google(self, tenant_id: int, data: GoogleConnectRequest) -> Tenant:
        tenant = self.get_tenant(tenant_id)

        tenant.email_provider = "google"
        tenant.google_email_address = data.email_address
        tenant.google_refresh_token = encrypt(data.refresh_token)
        tenant.google_access_token = encrypt(data.access_token) if data.access_token else None
        tenant.google_token_expiry = data.expires_at

        self.db.commit()
        self.db.refresh(tenant)
        logger.info(f"📧 Tenant {tenant_id} connected Gmail account")
        return tenant

    def disconnect_google(self, tenant_id: int) -> Tenant:
        tenant = self.get_tenant(tenant_id)

        tenant.email_provider = "platform"
        tenant.google_email_address = None
        tenant.google_access_token = None
        tenant.google_refresh_token = None
        tenant.google_token_expiry = None

        self.db.commit()
        self.db.refresh(tenant)
        logger.info(f"🔌 Tenant {tenant_id} disconnected Gmail account")
        return tenant

    # ---------------------------------------------------------
    # API KEYS (spreadsheet connector)
    # ---------------------------------------------------------
    def create_api_key(self, tenant_id: int, label: str = None) -> Tuple[ApiKey, str]:
        self.get_tenant(tenant_id)

        raw_key, key_hash = generate_api_key()
        record = ApiKey(tenant_id=tenant_id, label=label, key_hash=key_hash)
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record, raw_key
