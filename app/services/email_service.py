import base64
import json
import logging
from datetime import datetime, timedelta
from email.message import EmailMessage

import requests
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.crypto import decrypt, encrypt
from app.core.exceptions import MailerError, NotFoundError
from app.models.tenant import Tenant

logger = logging.getLogger(__name__)

# Error messages that mean the recipient address doesn't exist
RECIPIENT_NOT_FOUND_ERRORS = [
    "550",
    "user unknown",
    "does not exist",
    "no such user",
    "invalid address",
    "address not found",
    "recipient rejected",
    "mailbox unavailable",
]

# ZeptoMail success codes: EM_104 = "Email request received" (queued)
ZEPTO_SUCCESS_CODES = {"EM_104"}


def _looks_rejected(text: str) -> bool:
    text = text.lower()
    return any(err in text for err in RECIPIENT_NOT_FOUND_ERRORS)


def build_raw_message(to_email: str, from_address: str, subject: str, html: str) -> str:
    """RFC 822 HTML message, base64url-encoded the way Gmail's messages.send wants it."""
    message = EmailMessage()
    message["To"] = to_email
    message["From"] = from_address
    message["Subject"] = subject
    message.set_content(html, subtype="html")
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")


class EmailService:
    """
    Sends one email "as" a tenant.

    Tenants with a connected Google account send through Gmail; everyone
    else falls back to the platform ZeptoMail sender. Refreshed Google
    access tokens are written onto the tenant row but never committed here:
    the caller's transaction decides whether they persist.
    """

    def __init__(self, db: Session):
        self.db = db
        self.timeout = settings.MAILER_TIMEOUT_SECONDS
        self.api_url = settings.ZEPTO_API_URL
        self.api_key = settings.ZEPTO_API_KEY
        self.from_address = settings.ZEPTO_FROM_ADDRESS

    def send(self, tenant_id: int, to_email: str, subject: str, html: str) -> bool:
        tenant = self.db.get(Tenant, tenant_id)
        if not tenant:
            raise NotFoundError(f"Tenant {tenant_id} not found")

        if tenant.is_google_connected:
            return self._send_via_gmail(tenant, to_email, subject, html)

        if self.api_key and self.from_address:
            return self._send_via_zepto(tenant, to_email, subject, html)

        raise MailerError("Tenant has not connected an email account")

    # ---------------------------------------------------------
    # 1. GMAIL (tenant's own account)
    # ---------------------------------------------------------
    def _refresh_access_token(self, tenant: Tenant) -> str:
        refresh_token = decrypt(tenant.google_refresh_token)
        try:
            response = requests.post(
                settings.GOOGLE_TOKEN_URL,
                data={
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"🔌 Google token refresh failed for tenant {tenant.id}: {e}")
            raise MailerError(f"TOKEN_REFRESH_ERROR: {e}") from e

        if not response.ok:
            logger.error(f"❌ Google refused token refresh for tenant {tenant.id} [{response.status_code}]")
            raise MailerError(f"TOKEN_REFRESH_ERROR: {response.status_code} {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            raise MailerError(f"TOKEN_REFRESH_ERROR: unreadable response {response.text[:200]}") from e

        access_token = data.get("access_token")
        if not access_token:
            raise MailerError("TOKEN_REFRESH_ERROR: no access_token in response")

        tenant.google_access_token = encrypt(access_token)
        if data.get("expires_in"):
            tenant.google_token_expiry = datetime.utcnow() + timedelta(seconds=int(data["expires_in"]))
        return access_token

    def _send_via_gmail(self, tenant: Tenant, to_email: str, subject: str, html: str) -> bool:
        access_token = self._refresh_access_token(tenant)
        raw = build_raw_message(to_email, tenant.google_email_address, subject, html)

        try:
            response = requests.post(
                settings.GMAIL_SEND_URL,
                json={"raw": raw},
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"⏱️ Timeout while sending to {to_email}: {e}")
            raise MailerError(f"TIMEOUT_ERROR: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"🔌 Connection error while sending to {to_email}: {e}")
            raise MailerError(f"CONNECTION_ERROR: {e}") from e

        if response.ok:
            logger.info(f"✅ Gmail accepted message for {to_email} (tenant {tenant.id})")
            return True

        if _looks_rejected(response.text):
            logger.warning(f"📭 Recipient rejected by Gmail: {to_email}")
            raise MailerError(f"RECIPIENT_NOT_FOUND: {response.text}", recipient_rejected=True)

        logger.error(f"❌ Gmail error for {to_email}: [{response.status_code}] {response.text}")
        raise MailerError(f"GMAIL_ERROR: {response.status_code} {response.text}")

    # ---------------------------------------------------------
    # 2. ZEPTOMAIL (platform fallback sender)
    # ---------------------------------------------------------
    def _send_via_zepto(self, tenant: Tenant, to_email: str, subject: str, html: str) -> bool:
        sender = {"address": self.from_address}
        if tenant.business_name:
            sender["name"] = tenant.business_name

        payload = json.dumps({
            "from": sender,
            "to": [{"email_address": {"address": to_email}}],
            "subject": subject,
            "htmlbody": html,
        })
        headers = {
            "accept": "application/json",
            "content-type": "application/json",
            "authorization": self.api_key,
        }

        try:
            response = requests.post(self.api_url, data=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.error(f"⏱️ Timeout while sending to {to_email}: {e}")
            raise MailerError(f"TIMEOUT_ERROR: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"🔌 Connection error while sending to {to_email}: {e}")
            raise MailerError(f"CONNECTION_ERROR: {e}") from e

        try:
            response_data = response.json()
        except ValueError:
            response_data = {"raw": response.text}

        # ✅ ZeptoMail success: 2xx status OR body message is "OK" with known success code
        zepto_code = None
        if isinstance(response_data.get("data"), list) and response_data["data"]:
            zepto_code = response_data["data"][0].get("code")

        is_zepto_success = (
            str(response_data.get("message", "")).upper() == "OK"
            and zepto_code in ZEPTO_SUCCESS_CODES
        )

        if response.ok or is_zepto_success:
            logger.info(f"✅ Email queued successfully for {to_email} [code={zepto_code}]")
            return True

        if _looks_rejected(str(response_data)) or response.status_code in (422, 400):
            logger.warning(f"📭 Recipient not found / rejected: {to_email}")
            raise MailerError(f"RECIPIENT_NOT_FOUND: {response_data}", recipient_rejected=True)

        logger.error(f"❌ ZeptoMail error for {to_email}: {response_data}")
        raise MailerError(str(response_data))
