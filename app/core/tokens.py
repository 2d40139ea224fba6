"""
Signed tracking tokens embedded in outbound email links.

A token is a HS256 JWT carrying the customer id (``cid``), an optional
destination override (``url``) and, for program emails, the step that
produced it (``sid``). Nothing is stored server-side: validity is the
signature plus the ``exp`` claim.
"""
from datetime import datetime, timedelta
from typing import Optional

import jwt
from pydantic import BaseModel

from app.core.config import settings
from app.core.exceptions import InvalidTokenError, TokenExpiredError

ALGORITHM = "HS256"


class TrackingClaims(BaseModel):
    customer_id: int
    destination_url: Optional[str] = None
    step_id: Optional[int] = None


class TokenCodec:
    def __init__(self, secret: str = None, default_ttl: timedelta = None):
        self.secret = secret or settings.TRACKING_JWT_SECRET
        self.default_ttl = default_ttl or timedelta(days=settings.TRACKING_TOKEN_TTL_DAYS)

    def issue(
        self,
        customer_id: int,
        expires_in: timedelta = None,
        destination_url: str = None,
        step_id: int = None,
        now: datetime = None,
    ) -> str:
        issued_at = now or datetime.utcnow()
        payload = {
            "cid": customer_id,
            "iat": issued_at,
            "exp": issued_at + (expires_in if expires_in is not None else self.default_ttl),
        }
        if destination_url:
            payload["url"] = destination_url
        if step_id is not None:
            payload["sid"] = step_id

        return jwt.encode(payload, self.secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> TrackingClaims:
        try:
            # iat is informational; a clock-skewed issuer must not break links
            decoded = jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "cid"], "verify_iat": False},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Tracking link has expired") from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError("Tracking link signature is invalid") from e

        cid = decoded.get("cid")
        if isinstance(cid, bool) or not isinstance(cid, int):
            raise InvalidTokenError("Tracking link carries no customer")

        sid = decoded.get("sid")
        if sid is not None and (isinstance(sid, bool) or not isinstance(sid, int)):
            raise InvalidTokenError("Tracking link carries a malformed step")

        return TrackingClaims(
            customer_id=cid,
            destination_url=decoded.get("url") or None,
            step_id=sid,
        )
