from __future__ import annotations

import hmac

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from parkway.core.config import get_settings
from parkway.core.security import decode_access_token
from parkway.db.session import SessionLocal
from parkway.services.event_service import EventPublisher, OutboxEventPublisher
from parkway.services.geo_service import GeoResolver
from parkway.services.geo_service import get_geo_resolver as _get_geo_resolver

bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> str:
    """Caller identity from a bearer token issued by the identity service."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    try:
        payload = decode_access_token(credentials.credentials)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return str(user_id)


def get_event_publisher() -> EventPublisher:
    return OutboxEventPublisher()


def get_geo_resolver() -> GeoResolver:
    return _get_geo_resolver()


def require_payment_webhook(x_webhook_secret: str | None = Header(default=None)) -> None:
    secret = get_settings().payment_webhook_secret
    if not secret:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Payment webhook not configured")
    if not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")
