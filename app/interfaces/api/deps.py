"""FastAPI dependencies — profile auth, leadership gate and the cron shared secret."""

import hmac
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.infrastructure.database import get_db
from app.application.services.auth_service import get_profile_for_token
from app.domain.models.profile import Profile, LEADERSHIP_ROLES

settings = get_settings()
security = HTTPBearer(auto_error=False)


def get_current_profile(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Profile:
    """Extract and validate the caller's profile from the bearer token."""
    if credentials is None:
        raise AuthenticationError("Missing bearer token")

    profile = get_profile_for_token(db, credentials.credentials)
    if profile is None:
        raise AuthenticationError("Invalid or expired token")
    if profile.status == "inactive":
        raise AuthenticationError("Profile is inactive")
    return profile


def require_leadership(profile: Profile = Depends(get_current_profile)) -> Profile:
    """Require super_admin or ministry_leader."""
    if profile.role not in LEADERSHIP_ROLES:
        raise AuthorizationError("Leadership role required")
    return profile


def verify_cron_secret(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> None:
    """Scheduler and collaborator hooks authenticate with `Authorization: Bearer $CRON_SECRET`."""
    secret = settings.CRON_SECRET
    if not secret or credentials is None:
        raise AuthenticationError()
    if not hmac.compare_digest(credentials.credentials.encode(), secret.encode()):
        raise AuthenticationError()
