"""Auth service — bearer token handling for profiles.

Tokens are issued by the identity provider and signed with SECRET_KEY;
`sub` carries the profile id.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from app.config import get_settings
from app.domain.models.profile import Profile

settings = get_settings()


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
        return payload
    except JWTError:
        return None


def get_profile_for_token(db: Session, token: str) -> Optional[Profile]:
    payload = decode_access_token(token)
    if payload is None:
        return None
    profile_id = payload.get("sub")
    if not profile_id:
        return None
    return db.get(Profile, profile_id)
