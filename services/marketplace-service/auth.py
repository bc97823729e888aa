"""Authentication utilities."""
import hashlib
import hmac
import logging
import secrets
from typing import Optional
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from models import AuthSession
from monitoring import auth_failures_counter, auth_attempts_counter

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 100_000


def hash_password(password: str) -> str:
    """
    Hash a password with a random salt.

    Returns:
        ``salt$hexdigest`` suitable for storing on the user row
    """
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Check a password against a stored ``salt$hexdigest`` value."""
    if not password_hash or "$" not in password_hash:
        return False
    salt, expected = password_hash.split("$", 1)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return hmac.compare_digest(digest.hex(), expected)


def create_session(db: Session, user_id: int) -> str:
    """Issue a new bearer token for the user. The caller commits."""
    token = secrets.token_hex(32)
    db.add(AuthSession(user_id=user_id, token=token))
    return token


def verify_token(authorization: Optional[str] = Header(None)) -> str:
    """
    Verify the authorization header has the bearer format.

    Args:
        authorization: Authorization header value

    Returns:
        The bearer token

    Raises:
        HTTPException: If the header is missing or malformed
    """
    # Record authentication attempt
    auth_attempts_counter.add(1, {"type": "bearer_token"})

    if authorization is None:
        auth_failures_counter.add(1, {"reason": "missing_header"})
        logger.warning("Authentication failed: Missing authorization header")
        raise HTTPException(status_code=401, detail="Not authenticated")

    # Extract token (Bearer <token>)
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        auth_failures_counter.add(1, {"reason": "invalid_format"})
        logger.warning("Authentication failed: Invalid authorization header format", extra={
            "auth_header": authorization[:20] + "..." if len(authorization) > 20 else authorization
        })
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    return parts[1]


def get_current_user_id(
    token: str = Depends(verify_token),
    db: Session = Depends(get_db)
) -> int:
    """
    Resolve the bearer token to the signed-in user's id.

    Raises:
        HTTPException: If the token does not belong to a live session
    """
    session = db.query(AuthSession).filter(AuthSession.token == token).first()
    if session is None:
        auth_failures_counter.add(1, {"reason": "invalid_token"})
        logger.warning("Authentication failed: Invalid token", extra={
            "token_prefix": token[:8] + "..."
        })
        raise HTTPException(status_code=401, detail="Invalid token")

    logger.debug("Authentication successful", extra={"user_id": session.user_id})
    return session.user_id
