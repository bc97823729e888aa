"""Authentication API router."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from auth import create_session, get_current_user_id, hash_password, verify_password, verify_token
from database import get_db
from models import AuthSession, User
from monitoring import auth_attempts_counter, auth_failures_counter
from schemas import AuthResponse, SignInRequest, SignUpRequest, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/signup", response_model=AuthResponse, status_code=201)
async def sign_up(request: SignUpRequest, db: Session = Depends(get_db)):
    """Register with email and password and start a session."""
    auth_attempts_counter.add(1, {"type": "signup"})

    email = request.email.lower()
    if db.query(User).filter(User.email == email).first():
        auth_failures_counter.add(1, {"reason": "email_taken"})
        raise HTTPException(status_code=409, detail="Email already registered")

    try:
        user = User(
            email=email,
            name=request.name,
            password_hash=hash_password(request.password),
            is_anonymous=False
        )
        db.add(user)
        db.flush()
        token = create_session(db, user.id)
        db.commit()
    except IntegrityError:
        db.rollback()
        auth_failures_counter.add(1, {"reason": "email_taken"})
        raise HTTPException(status_code=409, detail="Email already registered")
    except Exception:
        db.rollback()
        raise

    logger.info("User signed up", extra={"user_id": user.id})
    return AuthResponse(token=token, user_id=user.id)


@router.post("/signin", response_model=AuthResponse)
async def sign_in(request: SignInRequest, db: Session = Depends(get_db)):
    """Authenticate with email and password and return a bearer token."""
    auth_attempts_counter.add(1, {"type": "signin"})

    user = db.query(User).filter(User.email == request.email.lower()).first()
    if user is None or not verify_password(request.password, user.password_hash):
        auth_failures_counter.add(1, {"reason": "invalid_credentials"})
        logger.warning("Sign-in failed: Invalid credentials")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    try:
        token = create_session(db, user.id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("User signed in", extra={"user_id": user.id})
    return AuthResponse(token=token, user_id=user.id)


@router.post("/anonymous", response_model=AuthResponse, status_code=201)
async def sign_in_anonymous(db: Session = Depends(get_db)):
    """Start a session for a new anonymous user."""
    auth_attempts_counter.add(1, {"type": "anonymous"})

    try:
        user = User(is_anonymous=True)
        db.add(user)
        db.flush()
        token = create_session(db, user.id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Anonymous user signed in", extra={"user_id": user.id})
    return AuthResponse(token=token, user_id=user.id, is_anonymous=True)


@router.post("/signout", status_code=204)
async def sign_out(token: str = Depends(verify_token), db: Session = Depends(get_db)):
    """End the current session. Signing out an unknown token is a no-op."""
    db.query(AuthSession).filter(AuthSession.token == token).delete()
    db.commit()


@router.get("/me", response_model=UserResponse)
async def current_user(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """The signed-in identity."""
    return db.query(User).filter(User.id == user_id).first()
