from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from blog_api.auth import CredentialHasher, authenticate_user, register_user
from blog_api.database import get_db
from blog_api.dependencies import get_hasher, get_session, require_user
from blog_api.errors import UnauthorizedError
from blog_api.log import logger
from blog_api.models import User
from blog_api.schemas import (
    LoginRequest,
    MessageResponse,
    SignupRequest,
    UserData,
    UserEnvelope,
    UserResponse,
)
from blog_api.sessions import SessionContext, SessionUser

router = APIRouter(prefix="/user", tags=["user"])

# Endpoints here are plain `def`: FastAPI runs them in its threadpool, which
# keeps argon2 and the blocking database calls off the event loop.


def _envelope(message: str, user: User) -> UserEnvelope:
    return UserEnvelope(message=message, data=UserData(user=UserResponse.model_validate(user)))


@router.post("/signup", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
def signup(
    request: SignupRequest,
    db: Session = Depends(get_db),
    hasher: CredentialHasher = Depends(get_hasher),
):
    """
    Create new user account.

    Error cases:
    - 400: Missing or blank username/password
    - 409: Username already exists
    - 503: Database unreachable
    """
    user = register_user(db, hasher, request.username, request.password)
    return _envelope("User created successfully", user)


@router.post("/login", response_model=UserEnvelope)
def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    hasher: CredentialHasher = Depends(get_hasher),
    session: SessionContext = Depends(get_session),
):
    """
    Authenticate user and attach them to the session.

    Security notes:
    - Same "Invalid credentials" message for unknown user and wrong password
    - The session moves to a new id on success (no fixation)
    - On failure the session is left untouched
    """
    user = authenticate_user(db, hasher, request.username, request.password)
    session.login(user)
    logger.info(f"User logged in: id={user.id}")
    return _envelope("User logged in successfully", user)


@router.post("/logout", response_model=MessageResponse)
def logout(session: SessionContext = Depends(get_session)):
    """
    Invalidate session and clear cookie.

    Returns success even if there was no session (idempotent).
    """
    user = session.user
    session.destroy()
    if user is not None:
        logger.info(f"User logged out: id={user.id}")
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserEnvelope)
def me(
    current: SessionUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    """
    Get authenticated user's information.

    Returns 401 if not authenticated (handled by dependency), and also when
    the account behind the session no longer exists.
    """
    user = db.get(User, current.id)
    if user is None:
        raise UnauthorizedError("Not authenticated")
    return _envelope("User fetched successfully", user)
