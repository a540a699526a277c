from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from itsdangerous import BadSignature, Signer
import secrets
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from blog_api.config import Settings
from blog_api.errors import ConflictError, UnauthorizedError, ValidationError
from blog_api.log import logger
from blog_api.models import User


class CredentialHasher:
    """
    Argon2id password hashing.

    Every call to hash() draws a fresh random salt, so the same password
    never produces the same record twice. The record is self-describing:
    $argon2id$v=19$m=65536,t=3,p=4$salt$hash
    """

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4):
        self._ph = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )
        # Built up front so every unknown-username login costs one verify, no more
        self._dummy_hash = self.hash(secrets.token_hex(16))

    @classmethod
    def from_settings(cls, settings: Settings) -> "CredentialHasher":
        return cls(
            time_cost=settings.hash_time_cost,
            memory_cost=settings.hash_memory_cost,
            parallelism=settings.hash_parallelism,
        )

    def hash(self, password: str) -> str:
        return self._ph.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """
        Verify password against stored hash.

        Uses constant-time comparison internally to prevent timing attacks.
        Returns False for any mismatch or malformed hash.
        """
        if not password_hash:
            return False
        try:
            return self._ph.verify(password_hash, password)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False
        except UnicodeError:
            # argon2 encodes the password as UTF-8 and the record as ASCII
            return False

    def burn(self, password: str) -> None:
        """
        Spend one verification worth of CPU against a throwaway hash.

        Used when the username is unknown so that path costs the same as a
        wrong password.
        """
        self.verify(password, self._dummy_hash)


def generate_session_id() -> str:
    """
    Generate cryptographically secure session identifier.

    32 bytes (256 bits) of randomness, hex encoded = 64 characters.
    """
    return secrets.token_hex(32)


class CookieSigner:
    """Signs session ids before they go into a cookie."""

    def __init__(self, secret_key: str):
        self._signer = Signer(secret_key, salt="blog_api.session")

    def sign(self, session_id: str) -> str:
        return self._signer.sign(session_id).decode("utf-8")

    def unsign(self, value: str) -> Optional[str]:
        """Returns the session id, or None when the value was tampered with."""
        if not value:
            return None
        try:
            return self._signer.unsign(value).decode("utf-8")
        except BadSignature:
            return None


def _is_encodable(value: str) -> bool:
    try:
        value.encode("utf-8")
    except UnicodeError:
        return False
    return True


def register_user(db: Session, hasher: CredentialHasher, username: str, password: str) -> User:
    """
    Create a new account.

    Raises ValidationError for blank or unencodable fields and ConflictError
    when the username is taken (checked up front and again by the unique
    index).
    """
    if not username or not username.strip() or not password:
        raise ValidationError("Username and password are required")
    if not _is_encodable(username) or not _is_encodable(password):
        raise ValidationError("Username and password must be valid UTF-8 text")

    if db.scalar(select(User.id).where(User.username == username)) is not None:
        raise ConflictError("Username already exists")

    user = User(username=username, password_hash=hasher.hash(password))
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError:
        db.rollback()
        # Lost a race with a concurrent signup for the same name
        raise ConflictError("Username already exists")

    logger.info(f"User created: id={user.id} username={user.username}")
    return user


def authenticate_user(db: Session, hasher: CredentialHasher, username: str, password: str) -> User:
    """
    Look up a user by exact username and check the password.

    Both "no such user" and "wrong password" raise the same
    UnauthorizedError so the response cannot be used to enumerate accounts.
    """
    if not username or not password:
        raise ValidationError("Username and password are required")
    if not _is_encodable(username):
        # Cannot match any stored username
        hasher.burn(password)
        raise UnauthorizedError("Invalid credentials")

    user = db.scalar(select(User).where(User.username == username))
    if user is None:
        hasher.burn(password)
        logger.warning(f"Login failed: unknown username {username!r}")
        raise UnauthorizedError("Invalid credentials")

    if not hasher.verify(password, user.password_hash):
        logger.warning(f"Login failed: wrong password for user id={user.id}")
        raise UnauthorizedError("Invalid credentials")

    return user
