"""Account registration and password authentication."""

import logging
from typing import Any, Iterable, Optional

import bcrypt

from .config import GigFlowConfig
from .errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    OutOfRangeError,
    ValidationError,
    check_length,
    require,
)
from .models import (
    BIO_MAX_LENGTH,
    EMAIL_PATTERN,
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    PASSWORD_MIN_LENGTH,
    Account,
    AccountRole,
    new_id,
)
from .storage.base import DuplicateRecordError, EntityStore

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes
PASSWORD_MAX_BYTES = 72


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against its bcrypt hash."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        # Malformed stored hash
        return False


class AccountService:
    """Creates accounts and checks credentials."""

    def __init__(self, store: EntityStore, config: Optional[GigFlowConfig] = None):
        self.store = store
        self.config = config or GigFlowConfig()

    def register(
        self,
        name: Optional[str],
        email: Optional[str],
        password: Optional[str],
        role: Optional[str] = None,
        bio: Optional[str] = None,
        skills: Optional[Iterable[str]] = None,
    ) -> Account:
        """Create an account. Raises ConflictError when the email is taken."""
        name = check_length("name", name, NAME_MIN_LENGTH, NAME_MAX_LENGTH)

        require("email", email)
        email = email.strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Please provide a valid email", field="email")

        require("password", password)
        if len(password) < PASSWORD_MIN_LENGTH:
            raise OutOfRangeError(
                f"password must be at least {PASSWORD_MIN_LENGTH} characters", field="password"
            )
        if len(password.encode()) > PASSWORD_MAX_BYTES:
            raise OutOfRangeError(
                f"password cannot exceed {PASSWORD_MAX_BYTES} bytes", field="password"
            )

        role = role or AccountRole.BOTH.value
        if role not in {r.value for r in AccountRole}:
            raise ValidationError(
                f"role must be one of {[r.value for r in AccountRole]}", field="role"
            )

        bio = (bio or "").strip()
        if len(bio) > BIO_MAX_LENGTH:
            raise OutOfRangeError(f"bio cannot exceed {BIO_MAX_LENGTH} characters", field="bio")

        account = Account(
            id=new_id(),
            name=name,
            email=email,
            password_hash=hash_password(password, self.config.password_hash_rounds),
            role=role,
            bio=bio,
            skills=[s.strip() for s in (skills or []) if s and s.strip()],
        )
        try:
            created = self.store.create_account(account)
        except DuplicateRecordError:
            raise ConflictError("An account with this email already exists")

        logger.info(f"Account registered | id={created.id} | role={created.role}")
        return created

    def authenticate(self, email: Optional[str], password: Optional[str]) -> Account:
        """Return the account for valid credentials, else raise AuthenticationError."""
        require("email", email)
        require("password", password)
        account = self.store.get_account_by_email(email)
        if account is None or not verify_password(password, account.password_hash):
            raise AuthenticationError("Invalid email or password")
        return account

    def get_account(self, account_id: str) -> Account:
        account = self.store.get_account(account_id)
        if account is None:
            raise NotFoundError("Account not found")
        return account

    def profile(self, account_id: str) -> dict[str, Any]:
        """Public profile: everything except the password hash."""
        return self.get_account(account_id).to_dict()
