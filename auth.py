"""
Session and identity: registration, login and the current-user pointer.

Passwords are stored as a salted PBKDF2-HMAC-SHA256 digest. Only the salt and
the digest are persisted; verification re-derives and compares in constant
time.
"""

import hashlib
import hmac
import logging
import secrets
from typing import Optional, Tuple

import database
from errors import (
    AuthenticationError,
    DuplicateError,
    Outcome,
    StorageCapacityError,
    ValidationError,
)
from notify import Notifier, log_notifier
from repositories import Repositories
from schemas import User, UserDraft
from utils import is_valid_email, now_utc

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
PBKDF2_ITERATIONS = 260_000


# ---------------------------
# Password hashing
# ---------------------------

def hash_password(password: str, salt: Optional[str] = None) -> Tuple[str, str]:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), bytes.fromhex(salt), PBKDF2_ITERATIONS)
    return salt, digest.hex()


def verify_password(password: str, salt: str, expected_hash: str) -> bool:
    try:
        _, h = hash_password(password, salt)
    except ValueError:
        # salt is not hex: the record was not written by hash_password
        return False
    return hmac.compare_digest(h, expected_hash)


# ---------------------------
# Session
# ---------------------------

class UserSession:
    def __init__(self, repos: Repositories, notify: Notifier = log_notifier):
        self.repos = repos
        self.notify = notify

    def _fail(self, error) -> Outcome:
        self.notify(error.message, "error")
        return Outcome.failure(error)

    def current_user(self) -> Optional[User]:
        user_id = self.repos.store.get(database.CURRENT_USER)
        if not isinstance(user_id, str):
            return None
        return self.repos.users.find_by_id(user_id)

    def require_user(self) -> Outcome:
        user = self.current_user()
        if user is None:
            self.notify("Please login to access this feature", "warning")
            return Outcome.failure(AuthenticationError("Please login to access this feature"))
        return Outcome.success(user)

    def register(self, name: str, email: str, department: str, password: str) -> Outcome:
        name = (name or "").strip()
        email = (email or "").strip().lower()
        department = (department or "").strip()
        password = password or ""

        if not (name and email and department and password):
            return self._fail(ValidationError("Please fill in all fields"))
        if not is_valid_email(email):
            return self._fail(ValidationError("Please enter a valid email address"))
        if len(password) < MIN_PASSWORD_LENGTH:
            return self._fail(ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"))
        if self.repos.users.find_by_email(email):
            return self._fail(DuplicateError("An account with this email already exists"))

        salt, pw_hash = hash_password(password)
        user = self.repos.users.add(UserDraft(
            name=name,
            email=email,
            department=department,
            password_salt=salt,
            password_hash=pw_hash,
        ))
        if user is None:
            return self._fail(StorageCapacityError("Failed to create account. Please try again."))

        logger.info(f"Registered user {user.id}")
        self.notify("Account created successfully! Please login.", "success")
        return Outcome.success(user, "Account created successfully! Please login.")

    def login(self, email: str, password: str) -> Outcome:
        email = (email or "").strip().lower()
        password = password or ""

        if not email or not password:
            return self._fail(ValidationError("Please enter both email and password"))
        if not is_valid_email(email):
            return self._fail(ValidationError("Please enter a valid email address"))

        user = self.repos.users.find_by_email(email)
        if user is None or not verify_password(password, user.password_salt, user.password_hash):
            return self._fail(AuthenticationError("Invalid credentials"))

        stamp = now_utc()
        previous = self.repos.store.get(database.CURRENT_USER)
        if not self.repos.store.set(database.CURRENT_USER, user.id):
            return self._fail(StorageCapacityError("Storage error. Please check available space."))
        if not self.repos.users.update(user.id, {"last_login": stamp}):
            # put the old pointer back so a failed login leaves no trace
            if previous is None:
                self.repos.store.remove(database.CURRENT_USER)
            else:
                self.repos.store.set(database.CURRENT_USER, previous)
            return self._fail(StorageCapacityError("Storage error. Please check available space."))

        user = user.model_copy(update={"last_login": stamp})
        logger.info(f"User {user.id} logged in")
        self.notify(f"Welcome back, {user.name}!", "success")
        return Outcome.success(user, f"Welcome back, {user.name}!")

    def logout(self) -> None:
        self.repos.store.remove(database.CURRENT_USER)
        self.notify("Logged out successfully", "success")
