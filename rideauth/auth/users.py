"""
User storage and management.

Stores users in a JSON file keyed by phone number.
Every read-modify-write runs under a store lock so concurrent requests
cannot lose each other's updates.
"""

import json
import logging
import threading
import uuid
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, List
from dataclasses import dataclass, asdict, field

from .phone import normalize_phone, mask_phone

logger = logging.getLogger(__name__)

USERS_FILENAME = "users.json"

ROLES = ("elder", "family", "driver")


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class User:
    """User data model."""
    user_id: str
    phone: str  # Normalized phone number (unique)
    first_name: str = "User"
    last_name: str = ""
    role: str = "elder"
    is_verified: bool = False
    is_active: bool = True
    refresh_token: Optional[str] = None  # Currently valid refresh token, never exposed
    created_at: str = field(default_factory=_utcnow)
    updated_at: str = field(default_factory=_utcnow)
    last_login: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        # Handle missing fields gracefully
        return cls(
            user_id=data.get("user_id", str(uuid.uuid4())),
            phone=data["phone"],
            first_name=data.get("first_name", "User"),
            last_name=data.get("last_name", ""),
            role=data.get("role", "elder"),
            is_verified=data.get("is_verified", False),
            is_active=data.get("is_active", True),
            refresh_token=data.get("refresh_token"),
            created_at=data.get("created_at", _utcnow()),
            updated_at=data.get("updated_at", _utcnow()),
            last_login=data.get("last_login")
        )

    def public_dict(self) -> dict:
        """Projection safe to return to clients (no refresh token)."""
        data = self.to_dict()
        data.pop("refresh_token", None)
        return data


class UserStore:
    """
    JSON-based user storage.

    Users are indexed by phone number (primary key); user_id is the
    durable identifier carried in tokens.
    """

    def __init__(self, file_path: Path):
        """
        Initialize user store.

        Args:
            file_path: Path to users JSON file
        """
        self.file_path = file_path
        self._lock = threading.RLock()
        self._ensure_file()

    def _ensure_file(self):
        """Ensure the storage file and directory exist."""
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.file_path.exists():
            self._save_all({})

    def _load_all(self) -> dict[str, dict]:
        """Load all users from file."""
        try:
            with open(self.file_path, "r") as f:
                return json.load(f)
        except (json.JSONDecodeError, FileNotFoundError):
            return {}

    def _save_all(self, users: dict[str, dict]):
        """Save all users to file."""
        with open(self.file_path, "w") as f:
            json.dump(users, f, indent=2, ensure_ascii=False)

    def _find_by_id(self, users: dict[str, dict], user_id: str) -> Optional[dict]:
        for data in users.values():
            if data.get("user_id") == user_id:
                return data
        return None

    def _update_by_id(self, user_id: str, **changes) -> Optional[User]:
        with self._lock:
            users = self._load_all()
            data = self._find_by_id(users, user_id)
            if data is None:
                return None

            data.update(changes)
            data["updated_at"] = _utcnow()
            self._save_all(users)
            return User.from_dict(data)

    def create_user(self, phone: str, is_verified: bool = False, role: str = "elder") -> User:
        """
        Create a new user.

        Args:
            phone: Phone number (will be normalized)
            is_verified: Initial verified flag
            role: One of ROLES

        Returns:
            Created User object

        Raises:
            ValueError: If phone or role is invalid, or user already exists
        """
        normalized = normalize_phone(phone)
        if not normalized:
            raise ValueError(f"Invalid phone number: {phone}")
        if role not in ROLES:
            raise ValueError(f"Invalid role: {role}")

        with self._lock:
            users = self._load_all()

            if normalized in users:
                raise ValueError(f"User with phone {normalized} already exists")

            user = User(
                user_id=str(uuid.uuid4()),
                phone=normalized,
                role=role,
                is_verified=is_verified
            )

            users[normalized] = user.to_dict()
            self._save_all(users)

        logger.info(f"Created user: {mask_phone(normalized)}")
        return user

    def get_or_create(self, phone: str) -> User:
        """
        Get a user by phone, creating an unverified one if unseen.

        Raises:
            ValueError: If phone is invalid
        """
        with self._lock:
            user = self.get_by_phone(phone)
            if user:
                return user
            return self.create_user(phone)

    def get_by_phone(self, phone: str) -> Optional[User]:
        """
        Get user by phone number.

        Args:
            phone: Phone number (will be normalized)

        Returns:
            User if found, None otherwise
        """
        normalized = normalize_phone(phone)
        if not normalized:
            return None

        with self._lock:
            data = self._load_all().get(normalized)

        if data:
            return User.from_dict(data)
        return None

    def get_by_id(self, user_id: str) -> Optional[User]:
        """
        Get user by user ID.

        Args:
            user_id: User's unique ID

        Returns:
            User if found, None otherwise
        """
        with self._lock:
            data = self._find_by_id(self._load_all(), user_id)
        return User.from_dict(data) if data else None

    def mark_verified(self, phone: str) -> User:
        """
        Flag a phone number as verified, creating the user if absent.

        Raises:
            ValueError: If phone is invalid
        """
        with self._lock:
            user = self.get_or_create(phone)
            if user.is_verified:
                return user
            updated = self._update_by_id(user.user_id, is_verified=True)

        logger.info(f"Verified user: {mask_phone(updated.phone)}")
        return updated

    def record_login(self, user_id: str) -> Optional[User]:
        """Record a successful login."""
        return self._update_by_id(user_id, last_login=_utcnow())

    def set_refresh_token(self, user_id: str, refresh_token: Optional[str]) -> Optional[User]:
        """Overwrite the stored refresh token (login)."""
        return self._update_by_id(user_id, refresh_token=refresh_token)

    def rotate_refresh_token(self, user_id: str, expected: str, new_token: str) -> bool:
        """
        Replace the stored refresh token only if it still equals `expected`.

        Returns:
            True if rotated, False if the user is gone or the stored token changed
        """
        with self._lock:
            users = self._load_all()
            data = self._find_by_id(users, user_id)
            if data is None or data.get("refresh_token") != expected:
                return False

            data["refresh_token"] = new_token
            data["updated_at"] = _utcnow()
            self._save_all(users)
            return True

    def set_active(self, user_id: str, is_active: bool) -> Optional[User]:
        """Activate or deactivate a user. Users are never deleted."""
        user = self._update_by_id(user_id, is_active=is_active)
        if user:
            logger.info(f"User {user_id} {'activated' if is_active else 'deactivated'}")
        return user

    def set_role(self, user_id: str, role: str) -> Optional[User]:
        """
        Change a user's role.

        Raises:
            ValueError: If role is not one of ROLES
        """
        if role not in ROLES:
            raise ValueError(f"Invalid role: {role}")
        return self._update_by_id(user_id, role=role)

    def list_users(self, active_only: bool = True) -> List[User]:
        """
        List all users.

        Args:
            active_only: If True, only return active users

        Returns:
            List of User objects
        """
        with self._lock:
            result = [User.from_dict(data) for data in self._load_all().values()]

        if active_only:
            result = [u for u in result if u.is_active]

        return result

    def user_exists(self, phone: str) -> bool:
        """Check if a user exists."""
        return self.get_by_phone(phone) is not None
