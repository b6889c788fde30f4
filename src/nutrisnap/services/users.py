"""User-related business logic."""

from dataclasses import dataclass
from typing import Protocol

from nutrisnap.domain.models import UserRecord


class UserRepository(Protocol):
    """Persistence interface for user data."""

    def get_by_api_token(self, api_token: str) -> UserRecord | None:
        """Return the user owning an API token, if present."""

    def touch_last_active(self, user_id: int) -> None:
        """Update the last active timestamp for the user."""


@dataclass
class UserService:
    """Application service for resolving request owners."""

    repository: UserRepository

    def authenticate(self, api_token: str | None) -> UserRecord | None:
        """Return the user for an API token and record the activity."""
        if not api_token or not api_token.strip():
            return None
        user = self.repository.get_by_api_token(api_token.strip())
        if user is None:
            return None
        self.repository.touch_last_active(user.id)
        return user
