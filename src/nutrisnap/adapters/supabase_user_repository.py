"""Supabase-backed user repository."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from nutrisnap.domain.models import UserRecord
from nutrisnap.services.users import UserRepository


@dataclass
class SupabaseUserRepository(UserRepository):
    """Supabase implementation for user persistence."""

    client: Client

    def get_by_api_token(self, api_token: str) -> UserRecord | None:
        """Return the user owning an API token, if present."""
        response = (
            self.client.table("users")
            .select("id, email, name")
            .eq("api_token", api_token)
            .limit(1)
            .execute()
        )
        if response.data:
            row = response.data[0]
            return UserRecord(
                id=int(row["id"]),
                email=str(row.get("email") or ""),
                name=row.get("name"),
            )
        return None

    def touch_last_active(self, user_id: int) -> None:
        """Update the last_active_at timestamp for a user."""
        self.client.table("users").update(
            {"last_active_at": datetime.now(tz=UTC).isoformat()}
        ).eq("id", user_id).execute()
