"""
Profile Module

Application-level user records. A profile links one identity to a display
name and a role; the role decides which dashboard the user gets and is not
changed after creation.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .storage import TableStore

PROFILES_TABLE = "profiles"


class Role(Enum):
    """Panel roles"""
    ADMIN = "admin"
    STAFF = "staff"

    @classmethod
    def parse(cls, value: Optional[str]) -> 'Role':
        """Role for a stored value; anything unrecognised is treated as staff"""
        try:
            return cls(value)
        except ValueError:
            return cls.STAFF


class ProfileStatus(Enum):
    """Profile activity status"""
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass
class Profile:
    """Profile row linked to an identity"""
    id: str
    user_id: str
    full_name: str
    role: Role
    created_at: datetime
    status: ProfileStatus = ProfileStatus.ACTIVE

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "full_name": self.full_name,
            "role": self.role.value,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Profile':
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        # Rows written by a backend trigger may lack status
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            full_name=data.get("full_name") or "",
            role=Role.parse(data.get("role")),
            created_at=created_at or datetime.now(timezone.utc),
            status=ProfileStatus(data.get("status") or ProfileStatus.ACTIVE.value),
        )


class ProfileManager:
    """Reads and creates profile rows in the backend"""

    def __init__(self, store: TableStore):
        self.store = store

    def create_profile(self, user_id: str, full_name: str, role: Role = Role.STAFF,
                       status: ProfileStatus = ProfileStatus.ACTIVE) -> Profile:
        """Insert a profile row for an identity"""
        if not user_id:
            raise ValueError("Profile requires an identity id")
        full_name = (full_name or "").strip()
        if not full_name:
            raise ValueError("Profile requires a full name")

        row = self.store.insert(PROFILES_TABLE, {
            "user_id": user_id,
            "full_name": full_name,
            "role": role.value,
            "status": status.value,
        })
        return Profile.from_dict(row)

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        """Get profile by its own id"""
        row = self.store.select_one(PROFILES_TABLE, {"id": profile_id})
        return Profile.from_dict(row) if row else None

    def get_by_user_id(self, user_id: str) -> Optional[Profile]:
        """Get the profile linked to an identity"""
        row = self.store.select_one(PROFILES_TABLE, {"user_id": user_id})
        return Profile.from_dict(row) if row else None

    def delete_by_user_id(self, user_id: str) -> int:
        """Delete the profile rows linked to an identity; returns rows removed"""
        return self.store.delete(PROFILES_TABLE, {"user_id": user_id})

    def list_profiles(self, role: Optional[Role] = None) -> List[Profile]:
        """List profiles, newest first, optionally restricted to one role"""
        filters = {"role": role.value} if role else None
        rows = self.store.select(PROFILES_TABLE, filters, order_by="created_at", descending=True)
        return [Profile.from_dict(row) for row in rows]

    def list_staff(self) -> List[Profile]:
        """Staff profiles, newest first"""
        return self.list_profiles(Role.STAFF)
