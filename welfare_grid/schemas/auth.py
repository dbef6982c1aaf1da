"""Caller context schemas.

The authenticated-caller context is produced by the presentation layer and
passed into every service call that reads or writes tenant-owned data.
"""

from typing import Optional

from pydantic import BaseModel, Field

ROLE_STAFF = "staff"
ROLE_ADMIN = "admin"


class CallerContext(BaseModel):
    """Who is calling, and which municipality they are restricted to."""

    user_id: int = Field(..., description="Internal user ID of the caller")
    municipality_id: Optional[int] = Field(
        None, description="Home municipality; None means province-wide access"
    )
    role: str = Field(default=ROLE_STAFF, description="staff | admin")
    name: Optional[str] = Field(None, description="Display name for audit entries")

    model_config = {"frozen": True}

    @property
    def is_provincial(self) -> bool:
        return self.municipality_id is None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def can_access(self, municipality_id: Optional[int]) -> bool:
        """Check whether this caller may see a row owned by ``municipality_id``."""
        return self.is_provincial or self.municipality_id == municipality_id


__all__ = ["CallerContext", "ROLE_STAFF", "ROLE_ADMIN"]
