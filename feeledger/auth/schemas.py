from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated principal for route guards.
    college_id is None only for super_admin, who may act across colleges.
    """

    id: UUID
    college_id: Optional[UUID] = None
    role: str
    email: str
