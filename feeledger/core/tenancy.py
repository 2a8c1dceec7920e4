"""College (tenant) scoping helpers. A None college_id means a super_admin acting across colleges."""

from typing import List, Optional
from uuid import UUID

from feeledger.core.exceptions import ValidationError


def college_scope(model, college_id: Optional[UUID]) -> List:
    """Where-clauses restricting ``model`` to the caller's college."""
    if college_id is None:
        return []
    return [model.college_id == college_id]


def require_college_id(principal_college_id: Optional[UUID], requested: Optional[UUID] = None) -> UUID:
    """College for a create: the caller's own, or an explicit one for super_admin."""
    if principal_college_id is not None:
        return principal_college_id
    if requested is None:
        raise ValidationError("college_id is required for super admin operations")
    return requested
