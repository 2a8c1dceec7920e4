from fastapi import Depends, HTTPException, status

from feeledger.auth.dependencies import get_current_user
from feeledger.auth.schemas import CurrentUser


def require_roles(*roles: str):
    """
    Dependency factory restricting a route to the given roles.

    Example:
        Depends(require_roles("admin", "super_admin", "accountant"))
    """
    allowed = set(roles)

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker


FEE_READ_ROLES = ("super_admin", "admin", "accountant")
FEE_WRITE_ROLES = ("super_admin", "admin", "accountant")
INVOICE_DELETE_ROLES = ("super_admin", "admin")
