"""
Security guards for role-based and ownership-based access control.

Provides dependencies for protecting endpoints.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from backend.app.models.enums import UserRole
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/admin/orders")
        async def list_orders(current_user: dict = Depends(require_role([UserRole.ADMIN]))):
            ...

    Args:
        allowed_roles: List of UserRole enums that are allowed to access the endpoint

    Returns:
        FastAPI dependency function that validates user role

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role_str = current_user.get("role")

        if not user_role_str:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Role information missing from token"
            )

        try:
            user_role = UserRole(user_role_str)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )

        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


def is_admin(current_user: dict) -> bool:
    return current_user.get("role") == UserRole.ADMIN.value


def verify_order_access(order, current_user: dict) -> None:
    """
    Owner-or-admin check for order reads.

    Guest orders (no user_id) are visible to admins only; customers reach
    them through public tracking.

    Raises:
        InsufficientPermissionsError
    """
    if is_admin(current_user):
        return
    if order.user_id is not None and order.user_id == current_user.get("user_id"):
        return
    raise InsufficientPermissionsError("You do not have permission to access this order")
