"""
Security guards for role-based and ownership-based access control.

Provides dependencies for protecting operator and admin endpoints.
"""

from typing import List, Optional
from fastapi import Depends, HTTPException, status
from tickto.app.models.enums import UserRole
from tickto.app.core.dependencies import get_current_user


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.
    
    Usage:
        @router.post("/operator/trips")
        async def create_trip(current_user: dict = Depends(require_role([UserRole.OPERATOR]))):
            ...
    
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


def verify_ownership(resource_owner_id: int, current_user: dict) -> bool:
    """
    Verify that the current user owns the resource.
    
    Admins may access everything; everyone else only what they own.
    """
    if current_user.get("role") == UserRole.ADMIN.value:
        return True
    return current_user.get("user_id") == resource_owner_id


class OwnershipGuard:
    """
    Class-based ownership guard for operator-owned trips and vehicles.
    
    Usage:
        ownership_guard = OwnershipGuard()
        trip = await repo.get(trip_id)
        ownership_guard.enforce(trip.organizer_id, current_user, "trip")
    """
    
    def enforce(
        self,
        resource_owner_id: int,
        current_user: dict,
        resource_name: str = "resource"
    ):
        """Raise 403 if the current user may not touch the resource."""
        if not verify_ownership(resource_owner_id, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. You do not have permission to access this {resource_name}."
            )
    
    def filter_by_ownership(self, current_user: dict) -> Optional[int]:
        """
        Get the owner id to filter queries by.
        
        Returns None for admins (no filtering), otherwise the caller's user id.
        """
        if current_user.get("role") == UserRole.ADMIN.value:
            return None
        return current_user.get("user_id")
