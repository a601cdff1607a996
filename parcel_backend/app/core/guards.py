"""
Security guards for role-based and ownership-based access control.

Provides dependencies for protecting endpoints.
"""

from typing import List, Optional
from fastapi import Depends
from parcel_backend.app.core.exceptions import InsufficientPermissionsError
from parcel_backend.app.models.enums import UserRole
from parcel_backend.app.core.dependencies import get_current_user


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.
    
    Usage:
        @router.get("/riders/parcels")
        async def rider_parcels(current_user: dict = Depends(require_role([UserRole.RIDER]))):
            ...
    
    Raises:
        InsufficientPermissionsError if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        try:
            user_role = UserRole(current_user.get("role"))
        except ValueError:
            raise InsufficientPermissionsError("Invalid role")
        
        if user_role not in allowed_roles:
            raise InsufficientPermissionsError(
                f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )
        
        return current_user
    
    return role_checker


def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    """
    Dependency for admin-only endpoints.
    
    Returns:
        User payload if admin, raises 403 otherwise
    """
    if current_user.get("role") != UserRole.ADMIN.value:
        raise InsufficientPermissionsError("Admin access required")
    
    return current_user


def is_admin(current_user: dict) -> bool:
    return current_user.get("role") == UserRole.ADMIN.value


def verify_ownership(resource_owner_email: Optional[str], current_user: dict) -> bool:
    """
    Verify that the current user owns the resource.
    
    Admins own everything; everyone else must match the owner email.
    """
    if is_admin(current_user):
        return True
    
    if not resource_owner_email:
        return False
    
    return resource_owner_email.lower() == current_user.get("email")


class OwnershipGuard:
    """
    Ownership guard for email-keyed resources.
    
    Usage:
        ownership_guard = OwnershipGuard()
        
        @router.get("/parcels/{parcel_id}")
        async def get_parcel(parcel_id: int, current_user: dict = Depends(get_current_user), ...):
            parcel = ...
            ownership_guard.enforce(parcel.created_by, current_user, "parcel")
            return parcel
    """
    
    def enforce(
        self,
        resource_owner_email: Optional[str],
        current_user: dict,
        resource_name: str = "resource"
    ):
        """
        Enforce ownership validation, raise 403 if access denied.
        """
        if not verify_ownership(resource_owner_email, current_user):
            raise InsufficientPermissionsError(
                f"Access denied. You do not have permission to access this {resource_name}."
            )
    
    def enforce_any(
        self,
        owner_emails: List[Optional[str]],
        current_user: dict,
        resource_name: str = "resource"
    ):
        """Allow access when the caller matches any of the given owners."""
        if not any(verify_ownership(email, current_user) for email in owner_emails):
            raise InsufficientPermissionsError(
                f"Access denied. You do not have permission to access this {resource_name}."
            )
    
    def filter_by_ownership(
        self,
        requested_email: Optional[str],
        current_user: dict
    ) -> Optional[str]:
        """
        Resolve the owner email a list query is filtered by.
        
        Admins: the requested email, or None for no filtering.
        Others: their own email; asking for someone else's is forbidden.
        """
        if is_admin(current_user):
            return requested_email.lower() if requested_email else None
        
        if requested_email and requested_email.lower() != current_user.get("email"):
            raise InsufficientPermissionsError("Access denied. Email does not match the authenticated user.")
        
        return current_user.get("email")
