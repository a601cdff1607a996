"""
User roles enumeration.

Defines the role types for the parcel delivery system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.
    
    Roles:
        ADMIN: Full authority over parcels, riders and users
        RIDER: Acts only on parcels assigned to them
        USER: Manages own parcels and payments (default role)
    """
    ADMIN = "admin"
    RIDER = "rider"
    USER = "user"
