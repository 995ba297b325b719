"""
User roles enumeration.

Roles are read from the bearer token; user records live outside this service.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.
    
    Roles:
        ADMIN: System-level access, may trigger reconciliation
        OPERATOR: Owns vehicles and posts trips
        CUSTOMER: Searches and books trips (default role)
    """
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"
    CUSTOMER = "CUSTOMER"
