"""
Role and answer enumerations.

Defines the closed value sets used across the checklist system.
"""

import enum
from typing import Iterable


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Full access, including session management and impersonation
        HEAD_OF_OPERATIONS: Manages questions, stores, users and assignments
        AREA_MANAGER: Submits checklists for assigned stores
        PENDING: Default for self-registered users, blocked until promoted
    """
    ADMIN = "Admin"
    HEAD_OF_OPERATIONS = "HeadOfOperations"
    AREA_MANAGER = "AreaManager"
    PENDING = "Pending"

    def is_one_of(self, allowed_roles: Iterable["UserRole"]) -> bool:
        """Membership check against a set of allowed roles."""
        return self in set(allowed_roles)

    @classmethod
    def describe(cls, roles: Iterable["UserRole"]) -> str:
        """Human readable 'A or B' list, in declaration order."""
        wanted = set(roles)
        return " or ".join(role.value for role in cls if role in wanted)


class AnswerValue(str, enum.Enum):
    """Answer to a single checklist question."""
    YES = "Yes"
    NO = "No"
    NA = "NA"
