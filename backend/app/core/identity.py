"""
Resolved request identity.

An identity is either ``RealIdentity`` (the logged-in user acting as
themselves) or ``ImpersonatedIdentity`` (an admin acting as another user).
Both expose ``real`` and ``effective`` so callers must choose explicitly
which user a decision is based on.
"""

from dataclasses import dataclass
from typing import Optional, Union

from backend.app.models.enums import UserRole


@dataclass(frozen=True)
class UserIdentity:
    id: int
    email: str
    display_name: str
    role: UserRole
    is_approved: bool
    is_active: bool
    delegated_access_token: Optional[str] = None

    @classmethod
    def from_user(cls, user, delegated_access_token: Optional[str] = None) -> "UserIdentity":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            role=UserRole(user.role),
            is_approved=bool(user.is_approved),
            is_active=bool(user.is_active),
            delegated_access_token=delegated_access_token,
        )

@dataclass(frozen=True)
class RealIdentity:
    user: UserIdentity

    @property
    def real(self) -> UserIdentity:
        return self.user

    @property
    def effective(self) -> UserIdentity:
        return self.user

    @property
    def is_impersonating(self) -> bool:
        return False


@dataclass(frozen=True)
class ImpersonatedIdentity:
    real_user: UserIdentity
    effective_user: UserIdentity

    @property
    def real(self) -> UserIdentity:
        return self.real_user

    @property
    def effective(self) -> UserIdentity:
        return self.effective_user

    @property
    def is_impersonating(self) -> bool:
        return True


Identity = Union[RealIdentity, ImpersonatedIdentity]
