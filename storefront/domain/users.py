# storefront/domain/users.py
from dataclasses import dataclass
from enum import Enum


class UserRole(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    """Zalogowany uzytkownik wykonujacy zadanie."""

    id: int
    name: str
    email: str
    role: UserRole = UserRole.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN

    def owns(self, owner_id: int) -> bool:
        return self.id == owner_id

    def can_view(self, owner_id: int) -> bool:
        return self.owns(owner_id) or self.is_admin
