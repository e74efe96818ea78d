"""Domain Entities - Auth"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from typing import Optional, List

from domain.enums import UserRole

STAFF_ROLES = (UserRole.ADMIN, UserRole.VENDOR, UserRole.VENDOR_EMPLOYEE)


class User(BaseModel):
    """User Entity"""
    user_id: UUID = Field(default_factory=uuid4)
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    disabled: bool = False
    role: UserRole = UserRole.STUDENT
    vendor_ids: List[UUID] = []
    gender: Optional[str] = None
    fcm_token: Optional[str] = None

    class Config:
        from_attributes = True

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def can_manage_vendor(self, vendor_id: UUID) -> bool:
        return self.is_admin() or (self.is_staff() and vendor_id in self.vendor_ids)


class UserInDB(User):
    """User with hashed password for DB storage"""
    hashed_password: str
