from typing import Optional
from pydantic import BaseModel
from enum import Enum


class RoleEnum(str, Enum):
    headteacher = "headteacher"
    teacher = "teacher"
    admin = "admin"
    accountant = "accountant"
    owner = "owner"


# Short codes issued by the identity service for each user type
ROLE_ALIASES = {
    "ht": "headteacher",
    "headteacher": "headteacher",
    "tr": "teacher",
    "teacher": "teacher",
    "ad": "admin",
    "admin": "admin",
    "ac": "accountant",
    "accountant": "accountant",
    "ow": "owner",
    "owner": "owner",
}


def normalize_role(role: Optional[str]) -> str:
    """Map a raw user type ("HT", "tr", "Teacher"...) onto a canonical role name."""
    if not role:
        return ""
    value = str(role).strip().lower()
    return ROLE_ALIASES.get(value, value)


class CurrentUser(BaseModel):
    """Identity handed to the services by the authentication dependency."""
    user_id: int
    school_id: int
    role: str

    @property
    def is_head_teacher(self) -> bool:
        return self.role == RoleEnum.headteacher.value

    @property
    def is_teacher(self) -> bool:
        return self.role == RoleEnum.teacher.value

    @property
    def sees_all_classes(self) -> bool:
        return self.role in (RoleEnum.headteacher.value, RoleEnum.admin.value, RoleEnum.owner.value)
