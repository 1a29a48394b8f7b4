"""User identity model."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Role(str, Enum):
    """Closed set of user roles."""

    STUDENT = "student"
    TEACHER = "teacher"
    PROGRAM_OPS = "program_ops"
    PM = "PM"
    COS = "COS"
    ORG_ADMIN = "org_admin"
    GUEST = "guest"


class User(BaseModel):
    """Authenticated user."""

    id: str
    email: str
    display_name: str
    role: Role
    university_id: Optional[str] = None
    university_name: Optional[str] = None

    model_config = {"frozen": True}
