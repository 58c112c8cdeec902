import enum
from typing import Optional

from pydantic import EmailStr, Field, ValidationInfo, field_validator

from app.core.schemas import CamelModel
from app.core.security import sanitize_input


class Role(str, enum.Enum):
    """
    Employee roles.

    - EMPLOYEE: submits self-reviews
    - MANAGER: completes reviews for direct reports
    - HR: administers the roster
    """
    EMPLOYEE = "employee"
    MANAGER = "manager"
    HR = "hr"


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class Employee(CamelModel):
    id: str
    name: str
    email: str
    manager_email: Optional[str] = None
    department: str = ""
    position: str = ""
    role: Role = Role.EMPLOYEE
    is_disabled: bool = False

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("manager_email", mode="before")
    @classmethod
    def lower_manager_email(cls, value):
        value = _blank_to_none(value)
        return value.strip().lower() if isinstance(value, str) else value

    def __repr__(self):
        return f"<Employee {self.email} ({self.role.value})>"


class EmployeeCreate(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    manager_email: Optional[EmailStr] = None
    department: str = Field(min_length=1, max_length=120)
    position: str = Field(min_length=1, max_length=120)
    role: Role = Role.EMPLOYEE

    @field_validator("manager_email", mode="before")
    @classmethod
    def blank_manager(cls, value):
        return _blank_to_none(value)

    @field_validator("name", "department", "position")
    @classmethod
    def clean_text(cls, value: str, info: ValidationInfo) -> str:
        value = value.strip()
        if not value:
            raise ValueError(f"{info.field_name.capitalize()} cannot be blank")
        return sanitize_input(value)


class EmployeeUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    manager_email: Optional[EmailStr] = None
    department: Optional[str] = Field(default=None, max_length=120)
    position: Optional[str] = Field(default=None, max_length=120)
    role: Optional[Role] = None

    @field_validator("manager_email", mode="before")
    @classmethod
    def blank_manager(cls, value):
        return _blank_to_none(value)

    @field_validator("name", "department", "position")
    @classmethod
    def clean_text(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value and info.field_name == "name":
            raise ValueError("Name cannot be blank")
        return sanitize_input(value)


class EmployeeCreated(CamelModel):
    employee: Employee
    email_sent: bool
