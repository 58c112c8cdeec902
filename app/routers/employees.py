from typing import List

from fastapi import APIRouter, Depends, status

from app.core.schemas import MessageResponse
from app.dependencies import get_employee_service
from app.routers.auth_deps import require_hr
from app.schemas.employee import Employee, EmployeeCreate, EmployeeCreated, EmployeeUpdate
from app.services.employees import EmployeeService

router = APIRouter(
    prefix="/employees",
    tags=["employees"]
)


@router.get("", response_model=List[Employee])
def list_employees(
    current_user: Employee = Depends(require_hr()),
    service: EmployeeService = Depends(get_employee_service),
):
    """Full roster, HR accounts first."""
    return service.roster()


@router.post("", response_model=EmployeeCreated, status_code=status.HTTP_201_CREATED)
def create_employee(
    data: EmployeeCreate,
    current_user: Employee = Depends(require_hr()),
    service: EmployeeService = Depends(get_employee_service),
):
    return service.create(current_user, data)


@router.patch("/{email}", response_model=Employee)
def update_employee(
    email: str,
    data: EmployeeUpdate,
    current_user: Employee = Depends(require_hr()),
    service: EmployeeService = Depends(get_employee_service),
):
    return service.update(current_user, email, data)


@router.post("/{email}/disable", response_model=Employee)
def disable_employee(
    email: str,
    current_user: Employee = Depends(require_hr()),
    service: EmployeeService = Depends(get_employee_service),
):
    return service.set_disabled(current_user, email, True)


@router.post("/{email}/enable", response_model=Employee)
def enable_employee(
    email: str,
    current_user: Employee = Depends(require_hr()),
    service: EmployeeService = Depends(get_employee_service),
):
    return service.set_disabled(current_user, email, False)


@router.delete("/{email}", response_model=MessageResponse)
def delete_employee(
    email: str,
    current_user: Employee = Depends(require_hr()),
    service: EmployeeService = Depends(get_employee_service),
):
    service.delete(current_user, email)
    return MessageResponse(message=f"Employee {email} deleted")
