"""
Roster administration (HR).
"""
from typing import List, Optional, Tuple

from pydantic.alias_generators import to_camel

from app.adapters.storage import EMPLOYEES, StorageBackend, storage_key
from app.core.exceptions import BusinessRuleError, NotFoundError
from app.schemas.employee import Employee, EmployeeCreate, EmployeeCreated, EmployeeUpdate, Role
from app.services.base import BaseService
from app.services.notification import NotificationService
from app.services.state import AppState
from app.services.views import can_modify, is_last_enabled_hr, roster_order


class EmployeeService(BaseService):
    def __init__(self, store: StorageBackend, state: AppState,
                 notifier: Optional[NotificationService] = None, clock=None):
        super().__init__(store, state, clock)
        self.notifier = notifier or NotificationService()

    def _entry(self, email: str) -> Tuple[str, Employee]:
        entry = self.snapshot().employee_entry(email)
        if entry is None:
            raise NotFoundError(f"No employee with email {email}")
        return entry

    def roster(self) -> List[Employee]:
        return roster_order(self.snapshot().employee_list)

    def get(self, email: str) -> Employee:
        return self._entry(email)[1]

    def create(self, actor: Employee, data: EmployeeCreate) -> EmployeeCreated:
        if self.snapshot().find_employee(data.email) is not None:
            raise BusinessRuleError(f"An employee with email {data.email} already exists")

        employee = Employee(
            id=f"EMP-{self.now_millis()}",
            name=data.name,
            email=data.email,
            manager_email=data.manager_email,
            department=data.department,
            position=data.position,
            role=data.role,
        )
        key = storage_key(employee.email)
        self.store.write(EMPLOYEES, key, employee.to_record())
        self.state.apply(EMPLOYEES, key, employee)
        self.log_info(f"{actor.email} added {employee.email} as {employee.role.value}")

        email_sent = self.notifier.send_welcome(employee)
        return EmployeeCreated(employee=employee, email_sent=email_sent)

    def update(self, actor: Employee, email: str, data: EmployeeUpdate) -> Employee:
        key, employee = self._entry(email)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return employee

        new_role = changes.get("role")
        if new_role is not None and new_role != employee.role and employee.role == Role.HR:
            if employee.email == actor.email:
                raise BusinessRuleError("You cannot change your own HR role")
            if is_last_enabled_hr(employee, self.snapshot().employee_list):
                raise BusinessRuleError("At least one enabled HR account must remain")

        updated = employee.model_copy(update=changes)
        # Re-validate so emails are normalised and enums coerced
        updated = Employee.model_validate(updated.model_dump())
        record = updated.to_record()
        patch = {to_camel(name): record[to_camel(name)] for name in changes}
        self.store.update(EMPLOYEES, key, patch)
        self.state.apply(EMPLOYEES, key, updated)
        self.log_info(f"{actor.email} updated {employee.email}: {sorted(changes)}")
        return updated

    def set_disabled(self, actor: Employee, email: str, disabled: bool) -> Employee:
        key, employee = self._entry(email)
        if disabled and not can_modify(actor, employee, self.snapshot().employee_list):
            raise BusinessRuleError("You cannot disable your own account or the last HR account")
        if employee.is_disabled == disabled:
            return employee

        self.store.update(EMPLOYEES, key, {"isDisabled": disabled})
        updated = employee.model_copy(update={"is_disabled": disabled})
        self.state.apply(EMPLOYEES, key, updated)
        self.log_info(f"{actor.email} {'disabled' if disabled else 'enabled'} {employee.email}")
        return updated

    def delete(self, actor: Employee, email: str) -> None:
        key, employee = self._entry(email)
        if not can_modify(actor, employee, self.snapshot().employee_list):
            raise BusinessRuleError("You cannot delete your own account or the last HR account")
        self.store.remove(EMPLOYEES, key)
        self.state.apply(EMPLOYEES, key, None)
        self.log_info(f"{actor.email} deleted {employee.email}")
