"""
Identity resolution: maps a signed-in Microsoft account onto the roster.

Every account lands in exactly one outcome:

- member: an enabled employee with this email exists
- bootstrap_admin: the roster was empty, the account becomes the first HR user
- denied: disabled, or not registered while the roster is non-empty
"""
import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from app.adapters.storage import EMPLOYEES, StorageBackend, normalize_email, storage_key
from app.core.exceptions import (
    AccountDisabledError,
    AccountNotRegisteredError,
    IdentityTimeoutError,
    NotFoundError,
)
from app.core.security import sanitize_input
from app.schemas.auth import Account
from app.schemas.employee import Employee, Role
from app.services.state import AppState

logger = logging.getLogger(__name__)


class IdentityOutcome(str, enum.Enum):
    MEMBER = "member"
    BOOTSTRAP_ADMIN = "bootstrap_admin"
    DENIED = "denied"


class DenialReason(str, enum.Enum):
    DISABLED = "disabled"
    UNREGISTERED = "unregistered"


@dataclass
class EmployeeLookup:
    email: str
    key: str
    employee: Optional[Employee]
    roster_empty: bool


@dataclass
class IdentityResolution:
    outcome: IdentityOutcome
    email: str
    key: str
    employee: Optional[Employee] = None
    reason: Optional[DenialReason] = None

    @property
    def granted(self) -> bool:
        return self.outcome != IdentityOutcome.DENIED


def _parse_employee(key: str, record: Dict[str, Any]) -> Optional[Employee]:
    try:
        return Employee.model_validate(record)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed employee record {key}: {e.error_count()} error(s)")
        return None


def lookup_employee(store: StorageBackend, email: str) -> EmployeeLookup:
    """
    Read the employee for ``email`` straight from the store.

    The record is first read at its canonical key; failing that the whole
    collection is scanned, which also tells whether the roster is empty.
    Records that do not validate count as absent.
    """
    email = normalize_email(email)
    key = storage_key(email)
    record = store.get(EMPLOYEES, key)
    employee = _parse_employee(key, record) if record is not None else None
    if employee is not None:
        return EmployeeLookup(email=email, key=key, employee=employee, roster_empty=False)

    members = {}
    for other_key, other in store.read(EMPLOYEES).items():
        parsed = _parse_employee(other_key, other)
        if parsed is not None:
            members[other_key] = parsed
    for other_key, other in members.items():
        if other.email == email:
            return EmployeeLookup(email=email, key=other_key, employee=other, roster_empty=False)
    return EmployeeLookup(email=email, key=key, employee=None, roster_empty=not members)


def settle_identity(store: StorageBackend, account: Account, lookup: EmployeeLookup) -> IdentityResolution:
    display_name = sanitize_input(account.name.strip()) if account.name and account.name.strip() else None

    if lookup.employee is not None:
        employee = lookup.employee
        if employee.is_disabled:
            return IdentityResolution(
                IdentityOutcome.DENIED, lookup.email, lookup.key, employee, DenialReason.DISABLED
            )
        if display_name and display_name != employee.name:
            try:
                store.update(EMPLOYEES, lookup.key, {"name": display_name})
            except NotFoundError:
                # Deleted between the lookup and the name sync
                logger.warning(f"Employee {lookup.email} was removed during sign-in")
                return IdentityResolution(
                    IdentityOutcome.DENIED, lookup.email, lookup.key, None, DenialReason.UNREGISTERED
                )
            employee = employee.model_copy(update={"name": display_name})
            logger.info(f"Synced display name for {lookup.email}")
        return IdentityResolution(IdentityOutcome.MEMBER, lookup.email, lookup.key, employee)

    if lookup.roster_empty:
        admin = Employee(
            id=store.bootstrap_admin_id(),
            name=display_name or "Admin",
            email=lookup.email,
            role=Role.HR,
            department="Administration",
            position="System Administrator",
            manager_email=None,
        )
        store.write(EMPLOYEES, lookup.key, admin.to_record())
        logger.info(f"Roster empty: created bootstrap HR account {admin.id} for {lookup.email}")
        return IdentityResolution(IdentityOutcome.BOOTSTRAP_ADMIN, lookup.email, lookup.key, admin)

    return IdentityResolution(
        IdentityOutcome.DENIED, lookup.email, lookup.key, None, DenialReason.UNREGISTERED
    )


def resolve_identity(store: StorageBackend, account: Account) -> IdentityResolution:
    return settle_identity(store, account, lookup_employee(store, account.email))


async def resolve_identity_within(store: StorageBackend, account: Account, timeout: float) -> IdentityResolution:
    """
    resolve_identity with a deadline on the directory read. No retry; the
    caller must sign in again after a timeout.

    Raises:
        IdentityTimeoutError: If the store does not answer within ``timeout`` seconds
    """
    try:
        lookup = await asyncio.wait_for(run_in_threadpool(lookup_employee, store, account.email), timeout)
    except asyncio.TimeoutError:
        logger.error(f"Identity lookup for {normalize_email(account.email)} timed out after {timeout}s")
        raise IdentityTimeoutError(timeout)
    return await run_in_threadpool(settle_identity, store, account, lookup)


def admit(resolution: IdentityResolution, state: AppState, logout_url: Optional[str] = None) -> Employee:
    """
    Turn a resolution into the signed-in employee, or raise the denial.

    Raises:
        AccountDisabledError, AccountNotRegisteredError
    """
    if resolution.reason == DenialReason.DISABLED:
        logger.warning(f"Sign-in denied for disabled account {resolution.email}")
        raise AccountDisabledError(resolution.email, logout_url)
    if resolution.reason == DenialReason.UNREGISTERED:
        logger.warning(f"Sign-in denied for unregistered account {resolution.email}")
        raise AccountNotRegisteredError(resolution.email, logout_url)

    state.apply(EMPLOYEES, resolution.key, resolution.employee)
    return resolution.employee
