"""
View selection and panel builders.

Pure functions of (viewer, requested section, state snapshot). They never
touch the store.
"""
import enum
from datetime import datetime, timezone
from typing import Iterable, List, Tuple

from app.adapters.storage import normalize_email
from app.core.exceptions import AccessDeniedError, NotFoundError
from app.schemas.employee import Employee, Role
from app.schemas.review import Review, ReviewStatus
from app.schemas.views import (
    EmployeePanel,
    HRPanel,
    ManagerPanel,
    PanelView,
    RosterRow,
    SectionList,
)
from app.services.state import StateSnapshot


class Panel(str, enum.Enum):
    EMPLOYEE = "employee"
    MANAGER = "manager"
    HR = "hr"


class Section(str, enum.Enum):
    DASHBOARD = "dashboard"
    SELF = "self"
    TEAM = "team"
    ADMIN = "admin"


DEFAULT_PANEL = {
    Role.EMPLOYEE: Panel.EMPLOYEE,
    Role.MANAGER: Panel.MANAGER,
    Role.HR: Panel.HR,
}

# Sections restricted to some roles; the rest are open to everyone
SECTION_ROLES = {
    Section.TEAM: {Role.MANAGER, Role.HR},
    Section.ADMIN: {Role.HR},
}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def visible_sections(role: Role) -> List[Section]:
    return [s for s in Section if role in SECTION_ROLES.get(s, set(Role))]


def select_panel(role: Role, section: str) -> Panel:
    try:
        section = Section(section)
    except ValueError:
        raise NotFoundError(f"Unknown section '{section}'") from None

    if role not in SECTION_ROLES.get(section, set(Role)):
        raise AccessDeniedError(f"The {section.value} section is not available to {role.value} accounts")

    if section == Section.DASHBOARD:
        return DEFAULT_PANEL[role]
    if section == Section.SELF:
        return Panel.EMPLOYEE
    if section == Section.TEAM:
        return Panel.MANAGER
    return Panel.HR


def _created(review: Review) -> datetime:
    created = review.created_at or _EPOCH
    return created if created.tzinfo else created.replace(tzinfo=timezone.utc)


def _newest_first(reviews: Iterable[Review]) -> List[Review]:
    return sorted(reviews, key=_created, reverse=True)


# --- Employee panel ---

def reviews_of(reviews: Iterable[Review], email: str) -> List[Review]:
    email = normalize_email(email)
    return [r for r in reviews if r.employee_email == email]


def partition_reviews(reviews: Iterable[Review]) -> Tuple[List[Review], List[Review]]:
    """(active, history): active is anything non-terminal, history is completed only."""
    reviews = list(reviews)
    active = [r for r in reviews if not r.status.is_terminal]
    history = [r for r in reviews if r.status == ReviewStatus.COMPLETED]
    return _newest_first(active), _newest_first(history)


def build_employee_panel(snapshot: StateSnapshot, user: Employee) -> EmployeePanel:
    active, history = partition_reviews(reviews_of(snapshot.review_list, user.email))
    return EmployeePanel(
        profile=" - ".join(part for part in (user.position, user.department) if part),
        active=active[0] if active else None,
        history=history,
        can_start_review=not active,
    )


# --- Manager panel ---

def direct_reports(employees: Iterable[Employee], manager_email: str) -> List[Employee]:
    manager_email = normalize_email(manager_email)
    return [e for e in employees if e.manager_email and normalize_email(e.manager_email) == manager_email]


def pending_reviews(reviews: Iterable[Review], manager_email: str) -> List[Review]:
    manager_email = normalize_email(manager_email)
    return [
        r for r in reviews
        if r.status == ReviewStatus.SELF_SUBMITTED
        and r.manager_email
        and normalize_email(r.manager_email) == manager_email
    ]


def build_manager_panel(snapshot: StateSnapshot, user: Employee) -> ManagerPanel:
    return ManagerPanel(
        team=sorted(direct_reports(snapshot.employee_list, user.email), key=lambda e: e.name.casefold()),
        pending=_newest_first(pending_reviews(snapshot.review_list, user.email)),
    )


# --- HR panel ---

def roster_order(employees: Iterable[Employee]) -> List[Employee]:
    """HR accounts first, then alphabetical by name."""
    return sorted(employees, key=lambda e: (0 if e.role == Role.HR else 1, e.name.casefold()))


def is_last_enabled_hr(target: Employee, employees: Iterable[Employee]) -> bool:
    if target.role != Role.HR or target.is_disabled:
        return False
    enabled_hr = [e for e in employees if e.role == Role.HR and not e.is_disabled]
    return len(enabled_hr) <= 1


def can_modify(actor: Employee, target: Employee, employees: Iterable[Employee]) -> bool:
    """Whether ``actor`` may disable or delete ``target``."""
    if normalize_email(actor.email) == normalize_email(target.email):
        return False
    return not is_last_enabled_hr(target, employees)


def build_hr_panel(snapshot: StateSnapshot, user: Employee) -> HRPanel:
    employees = snapshot.employee_list
    rows = []
    for employee in roster_order(employees):
        allowed = can_modify(user, employee, employees)
        rows.append(RosterRow(employee=employee, can_toggle=allowed, can_delete=allowed))
    return HRPanel(rows=rows)


# --- Entry points ---

def list_sections(user: Employee) -> SectionList:
    return SectionList(
        sections=[s.value for s in visible_sections(user.role)],
        default_panel=DEFAULT_PANEL[user.role].value,
    )


def render_panel(snapshot: StateSnapshot, user: Employee, section: str) -> PanelView:
    panel = select_panel(user.role, section)
    view = PanelView(section=section, panel=panel.value)
    if panel == Panel.EMPLOYEE:
        view.employee = build_employee_panel(snapshot, user)
    elif panel == Panel.MANAGER:
        view.manager = build_manager_panel(snapshot, user)
    else:
        view.hr = build_hr_panel(snapshot, user)
    return view
