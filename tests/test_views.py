from datetime import datetime, timedelta, timezone

import pytest
from fastapi import status

from app.core.exceptions import AccessDeniedError, NotFoundError
from app.schemas.employee import Employee, Role
from app.schemas.review import Review, ReviewStatus
from app.services.state import StateSnapshot
from app.services.views import (
    Panel,
    Section,
    build_employee_panel,
    build_hr_panel,
    build_manager_panel,
    can_modify,
    partition_reviews,
    pending_reviews,
    roster_order,
    select_panel,
    visible_sections,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_review(id, email, status=ReviewStatus.SELF_SUBMITTED, manager="mark@example.com", days=0):
    return Review(
        id=id, employee_email=email, employee_name=email.split("@")[0], manager_email=manager,
        period="2024-H1", self_achievements="Shipped", self_rating=4, status=status,
        created_at=T0 + timedelta(days=days),
    )


def snapshot(employees=(), reviews=()):
    return StateSnapshot(
        employees={e.email: e for e in employees},
        reviews={r.id: r for r in reviews},
    )


# --- Panel selection ---

@pytest.mark.parametrize("role, panel", [
    (Role.EMPLOYEE, Panel.EMPLOYEE),
    (Role.MANAGER, Panel.MANAGER),
    (Role.HR, Panel.HR),
])
def test_dashboard_follows_role(role, panel):
    assert select_panel(role, "dashboard") == panel


def test_self_section_is_open_to_everyone():
    for role in Role:
        assert select_panel(role, "self") == Panel.EMPLOYEE


def test_restricted_sections():
    assert select_panel(Role.HR, "team") == Panel.MANAGER
    assert select_panel(Role.HR, "admin") == Panel.HR
    with pytest.raises(AccessDeniedError):
        select_panel(Role.EMPLOYEE, "team")
    with pytest.raises(AccessDeniedError):
        select_panel(Role.MANAGER, "admin")
    with pytest.raises(NotFoundError):
        select_panel(Role.HR, "reports")


def test_visible_sections_match_sidebar():
    assert visible_sections(Role.EMPLOYEE) == [Section.DASHBOARD, Section.SELF]
    assert visible_sections(Role.MANAGER) == [Section.DASHBOARD, Section.SELF, Section.TEAM]
    assert visible_sections(Role.HR) == [Section.DASHBOARD, Section.SELF, Section.TEAM, Section.ADMIN]


# --- Employee panel ---

def test_active_and_history_are_disjoint():
    reviews = [
        make_review("R1", "erin@example.com", ReviewStatus.COMPLETED, days=1),
        make_review("R2", "erin@example.com", ReviewStatus.ARCHIVED, days=2),
        make_review("R3", "erin@example.com", ReviewStatus.SELF_SUBMITTED, days=3),
        make_review("R4", "erin@example.com", ReviewStatus.COMPLETED, days=4),
    ]
    active, history = partition_reviews(reviews)
    assert [r.id for r in active] == ["R3"]
    assert [r.id for r in history] == ["R4", "R1"]
    assert not {r.id for r in active} & {r.id for r in history}


def test_employee_panel(employee_user):
    snap = snapshot(
        employees=[employee_user],
        reviews=[
            make_review("R1", "erin@example.com", ReviewStatus.COMPLETED),
            make_review("R2", "someone@example.com"),
        ],
    )
    panel = build_employee_panel(snap, employee_user)
    assert panel.profile == "Developer - Engineering"
    assert panel.active is None
    assert [r.id for r in panel.history] == ["R1"]
    assert panel.can_start_review is True


def test_employee_with_active_review_cannot_start_another(employee_user):
    snap = snapshot(reviews=[make_review("R1", "erin@example.com")])
    panel = build_employee_panel(snap, employee_user)
    assert panel.active.id == "R1"
    assert panel.can_start_review is False


# --- Manager panel ---

def test_pending_reviews_match_manager_case_insensitively():
    reviews = [
        make_review("R1", "erin@example.com", manager="MARK@example.com"),
        make_review("R2", "fay@example.com", ReviewStatus.COMPLETED),
        make_review("R3", "gus@example.com", manager="other@example.com"),
        make_review("R4", "hal@example.com", manager=None),
    ]
    assert [r.id for r in pending_reviews(reviews, "Mark@Example.com")] == ["R1"]


def test_manager_panel(manager_user, employee_user, hr_user):
    snap = snapshot(
        employees=[hr_user, manager_user, employee_user],
        reviews=[make_review("R1", "erin@example.com")],
    )
    panel = build_manager_panel(snap, manager_user)
    assert [e.email for e in panel.team] == ["erin@example.com"]
    assert [r.id for r in panel.pending] == ["R1"]


# --- HR panel ---

def test_roster_order_puts_hr_first():
    people = [
        Employee(id="1", name="zed", email="z@example.com", role=Role.EMPLOYEE),
        Employee(id="2", name="Yan", email="y@example.com", role=Role.HR),
        Employee(id="3", name="amy", email="a@example.com", role=Role.MANAGER),
    ]
    assert [e.name for e in roster_order(people)] == ["Yan", "amy", "zed"]


def test_own_row_and_last_hr_are_protected(hr_user, manager_user, employee_user):
    snap = snapshot(employees=[hr_user, manager_user, employee_user])
    rows = {row.employee.email: row for row in build_hr_panel(snap, hr_user).rows}
    assert rows["alice@example.com"].can_toggle is False
    assert rows["alice@example.com"].can_delete is False
    assert rows["erin@example.com"].can_toggle is True

    other_hr = Employee(id="H2", name="Hana", email="hana@example.com", role=Role.HR)
    # With a second enabled HR account, alice becomes removable by hana
    assert can_modify(other_hr, hr_user, [hr_user, other_hr]) is True
    assert can_modify(other_hr, hr_user, [hr_user, other_hr.model_copy(update={"is_disabled": True})]) is False


# --- API ---

def test_sections_endpoint(client, roster, auth_headers):
    response = client.get("/api/views/sections", headers=auth_headers(roster["manager"]))
    assert response.status_code == 200
    assert response.json() == {"sections": ["dashboard", "self", "team"], "defaultPanel": "manager"}


def test_dashboard_endpoint_for_hr(client, roster, auth_headers):
    response = client.get("/api/views/dashboard", headers=auth_headers(roster["hr"]))
    assert response.status_code == 200
    data = response.json()
    assert data["panel"] == "hr"
    assert [row["employee"]["email"] for row in data["hr"]["rows"]][0] == "alice@example.com"


def test_admin_section_forbidden_for_employee(client, roster, auth_headers):
    response = client.get("/api/views/admin", headers=auth_headers(roster["employee"]))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_unknown_section(client, roster, auth_headers):
    response = client.get("/api/views/reports", headers=auth_headers(roster["hr"]))
    assert response.status_code == status.HTTP_404_NOT_FOUND
