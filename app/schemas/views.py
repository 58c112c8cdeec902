from typing import List, Optional

from app.core.schemas import CamelModel
from app.schemas.employee import Employee
from app.schemas.review import Review


class EmployeePanel(CamelModel):
    profile: str
    active: Optional[Review] = None
    history: List[Review] = []
    can_start_review: bool


class ManagerPanel(CamelModel):
    team: List[Employee] = []
    pending: List[Review] = []


class RosterRow(CamelModel):
    employee: Employee
    can_toggle: bool
    can_delete: bool


class HRPanel(CamelModel):
    rows: List[RosterRow] = []


class SectionList(CamelModel):
    sections: List[str]
    default_panel: str


class PanelView(CamelModel):
    section: str
    panel: str
    employee: Optional[EmployeePanel] = None
    manager: Optional[ManagerPanel] = None
    hr: Optional[HRPanel] = None
