"""
Panel data for the dashboard. Each endpoint returns exactly what one screen
of the browser UI renders.
"""
from fastapi import APIRouter, Depends

from app.dependencies import get_state
from app.routers.auth_deps import get_current_user
from app.schemas.employee import Employee
from app.schemas.views import PanelView, SectionList
from app.services import views as view_service
from app.services.state import AppState

router = APIRouter(
    prefix="/views",
    tags=["views"]
)


@router.get("/sections", response_model=SectionList)
def list_sections(current_user: Employee = Depends(get_current_user)):
    """Navigation entries available to the caller's role."""
    return view_service.list_sections(current_user)


@router.get("/{section}", response_model=PanelView)
def render_section(
    section: str,
    current_user: Employee = Depends(get_current_user),
    state: AppState = Depends(get_state),
):
    return view_service.render_panel(state.snapshot(), current_user, section)
