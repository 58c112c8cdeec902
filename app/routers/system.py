import logging

from fastapi import APIRouter, Depends

from app.adapters.storage import StorageBackend
from app.core.schemas import MessageResponse
from app.dependencies import get_state, get_store
from app.routers.auth_deps import get_current_user
from app.schemas.employee import Employee
from app.services.state import AppState

logger = logging.getLogger(__name__)

router = APIRouter(tags=["system"])


@router.post("/sync", response_model=MessageResponse)
def sync(
    current_user: Employee = Depends(get_current_user),
    store: StorageBackend = Depends(get_store),
    state: AppState = Depends(get_state),
):
    """Re-read both collections from the store, discarding cached data."""
    store.reload()
    state.load(store)
    snapshot = state.snapshot()
    logger.info(f"{current_user.email} requested a sync (version {snapshot.version})")
    return MessageResponse(
        message=f"Loaded {len(snapshot.employees)} employees and {len(snapshot.reviews)} reviews"
    )
