import re
from typing import List

from fastapi import APIRouter, Depends, status
from fastapi.responses import HTMLResponse

from app.dependencies import get_review_service
from app.routers.auth_deps import get_current_user, require_manager
from app.schemas.employee import Employee
from app.schemas.review import ManagerReviewSubmit, Review, SelfReviewSubmit
from app.services.reviews import ReviewService

router = APIRouter(
    prefix="/reviews",
    tags=["reviews"]
)


@router.get("", response_model=List[Review])
def list_reviews(
    current_user: Employee = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    """Reviews the caller may see: their own, their reports', or all for HR."""
    return service.visible_to(current_user)


@router.post("", response_model=Review, status_code=status.HTTP_201_CREATED)
def submit_self_review(
    data: SelfReviewSubmit,
    current_user: Employee = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    return service.submit_self_review(current_user, data)


@router.get("/{review_id}", response_model=Review)
def get_review(
    review_id: str,
    current_user: Employee = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    return service.get(current_user, review_id)


@router.put("/{review_id}", response_model=Review)
def edit_self_review(
    review_id: str,
    data: SelfReviewSubmit,
    current_user: Employee = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    return service.submit_self_review(current_user, data, review_id=review_id)


@router.post("/{review_id}/complete", response_model=Review)
def complete_review(
    review_id: str,
    data: ManagerReviewSubmit,
    current_user: Employee = Depends(require_manager()),
    service: ReviewService = Depends(get_review_service),
):
    return service.complete_review(current_user, review_id, data)


@router.get("/{review_id}/export", response_class=HTMLResponse)
def export_review(
    review_id: str,
    current_user: Employee = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    """Printable HTML of a completed review."""
    document = service.export_html(current_user, review_id)
    filename = re.sub(r"[^A-Za-z0-9_-]", "_", review_id)
    return HTMLResponse(
        document,
        headers={"Content-Disposition": f'inline; filename="review-{filename}.html"'},
    )
