"""
Review lifecycle.

    (none) --submit_self_review--> self-submitted --complete_review--> completed

The owner may edit a self-submitted review. Completed reviews are read-only
and exportable. No transition reopens, cancels or archives a review.
"""
import html
from typing import List, Optional

from app.adapters.storage import REVIEWS, normalize_email
from app.core.exceptions import AccessDeniedError, BusinessRuleError, NotFoundError
from app.schemas.employee import Employee, Role
from app.schemas.review import ManagerReviewSubmit, Review, ReviewStatus, SelfReviewSubmit
from app.services.base import BaseService
from app.services.views import reviews_of


def _safe(text: Optional[str]) -> str:
    # Stored text is escaped on input; older records may not be
    return html.escape(html.unescape(text or ""))


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and normalize_email(a) == normalize_email(b)


class ReviewService(BaseService):
    # --- Access ---

    @staticmethod
    def can_view(user: Employee, review: Review) -> bool:
        return (
            user.role == Role.HR
            or _same(user.email, review.employee_email)
            or _same(user.email, review.manager_email)
        )

    def visible_to(self, user: Employee) -> List[Review]:
        reviews = self.snapshot().review_list
        if user.role == Role.HR:
            return reviews
        return [r for r in reviews if self.can_view(user, r)]

    def get(self, user: Employee, review_id: str) -> Review:
        review = self.snapshot().find_review(review_id)
        if review is None:
            raise NotFoundError(f"Review {review_id} not found")
        if not self.can_view(user, review):
            raise AccessDeniedError("You cannot view this review")
        return review

    def _save(self, review: Review) -> Review:
        self.store.write(REVIEWS, review.id, review.to_record())
        self.state.apply(REVIEWS, review.id, review)
        return review

    # --- Transitions ---

    def submit_self_review(self, user: Employee, data: SelfReviewSubmit, review_id: Optional[str] = None) -> Review:
        """Create a new self-review, or edit the caller's self-submitted one."""
        fields = data.model_dump()

        if review_id is not None:
            review = self.get(user, review_id)
            if not _same(review.employee_email, user.email):
                raise AccessDeniedError("Only the employee can edit their self-review")
            if review.status != ReviewStatus.SELF_SUBMITTED:
                raise BusinessRuleError("This review is closed and can no longer be edited")
            updated = self._save(review.model_copy(update=fields))
            self.log_info(f"{user.email} edited self-review {review.id}")
            return updated

        mine = reviews_of(self.snapshot().review_list, user.email)
        if any(r.is_active for r in mine):
            raise BusinessRuleError("You already have an active review for the current cycle")

        review = Review(
            id=f"REV-{self.now_millis()}",
            employee_email=user.email,
            employee_name=user.name,
            manager_email=user.manager_email,
            status=ReviewStatus.SELF_SUBMITTED,
            created_at=self.now(),
            **fields,
        )
        self._save(review)
        self.log_info(f"{user.email} submitted self-review {review.id} for {review.period}")
        return review

    def complete_review(self, manager: Employee, review_id: str, data: ManagerReviewSubmit) -> Review:
        review = self.get(manager, review_id)
        if not _same(review.manager_email, manager.email):
            raise AccessDeniedError("Only the employee's manager can complete this review")
        if review.status != ReviewStatus.SELF_SUBMITTED:
            raise BusinessRuleError(f"Review is {review.status.value}; only self-submitted reviews can be completed")

        completed = review.model_copy(update={
            "manager_comments": data.manager_comments,
            "manager_rating": data.manager_rating,
            "status": ReviewStatus.COMPLETED,
            "completed_at": self.now(),
        })
        self._save(completed)
        self.log_info(f"{manager.email} completed review {review.id} with rating {data.manager_rating}")
        return completed

    # --- Export ---

    def export_html(self, user: Employee, review_id: str) -> str:
        """Printable document for a completed review. Text fields are stored escaped."""
        review = self.get(user, review_id)
        if review.status != ReviewStatus.COMPLETED:
            raise BusinessRuleError("Only completed reviews can be exported")

        def paragraph(text: Optional[str]) -> str:
            return "<br>".join(_safe(text).splitlines()) or "&mdash;"

        def rating(value: Optional[int]) -> str:
            return f"{value}/5" if value else "&mdash;"

        return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8"/>
    <title>Performance Review - {_safe(review.employee_name)} - {_safe(review.period)}</title>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; max-width: 720px; margin: 40px auto; color: #222; }}
        h1 {{ color: #1e3c72; text-align: center; margin-bottom: 4px; }}
        .period {{ text-align: center; color: #666; border-bottom: 1px solid #ccc; padding-bottom: 12px; }}
        dt {{ font-weight: bold; margin-top: 16px; }}
    </style>
</head>
<body>
    <h1>Performance Review</h1>
    <p class="period">Period: {_safe(review.period)}</p>
    <dl>
        <dt>Employee</dt><dd>{_safe(review.employee_name)} ({_safe(review.employee_email)})</dd>
        <dt>Manager</dt><dd>{_safe(review.manager_email) or "N/A"}</dd>
        <dt>Self Rating</dt><dd>{rating(review.self_rating)}</dd>
        <dt>Manager Rating</dt><dd>{rating(review.manager_rating)}</dd>
        <dt>Achievements</dt><dd>{paragraph(review.self_achievements)}</dd>
        <dt>Areas for Improvement</dt><dd>{paragraph(review.self_improvements)}</dd>
        <dt>Manager Comments</dt><dd>{paragraph(review.manager_comments)}</dd>
    </dl>
</body>
</html>
"""
