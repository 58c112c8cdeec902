"""Collection names and key normalization (schema-in-code).

Every store keeps two collections. Employees are keyed by their
storage-normalized email, reviews by their id:

    employees/{storage_key(email)}
    reviews/{id}
"""
import re

EMPLOYEES = "employees"
REVIEWS = "reviews"
COLLECTIONS = (EMPLOYEES, REVIEWS)

# Characters the realtime database refuses in keys
_FORBIDDEN_KEY_CHARS = re.compile(r"[.#$\[\]]")


def normalize_email(email: str) -> str:
    """Lower-case, trimmed email. Idempotent."""
    return (email or "").strip().lower()


def storage_key(email: str) -> str:
    return _FORBIDDEN_KEY_CHARS.sub("_", normalize_email(email))
