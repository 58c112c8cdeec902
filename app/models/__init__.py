# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import document

# Explicit class exports for cleaner imports
from .document import StoredDocument

__all__ = [
    "StoredDocument",
]
