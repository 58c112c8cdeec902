from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

# Only the sign-in endpoints are decorated; everything else is unlimited
limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.environment != "testing",
)
