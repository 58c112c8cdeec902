from pydantic import BaseModel
from typing import Optional
from app.schemas.employee import Employee

class Account(BaseModel):
    """Signed-in identity as reported by the identity provider."""
    email: str
    name: Optional[str] = None

class TokenExchangeRequest(BaseModel):
    access_token: str

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    outcome: str
    user: Employee

class LogoutResponse(BaseModel):
    message: str
    logout_url: str
