import os
import logging
from pydantic import BaseModel, Field
from typing import List, Optional
from dotenv import load_dotenv

load_dotenv()

class MSALSettings(BaseModel):
    client_id: str = Field(default=os.getenv("MSAL_CLIENT_ID", ""))
    client_secret: Optional[str] = Field(default=os.getenv("MSAL_CLIENT_SECRET") or None)
    authority: str = Field(default=os.getenv("MSAL_AUTHORITY", "https://login.microsoftonline.com/common"))
    redirect_uri: str = Field(default=os.getenv("MSAL_REDIRECT_URI", "http://localhost:8000/api/auth/callback"))
    post_logout_redirect_uri: str = Field(default=os.getenv("MSAL_POST_LOGOUT_REDIRECT_URI", "http://localhost:3000/"))
    # Delegated scopes requested at sign-in
    scopes: List[str] = ["User.Read", "Files.ReadWrite", "Mail.Send"]

class GraphSettings(BaseModel):
    base_url: str = Field(default=os.getenv("GRAPH_BASE_URL", "https://graph.microsoft.com/v1.0"))
    drive_owner: Optional[str] = Field(default=os.getenv("DRIVE_OWNER") or None)
    drive_file_path: str = Field(default=os.getenv("DRIVE_FILE_PATH", "performance-review/db.json"))
    mail_sender: Optional[str] = Field(default=os.getenv("MAIL_SENDER") or None)
    request_timeout: float = float(os.getenv("GRAPH_TIMEOUT_SECONDS", "15"))

class FirebaseSettings(BaseModel):
    credentials_path: Optional[str] = Field(default=os.getenv("FIREBASE_CREDENTIALS") or None)
    database_url: Optional[str] = Field(default=os.getenv("FIREBASE_DATABASE_URL") or None)

class Config(BaseModel):
    app_name: str = "Performance Review"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    # Storage: "firebase", "onedrive" or "sql"
    storage_backend: str = os.getenv("STORAGE_BACKEND", "sql").lower()
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./reviews.db")

    # Auth
    secret_key: str = os.getenv("SECRET_KEY", "dev-only-insecure-key-DO-NOT-USE-IN-PROD")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 8)))
    session_cookie_name: str = "pr_session"
    flow_cookie_name: str = "pr_auth_flow"
    identity_timeout_seconds: float = float(os.getenv("IDENTITY_TIMEOUT_SECONDS", "5"))
    login_rate_limit: str = os.getenv("LOGIN_RATE_LIMIT", "20/minute")
    # Fernet key (32 url-safe base64 bytes); development generates one per process when unset
    encryption_key: Optional[str] = os.getenv("ENCRYPTION_KEY") or None

    msal: MSALSettings = MSALSettings()
    graph: GraphSettings = GraphSettings()
    firebase: FirebaseSettings = FirebaseSettings()

    # CORS: comma-separated origins loaded from env
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )

    @property
    def mail_enabled(self) -> bool:
        return bool(self.msal.client_id and self.msal.client_secret and self.graph.mail_sender)

settings = Config()

# --- Startup Validation for Production ---
_logger = logging.getLogger(__name__)
if settings.environment not in ("development", "testing"):
    _critical_missing = []
    if "dev-only" in settings.secret_key:
        _critical_missing.append("SECRET_KEY")
    if not settings.encryption_key:
        _critical_missing.append("ENCRYPTION_KEY")
    if not settings.msal.client_id:
        _critical_missing.append("MSAL_CLIENT_ID")
    if _critical_missing:
        raise RuntimeError(
            f"FATAL: The following settings must be set for non-development environments: "
            f"{', '.join(_critical_missing)}. Set them as environment variables."
        )
elif "dev-only" in settings.secret_key:
    _logger.warning("⚠ Using insecure default SECRET_KEY; only acceptable in development.")
