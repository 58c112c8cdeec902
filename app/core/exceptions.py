from typing import Any, Dict, Optional

class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)

    def to_content(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"msg": self.message, "code": self.error_code}
        if self.details:
            error["details"] = self.details
        return {"success": False, "errors": [error]}

class AuthenticationError(AppException):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )

class AccessDeniedError(AppException):
    """Custom permission error. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED"
        )

class AccountDisabledError(AppException):
    def __init__(self, email: str, logout_url: Optional[str] = None):
        super().__init__(
            message="Your account has been disabled. Please contact HR.",
            status_code=403,
            error_code="ACCOUNT_DISABLED",
            details={"email": email, "logout_url": logout_url}
        )

class AccountNotRegisteredError(AppException):
    def __init__(self, email: str, logout_url: Optional[str] = None):
        super().__init__(
            message="Your account is not registered. Please ask HR to add you.",
            status_code=403,
            error_code="ACCOUNT_NOT_REGISTERED",
            details={"email": email, "logout_url": logout_url}
        )

class IdentityTimeoutError(AppException):
    def __init__(self, timeout: float):
        super().__init__(
            message=f"Employee directory did not respond within {timeout:g}s. Please sign in again.",
            status_code=504,
            error_code="IDENTITY_TIMEOUT"
        )

class NotFoundError(AppException):
    def __init__(self, message: str = "Record not found"):
        super().__init__(message=message, status_code=404, error_code="NOT_FOUND")

class BusinessRuleError(AppException):
    def __init__(self, message: str):
        super().__init__(message=message, status_code=409, error_code="BUSINESS_RULE")

class StorageError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=502,
            error_code="STORAGE_ERROR",
            details=details
        )

class StorageConflictError(AppException):
    def __init__(self, message: str = "The data was changed by another session. Reload and resubmit."):
        super().__init__(message=message, status_code=409, error_code="STORAGE_CONFLICT")

class StorageUnavailableError(AppException):
    """Raised when the configured store cannot be initialised (missing SDK or credentials)."""
    def __init__(self, message: str):
        super().__init__(message=message, status_code=503, error_code="STORAGE_UNAVAILABLE")
