from typing import Any, Optional, Dict


class BaseError(Exception):
    """Base exception class for the booking platform"""
    
    def __init__(
        self, 
        message: str = "An error occurred",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "details": self.details}


class NotFoundError(BaseError):
    """Raised when a trip, batch, booking or wallet does not exist"""
    
    def __init__(self, entity: str, id: Any = None):
        message = f"{entity} with id {id} not found" if id is not None else f"{entity} not found"
        super().__init__(
            message=message,
            status_code=404,
            details={"entity": entity, "id": id}
        )


class ValidationError(BaseError):
    """Malformed input to a pricing, availability or lifecycle operation"""
    
    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            status_code=400,
            details=details
        )


class AuthenticationError(BaseError):
    """Missing or invalid credentials (user token or cron secret)"""
    
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message=message, status_code=401)


class AuthorizationError(BaseError):
    """Caller lacks the permission required for a staff transition"""
    
    def __init__(self, message: str = "Access denied", permission: Optional[str] = None):
        details = {"permission": permission} if permission else {}
        super().__init__(message=message, status_code=403, details=details)


class ConflictError(BaseError):
    """Raised when concurrent state makes the operation impossible (e.g. full batch)"""
    
    def __init__(self, message: str, rule: Optional[str] = None):
        details = {"rule": rule} if rule else {}
        super().__init__(message=message, status_code=409, details=details)


class BusinessLogicError(BaseError):
    """Business-rule failure with a machine-readable ``rule`` the client can act on"""
    
    def __init__(self, message: str, rule: Optional[str] = None):
        details = {"rule": rule} if rule else {}
        super().__init__(
            message=message,
            status_code=422,
            details=details
        )

    @property
    def rule(self) -> Optional[str]:
        return self.details.get("rule")


class ExternalServiceError(BaseError):
    """Messaging provider (or other outbound dependency) failed"""
    
    def __init__(self, service: str, message: str):
        super().__init__(
            message=f"External service error: {message}",
            status_code=503,
            details={"service": service}
        )
