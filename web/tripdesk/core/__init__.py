from .base import BaseRepository, BaseService
from .exceptions import (
    BaseError,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    BusinessLogicError,
    ExternalServiceError
)
from .config import Settings, get_settings

__all__ = [
    # Base classes
    "BaseRepository",
    "BaseService",
    
    # Exceptions
    "BaseError",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "BusinessLogicError",
    "ExternalServiceError",
    
    # Config
    "Settings",
    "get_settings"
]
