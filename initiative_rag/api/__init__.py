"""initiative-rag API layer: routes, schemas, identity, and middleware."""

from initiative_rag.api.auth import current_user
from initiative_rag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    install_error_handlers,
)
from initiative_rag.api.routes import router
from initiative_rag.api.schemas import ErrorResponse, HealthResponse

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "install_error_handlers",
    "current_user",
    "router",
    "ErrorResponse",
    "HealthResponse",
]
