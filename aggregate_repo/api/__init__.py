"""FastAPI integration: error envelope handlers and request context middleware."""

from .errors import install_request_context, register_exception_handlers

__all__ = ["install_request_context", "register_exception_handlers"]
