"""Pydantic schemas shared by the web integration."""

from .common import ErrorInfo, ErrorResponse

__all__ = ["ErrorInfo", "ErrorResponse"]
