"""
Core utilities shared by the repository layer.

This package provides:
- Application-level settings (separate from DB settings)
- The caller's application session and its providers
- Error types, logging configuration and token helpers
- FastAPI dependency helpers (caller session, DB session)
"""
