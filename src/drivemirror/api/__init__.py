"""HTTP API routes."""

from __future__ import annotations

from .router import install_error_handlers, router, status_for

__all__ = ["router", "install_error_handlers", "status_for"]
