# src/campus_pulse/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import pulse_router, reveals_router, system_router

__all__ = [
    "pulse_router",
    "reveals_router",
    "system_router",
]
