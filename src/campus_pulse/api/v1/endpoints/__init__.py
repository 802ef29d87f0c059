# src/campus_pulse/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .pulse import router as pulse_router
from .reveals import router as reveals_router
from .system import router as system_router

__all__ = [
    "pulse_router",
    "reveals_router",
    "system_router",
]
