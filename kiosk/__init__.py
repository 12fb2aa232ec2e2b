"""Core package for the visitor kiosk backend."""

from __future__ import annotations

from typing import Any

from .directory import DirectorySource, StaticDirectory
from .models import DirectoryUser


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the kiosk API application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "DirectorySource",
    "DirectoryUser",
    "StaticDirectory",
    "create_app",
]
