"""
Core modules: configuration, logging, metrics and store connections.
"""
from .config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
